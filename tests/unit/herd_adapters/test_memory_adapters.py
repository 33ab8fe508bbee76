"""
Tests for the in-memory and development adapters.

Covers:
- Repository query evaluation and ordering
- Inventory reservations and consumption
- Herd directory membership
- Id generation
- Geolocation bounds and console rendering
"""

import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import pytest
from rich.console import Console
from structlog.testing import capture_logs

from herd_adapters.geolocation import BoundsGeolocationValidator
from herd_adapters.memory.herd import InMemoryHerdDirectory
from herd_adapters.memory.inventory import InMemoryInventory, InsufficientStockError
from herd_adapters.memory.repository import DuplicateKeyError, InMemoryRepository
from herd_adapters.notifications import (
    ConsoleNotificationDispatcher,
    LoggingNotificationDispatcher,
)
from herd_health.domain.models import AlertSeverity, AlertType, HealthAlert, Location
from herd_health.services.ids import EntityKind, SequentialIdGenerator, TimeRandomIdGenerator
from herd_health.services.ports import DateRange, RecordQuery

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


@dataclass(frozen=True)
class Entry:
    id: str
    kind: str
    when: datetime | None


class TestInMemoryRepository:
    @pytest.fixture
    async def repository(self) -> InMemoryRepository[Entry]:
        repository = InMemoryRepository[Entry]("entries")
        await repository.create(Entry("a", "exam", NOW - timedelta(days=3)))
        await repository.create(Entry("b", "exam", None))
        await repository.create(Entry("c", "surgery", NOW - timedelta(days=1)))
        await repository.create(Entry("d", "exam", NOW))
        return repository

    async def test_equality_and_range_filters(self, repository: InMemoryRepository[Entry]) -> None:
        found = await repository.find_all(
            RecordQuery.where(kind="exam", ranges={"when": DateRange(end=NOW - timedelta(days=1))})
        )
        assert [e.id for e in found] == ["a"]

    async def test_membership_filter(self, repository: InMemoryRepository[Entry]) -> None:
        assert await repository.count(RecordQuery.where(members={"id": ["a", "c", "zz"]})) == 2

    async def test_ordering_puts_missing_values_last(
        self, repository: InMemoryRepository[Entry]
    ) -> None:
        found = await repository.find_all(RecordQuery.where(order_by="when", descending=True))
        assert [e.id for e in found] == ["d", "c", "a", "b"]

    async def test_create_rejects_existing_id(self, repository: InMemoryRepository[Entry]) -> None:
        with pytest.raises(DuplicateKeyError):
            await repository.create(Entry("a", "exam", NOW))

    async def test_update_requires_existing_entity(
        self, repository: InMemoryRepository[Entry]
    ) -> None:
        await repository.update(Entry("a", "necropsy", NOW))
        assert (await repository.get("a")).kind == "necropsy"

        with pytest.raises(KeyError):
            await repository.update(Entry("missing", "exam", NOW))


class TestInMemoryInventory:
    async def test_reservation_holds_stock(self) -> None:
        inventory = InMemoryInventory({"med_a": 10})

        await inventory.reserve("med_a", 4)

        assert inventory.available("med_a") == 6
        assert await inventory.check_availability("med_a", 6)
        assert not await inventory.check_availability("med_a", 7)

        await inventory.release("med_a", 4)
        assert inventory.available("med_a") == 10
        assert inventory.reserved == {}

    async def test_reserving_too_much_fails(self) -> None:
        inventory = InMemoryInventory({"med_a": 1})
        with pytest.raises(InsufficientStockError):
            await inventory.reserve("med_a", 2)
        assert inventory.reserved == {}

    async def test_consume_draws_down_stock(self) -> None:
        inventory = InMemoryInventory({"vacc_001": 2})

        await inventory.consume("vacc_001", 1)
        assert inventory.stock["vacc_001"] == 1

        with pytest.raises(InsufficientStockError):
            await inventory.consume("vacc_001", 5)


async def test_herd_directory_filters_by_ranch() -> None:
    herd = InMemoryHerdDirectory()
    herd.add("BOV-1", "ranch-1")
    herd.add("BOV-2", "ranch-2")
    herd.mark_deceased("BOV-1", NOW)

    [member] = await herd.list_members("ranch-1")
    assert member.deceased_at == NOW
    assert len(await herd.list_members()) == 2


class TestIdGenerators:
    def test_sequential_ids_count_per_kind(self) -> None:
        ids = SequentialIdGenerator()

        assert ids.generate(EntityKind.VACCINATION) == "vacc-0001"
        assert ids.generate(EntityKind.VACCINATION) == "vacc-0002"
        assert ids.generate(EntityKind.ALERT) == "alert-0001"

    def test_time_random_ids_are_unique_and_well_formed(self) -> None:
        ids = TimeRandomIdGenerator()

        generated = [ids.generate(EntityKind.RECORD) for _ in range(2000)]

        assert len(set(generated)) == len(generated)
        assert all(re.fullmatch(r"health_\d+_[a-z0-9]{7}", value) for value in generated)

    def test_time_component_never_decreases(self) -> None:
        ids = TimeRandomIdGenerator()
        millis = [int(ids.generate(EntityKind.ALERT).split("_")[1]) for _ in range(500)]
        assert millis == sorted(millis)


class TestGeolocation:
    async def test_whole_globe_by_default(self) -> None:
        validator = BoundsGeolocationValidator()

        assert await validator.is_valid_coordinate(Location(latitude=-90, longitude=180))
        assert not await validator.is_valid_coordinate(Location(latitude=91, longitude=0))
        assert await validator.describe(Location(latitude=4.711, longitude=-74.07)) == (
            "4.7110, -74.0700"
        )

    async def test_bounding_box(self) -> None:
        validator = BoundsGeolocationValidator((0.0, -80.0, 10.0, -70.0))

        assert await validator.is_valid_coordinate(Location(latitude=5, longitude=-75))
        assert not await validator.is_valid_coordinate(Location(latitude=40, longitude=-3))


async def test_logging_dispatcher_emits_events() -> None:
    dispatcher = LoggingNotificationDispatcher()

    with capture_logs() as logs:
        await dispatcher.send_vaccination_reminder("BOV-2", "Brucellosis", NOW)

    [entry] = logs
    assert entry["event"] == "vaccination_reminder_notification"
    assert entry["log_level"] == "info"
    assert entry["component"] == "logging_notifications"
    assert entry["due_date"] == NOW.isoformat()


async def test_console_dispatcher_renders_alert() -> None:
    console = Console(record=True, width=100)
    dispatcher = ConsoleNotificationDispatcher(console)

    await dispatcher.send_health_alert(
        HealthAlert(
            id="alert-0001",
            bovine_id="BOV-1",
            alert_type=AlertType.HEALTH_DETERIORATION,
            severity=AlertSeverity.CRITICAL,
            message="Critical condition: Anthrax",
            details="Critical disease detected",
            trigger_date=NOW,
            related_record_id="disease-0001",
            actions=["contact emergency veterinarian"],
        )
    )
    await dispatcher.send_vaccination_reminder("BOV-2", "Brucellosis", NOW)

    output = console.export_text()
    assert "Critical condition: Anthrax" in output
    assert "CRITICAL" in output
    assert "contact emergency veterinarian" in output
    assert "Brucellosis for bovine BOV-2" in output
