"""
Shared fixtures: a record manager wired to in-memory adapters, a fixed clock
and a notifier that records what it was asked to send.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from herd_adapters.biosecurity import LoggingBiosecurityWorkflow
from herd_adapters.geolocation import BoundsGeolocationValidator
from herd_adapters.memory.herd import InMemoryHerdDirectory
from herd_adapters.memory.inventory import InMemoryInventory
from herd_adapters.memory.repository import build_repositories
from herd_health.domain.models import HealthAlert
from herd_health.services.health_records import HealthRecordManager
from herd_health.services.ids import SequentialIdGenerator

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


class RecordingNotifier:
    def __init__(self) -> None:
        self.alerts: list[HealthAlert] = []
        self.reminders: list[tuple[str, str, datetime]] = []

    async def send_health_alert(self, alert: HealthAlert) -> None:
        self.alerts.append(alert)

    async def send_vaccination_reminder(
        self, bovine_id: str, vaccine_name: str, due_date: datetime
    ) -> None:
        self.reminders.append((bovine_id, vaccine_name, due_date))


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def inventory() -> InMemoryInventory:
    return InMemoryInventory(
        {"vacc_001": 100, "vacc_002": 100, "vacc_003": 100, "med_a": 100, "med_b": 100}
    )


@pytest.fixture
def herd() -> InMemoryHerdDirectory:
    directory = InMemoryHerdDirectory()
    for bovine_id in ("BOV-1", "BOV-2", "BOV-3"):
        directory.add(bovine_id, "ranch-1")
    return directory


@pytest.fixture
def biosecurity() -> LoggingBiosecurityWorkflow:
    return LoggingBiosecurityWorkflow()


@pytest.fixture
def make_manager(
    clock: FixedClock,
    notifier: RecordingNotifier,
    inventory: InMemoryInventory,
    herd: InMemoryHerdDirectory,
    biosecurity: LoggingBiosecurityWorkflow,
) -> Callable[..., HealthRecordManager]:
    """Build a manager; any collaborator can be swapped by keyword."""

    def build(**overrides: Any) -> HealthRecordManager:
        collaborators: dict[str, Any] = {
            "repositories": build_repositories(),
            "notifier": notifier,
            "geolocation": BoundsGeolocationValidator(),
            "inventory": inventory,
            "herd": herd,
            "biosecurity": biosecurity,
            "id_generator": SequentialIdGenerator(),
            "clock": clock,
        }
        collaborators.update(overrides)
        return HealthRecordManager(**collaborators)

    return build


@pytest.fixture
def manager(make_manager: Callable[..., HealthRecordManager]) -> HealthRecordManager:
    return make_manager()
