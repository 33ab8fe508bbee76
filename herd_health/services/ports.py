"""
Contracts for everything the engine talks to but does not own.

Collaborators are structural Protocols; any object with matching async
methods can be injected, including the in-memory adapters.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, Protocol, TypeVar

from herd_health.domain.models import (
    DiseaseRecord,
    HealthAlert,
    HerdMember,
    Location,
    MedicalRecord,
    Medication,
    TreatmentPlan,
    Vaccination,
)

EntityT = TypeVar("EntityT")


@dataclass(frozen=True)
class DateRange:
    """Inclusive range; either bound may be open."""

    start: datetime | None = None
    end: datetime | None = None

    def contains(self, value: datetime | None) -> bool:
        if value is None:
            return False
        if self.start is not None and value < self.start:
            return False
        if self.end is not None and value > self.end:
            return False
        return True


@dataclass(frozen=True)
class RecordQuery:
    """
    Storage-neutral predicate.

    Only equality, inclusive date ranges and set membership are used, so any
    repository that can express those three filters can back the engine.
    """

    equals: dict[str, Any] = field(default_factory=dict)
    ranges: dict[str, DateRange] = field(default_factory=dict)
    members: dict[str, frozenset[Any]] = field(default_factory=dict)
    order_by: str | None = None
    descending: bool = False

    @classmethod
    def where(
        cls,
        *,
        order_by: str | None = None,
        descending: bool = False,
        ranges: dict[str, DateRange] | None = None,
        members: dict[str, Iterable[Any]] | None = None,
        **equals: Any,
    ) -> "RecordQuery":
        return cls(
            equals=equals,
            ranges=ranges or {},
            members={name: frozenset(values) for name, values in (members or {}).items()},
            order_by=order_by,
            descending=descending,
        )


class Repository(Protocol, Generic[EntityT]):
    """Per-entity storage operations."""

    async def create(self, entity: EntityT) -> EntityT: ...

    async def get(self, entity_id: str) -> EntityT | None: ...

    async def update(self, entity: EntityT) -> EntityT: ...

    async def find_all(self, query: RecordQuery) -> list[EntityT]: ...

    async def count(self, query: RecordQuery) -> int: ...


@dataclass
class HealthRepositories:
    """One repository per entity kind."""

    medical_records: Repository[MedicalRecord]
    medications: Repository[Medication]
    vaccinations: Repository[Vaccination]
    treatments: Repository[TreatmentPlan]
    diseases: Repository[DiseaseRecord]
    alerts: Repository[HealthAlert]


class NotificationDispatcher(Protocol):
    """Outbound messaging. Fire-and-forget from the engine's perspective."""

    async def send_health_alert(self, alert: HealthAlert) -> None: ...

    async def send_vaccination_reminder(
        self, bovine_id: str, vaccine_name: str, due_date: datetime
    ) -> None: ...


class GeolocationValidator(Protocol):
    async def is_valid_coordinate(self, location: Location) -> bool: ...

    async def describe(self, location: Location) -> str: ...


class InventoryManager(Protocol):
    """Stock accounting lives here; the engine only asks, reserves and consumes."""

    async def check_availability(self, medication_id: str, quantity: float) -> bool: ...

    async def reserve(self, medication_id: str, quantity: float) -> None: ...

    async def release(self, medication_id: str, quantity: float) -> None: ...

    async def consume(self, vaccine_id: str, quantity: float) -> None: ...


class HerdDirectory(Protocol):
    """Which animals belong to which ranch."""

    async def list_members(self, ranch_id: str | None = None) -> list[HerdMember]: ...


class BiosecurityWorkflow(Protocol):
    """External workflows triggered by disease detection."""

    async def initiate_quarantine(self, bovine_id: str, end_date: datetime | None) -> None: ...

    async def handle_contagious_disease(self, disease: DiseaseRecord) -> None: ...

    async def report_notifiable_disease(self, disease: DiseaseRecord) -> None: ...
