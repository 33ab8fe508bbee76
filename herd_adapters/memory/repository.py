"""
In-memory storage backing the engine's repository contract.

Evaluates RecordQuery predicates directly against entity attributes. Each
call yields to the event loop once, like a real driver would, so concurrent
callers interleave realistically in tests.
"""

import asyncio
from typing import Any, Generic, TypeVar

from herd_health.domain.models import (
    DiseaseRecord,
    HealthAlert,
    MedicalRecord,
    Medication,
    TreatmentPlan,
    Vaccination,
)
from herd_health.services.ports import HealthRepositories, RecordQuery

EntityT = TypeVar("EntityT")


class DuplicateKeyError(ValueError):
    pass


def matches(entity: Any, query: RecordQuery) -> bool:
    for name, expected in query.equals.items():
        if getattr(entity, name) != expected:
            return False
    for name, date_range in query.ranges.items():
        if not date_range.contains(getattr(entity, name)):
            return False
    for name, allowed in query.members.items():
        if getattr(entity, name) not in allowed:
            return False
    return True


class InMemoryRepository(Generic[EntityT]):
    def __init__(self, name: str) -> None:
        self.name = name
        self._items: dict[str, EntityT] = {}

    async def create(self, entity: EntityT) -> EntityT:
        await asyncio.sleep(0)
        entity_id = getattr(entity, "id")
        if entity_id is None:
            raise ValueError(f"{self.name}: entity has no id")
        if entity_id in self._items:
            raise DuplicateKeyError(f"{self.name}: id {entity_id} already exists")
        self._items[entity_id] = entity
        return entity

    async def get(self, entity_id: str) -> EntityT | None:
        await asyncio.sleep(0)
        return self._items.get(entity_id)

    async def update(self, entity: EntityT) -> EntityT:
        await asyncio.sleep(0)
        entity_id = getattr(entity, "id")
        if entity_id not in self._items:
            raise KeyError(f"{self.name}: id {entity_id} does not exist")
        self._items[entity_id] = entity
        return entity

    async def find_all(self, query: RecordQuery) -> list[EntityT]:
        await asyncio.sleep(0)
        found = [item for item in self._items.values() if matches(item, query)]
        if query.order_by:
            order_by = query.order_by
            present = [item for item in found if getattr(item, order_by) is not None]
            missing = [item for item in found if getattr(item, order_by) is None]
            present.sort(
                key=lambda item: getattr(item, order_by),
                reverse=query.descending,
            )
            found = present + missing
        return found

    async def count(self, query: RecordQuery) -> int:
        return len(await self.find_all(query))

    def __len__(self) -> int:
        return len(self._items)


def build_repositories() -> HealthRepositories:
    return HealthRepositories(
        medical_records=InMemoryRepository[MedicalRecord]("medical_records"),
        medications=InMemoryRepository[Medication]("medications"),
        vaccinations=InMemoryRepository[Vaccination]("vaccinations"),
        treatments=InMemoryRepository[TreatmentPlan]("treatments"),
        diseases=InMemoryRepository[DiseaseRecord]("diseases"),
        alerts=InMemoryRepository[HealthAlert]("alerts"),
    )
