"""In-memory herd directory."""

from collections.abc import Iterable
from datetime import datetime

from herd_health.domain.models import HerdMember


class InMemoryHerdDirectory:
    def __init__(self, members: Iterable[HerdMember] = ()) -> None:
        self._members: dict[str, HerdMember] = {m.bovine_id: m for m in members}

    def add(self, bovine_id: str, ranch_id: str) -> HerdMember:
        member = HerdMember(bovine_id=bovine_id, ranch_id=ranch_id)
        self._members[bovine_id] = member
        return member

    def mark_deceased(self, bovine_id: str, at: datetime) -> None:
        self._members[bovine_id] = HerdMember.model_validate(
            self._members[bovine_id].model_dump() | {"deceased_at": at}
        )

    async def list_members(self, ranch_id: str | None = None) -> list[HerdMember]:
        return [m for m in self._members.values() if ranch_id is None or m.ranch_id == ranch_id]
