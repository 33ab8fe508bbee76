"""
Identifier generation for engine entities.

Ids are ``<prefix>_<millis>_<random>``: a time component that never moves
backwards within a process, plus a random suffix so ids from different
processes do not collide.
"""

import secrets
import string
import threading
import time
from enum import Enum
from typing import Protocol


class EntityKind(str, Enum):
    RECORD = "health"
    MEDICATION = "med"
    VACCINATION = "vacc"
    TREATMENT = "treat"
    DISEASE = "disease"
    ALERT = "alert"


class IdGenerator(Protocol):
    def generate(self, kind: EntityKind) -> str: ...


_ALPHABET = string.ascii_lowercase + string.digits


class TimeRandomIdGenerator:
    """Default generator; safe to share between threads and tasks."""

    def __init__(self, random_length: int = 7) -> None:
        self.random_length = random_length
        self._lock = threading.Lock()
        # Per kind: the millisecond last used and the suffixes issued within it
        self._current: dict[EntityKind, tuple[int, set[str]]] = {}

    def generate(self, kind: EntityKind) -> str:
        with self._lock:
            last_millis, suffixes = self._current.get(kind, (0, set()))
            millis = time.time_ns() // 1_000_000
            if millis > last_millis:
                suffixes = set()
            else:
                millis = last_millis
            suffix = self._random_suffix()
            while suffix in suffixes:
                suffix = self._random_suffix()
            suffixes.add(suffix)
            self._current[kind] = (millis, suffixes)
        return f"{kind.value}_{millis}_{suffix}"

    def _random_suffix(self) -> str:
        return "".join(secrets.choice(_ALPHABET) for _ in range(self.random_length))


class SequentialIdGenerator:
    """Deterministic ids (``vacc-0001``), for tests and fixtures."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[EntityKind, int] = {}

    def generate(self, kind: EntityKind) -> str:
        with self._lock:
            value = self._counters.get(kind, 0) + 1
            self._counters[kind] = value
        return f"{kind.value}-{value:04d}"
