from __future__ import annotations

import asyncio
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Mapping

from keyseed.errors import DirectoryError, EntityExistsError
from keyseed.models import EntityKind, relationship_id

_RELATIONSHIPS = (EntityKind.GROUP_MEMBERSHIP, EntityKind.ROLE_ASSIGNMENT)


@dataclass
class StoredEntity:
    id: str
    kind: EntityKind
    key: dict[str, str]
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass
class _Fault:
    kind: EntityKind
    match: dict[str, str]
    message: str
    remaining: int | None

    def hits(self, kind: EntityKind, key: Mapping[str, str]) -> bool:
        if kind is not self.kind or self.remaining == 0:
            return False
        return all(key.get(k) == v for k, v in self.match.items())


class InMemoryDirectory:
    """In-process directory for local runs and tests.

    Natural keys are unique per kind, like the real service. ``latency``
    is awaited inside each call so concurrent callers interleave between
    their lookup and their create.
    """

    def __init__(self, *, latency: float = 0.0) -> None:
        self._latency = latency
        self._tables: dict[EntityKind, dict[tuple[tuple[str, str], ...], StoredEntity]] = {
            kind: {} for kind in EntityKind
        }
        self._faults: list[_Fault] = []
        self.find_calls: Counter[EntityKind] = Counter()
        self.create_calls: Counter[EntityKind] = Counter()

    def fail(
        self,
        kind: EntityKind,
        message: str = "rejected by directory",
        *,
        times: int | None = None,
        **match: str,
    ) -> None:
        """Make calls for ``kind`` whose key matches ``match`` raise DirectoryError."""
        self._faults.append(_Fault(kind, dict(match), message, times))

    def seed(
        self,
        kind: EntityKind,
        key: Mapping[str, str],
        attributes: Mapping[str, Any] | None = None,
        *,
        entity_id: str | None = None,
    ) -> str:
        """Insert an entity directly, bypassing call counters."""
        stored = self._store(kind, key, attributes or {}, entity_id)
        return stored.id

    def entities(self, kind: EntityKind) -> list[StoredEntity]:
        return list(self._tables[kind].values())

    def count(self, kind: EntityKind) -> int:
        return len(self._tables[kind])

    def get(self, kind: EntityKind, key: Mapping[str, str]) -> StoredEntity | None:
        return self._tables[kind].get(_index(key))

    async def find(self, kind: EntityKind, key: Mapping[str, str]) -> str | None:
        self.find_calls[kind] += 1
        self._check_faults(kind, key)
        await asyncio.sleep(self._latency)
        stored = self._tables[kind].get(_index(key))
        return stored.id if stored else None

    async def create(
        self,
        kind: EntityKind,
        key: Mapping[str, str],
        attributes: Mapping[str, Any],
    ) -> str:
        self.create_calls[kind] += 1
        self._check_faults(kind, key)
        await asyncio.sleep(self._latency)
        # Check and insert run without yielding to the event loop.
        if _index(key) in self._tables[kind]:
            raise EntityExistsError(
                f"{kind.value} already exists",
                {"kind": kind.value, "key": dict(key)},
            )
        return self._store(kind, key, attributes, None).id

    def _store(
        self,
        kind: EntityKind,
        key: Mapping[str, str],
        attributes: Mapping[str, Any],
        entity_id: str | None,
    ) -> StoredEntity:
        if entity_id is None:
            entity_id = relationship_id(kind, key) if kind in _RELATIONSHIPS else uuid.uuid4().hex
        stored = StoredEntity(id=entity_id, kind=kind, key=dict(key), attributes=dict(attributes))
        self._tables[kind][_index(key)] = stored
        return stored

    def _check_faults(self, kind: EntityKind, key: Mapping[str, str]) -> None:
        for fault in self._faults:
            if fault.hits(kind, key):
                if fault.remaining is not None:
                    fault.remaining -= 1
                raise DirectoryError(fault.message, {"kind": kind.value, "key": dict(key)})


def _index(key: Mapping[str, str]) -> tuple[tuple[str, str], ...]:
    return tuple(sorted((k, str(v)) for k, v in key.items()))
