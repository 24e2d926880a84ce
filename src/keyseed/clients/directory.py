from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable

from keyseed.models import EntityKind


@runtime_checkable
class DirectoryClient(Protocol):
    """Narrow interface to the remote identity directory.

    ``find`` returns ``None`` when no entity has the natural key.
    ``create`` raises ``EntityExistsError`` when the key is already taken.
    Anything else the service rejects, or failing to reach it, surfaces as
    ``DirectoryError``.
    """

    async def find(self, kind: EntityKind, key: Mapping[str, str]) -> str | None:
        ...

    async def create(
        self,
        kind: EntityKind,
        key: Mapping[str, str],
        attributes: Mapping[str, Any],
    ) -> str:
        ...
