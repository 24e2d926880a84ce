"""
Idempotent get-or-create resolution of directory entities.

Each natural key is resolved at most once at a time: concurrent callers for
the same key share one in-flight lookup/create, so the directory sees a
single create call and every caller gets the same ID. A create that loses a
race against another writer (``EntityExistsError``) is answered by looking
the winner up again.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import structlog
from cachetools import TTLCache  # type: ignore[import-untyped]

from keyseed.clients.directory import DirectoryClient
from keyseed.errors import DirectoryError, EntityExistsError
from keyseed.models import EntitySpec, NaturalKey

logger = structlog.get_logger()


@dataclass
class IdempotentResolver:
    """Get-or-create front end over a ``DirectoryClient``.

    Attributes supplied for an entity that already exists are ignored; the
    resolver never updates. Failures are not cached, so resolving the same
    key again retries it.
    """

    client: DirectoryClient
    cache_size: int = 1000
    cache_ttl: int = 3600

    _cache: TTLCache = field(init=False)
    _inflight: dict[NaturalKey, asyncio.Task[str]] = field(init=False, default_factory=dict)

    def __post_init__(self) -> None:
        self._cache = TTLCache(maxsize=self.cache_size, ttl=self.cache_ttl)

    async def resolve(self, spec: EntitySpec) -> str:
        """Return the ID of the entity with ``spec``'s natural key, creating it if absent."""
        natural_key = spec.natural_key()

        cached = self._cache.get(natural_key)
        if cached is not None:
            return cached

        task = self._inflight.get(natural_key)
        if task is None:
            task = asyncio.ensure_future(self._resolve_once(spec, natural_key))
            self._inflight[natural_key] = task
            task.add_done_callback(lambda _: self._inflight.pop(natural_key, None))
        return await task

    async def _resolve_once(self, spec: EntitySpec, natural_key: NaturalKey) -> str:
        log = logger.bind(entity=spec.describe())
        key = {k: str(v) for k, v in spec.key.items()}
        try:
            entity_id = await self.client.find(spec.kind, key)
            if entity_id is not None:
                log.debug("entity_found", entity_id=entity_id)
            else:
                try:
                    entity_id = await self.client.create(spec.kind, key, dict(spec.attributes))
                    log.info("entity_created", entity_id=entity_id)
                except EntityExistsError:
                    log.info("create_conflict")
                    entity_id = await self.client.find(spec.kind, key)
                    if entity_id is None:
                        raise DirectoryError(
                            f"{spec.describe()} reported as existing but not found",
                            {"kind": spec.kind.value},
                        ) from None
        except DirectoryError:
            raise
        except Exception as exc:
            raise DirectoryError(f"{spec.describe()}: {exc}", {"kind": spec.kind.value}) from exc

        self._cache[natural_key] = entity_id
        return entity_id
