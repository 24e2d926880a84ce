"""
Identity (Keystone v3) directory client.

Maps the get-or-create vocabulary onto the v3 REST collections. Lookups use
the collection list filters, creations POST a single resource, and the two
relationship kinds (group membership, role assignment) use the idempotent
PUT endpoints the API offers for them.
"""

from __future__ import annotations

from typing import Any, Awaitable, Mapping, TypeVar

import structlog
from circuitbreaker import CircuitBreakerError

from keyseed.clients.base import BaseHTTPClient, PermanentHTTPError, RetryableHTTPError
from keyseed.config import Settings
from keyseed.errors import DirectoryError, EntityExistsError
from keyseed.models import EntityKind, relationship_id

logger = structlog.get_logger()

T = TypeVar("T")

# kind -> (collection path, singular body key)
_COLLECTIONS: dict[EntityKind, tuple[str, str]] = {
    EntityKind.DOMAIN: ("/v3/domains", "domain"),
    EntityKind.PROJECT: ("/v3/projects", "project"),
    EntityKind.USER: ("/v3/users", "user"),
    EntityKind.ROLE: ("/v3/roles", "role"),
    EntityKind.GROUP: ("/v3/groups", "group"),
}


class IdentityClient(BaseHTTPClient):
    """Directory client for a Keystone v3 compatible identity service."""

    def __init__(
        self,
        base_url: str,
        token: str | None,
        **kwargs: Any,
    ) -> None:
        super().__init__(base_url, **kwargs)
        self._token = token

    @classmethod
    def from_settings(cls, settings: Settings) -> "IdentityClient":
        return cls(
            settings.identity_url,
            settings.identity_token,
            timeout=settings.http_timeout,
            max_retries=settings.http_max_retries,
            backoff_factor=settings.http_retry_backoff_factor,
            backoff_max=settings.http_retry_backoff_max,
            circuit_failure_threshold=settings.circuit_failure_threshold,
            circuit_recovery_timeout=settings.circuit_recovery_timeout,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._token:
            headers["X-Auth-Token"] = self._token
        return headers

    async def find(self, kind: EntityKind, key: Mapping[str, str]) -> str | None:
        if kind is EntityKind.GROUP_MEMBERSHIP:
            return await self._find_membership(key)
        if kind is EntityKind.ROLE_ASSIGNMENT:
            return await self._find_assignment(key)

        path, singular = _COLLECTIONS[kind]
        params = {"name": key["name"]}
        if "domain" in key:
            params["domain_id"] = key["domain"]
        data = await self._call(kind, key, self.get(path, params=params))
        matches = data.get(f"{singular}s") or []
        if len(matches) > 1:
            raise DirectoryError(
                f"Ambiguous {kind.value} lookup",
                {"key": dict(key), "matches": [m.get("id") for m in matches]},
            )
        return matches[0]["id"] if matches else None

    async def create(
        self,
        kind: EntityKind,
        key: Mapping[str, str],
        attributes: Mapping[str, Any],
    ) -> str:
        if kind in (EntityKind.GROUP_MEMBERSHIP, EntityKind.ROLE_ASSIGNMENT):
            await self._call(kind, key, self.put(_relationship_path(kind, key)))
            return relationship_id(kind, key)

        path, singular = _COLLECTIONS[kind]
        body: dict[str, Any] = {"name": key["name"]}
        if "domain" in key:
            body["domain_id"] = key["domain"]
        body.update({k: v for k, v in attributes.items() if v is not None})
        data = await self._call(kind, key, self.post(path, json={singular: body}))
        return data[singular]["id"]

    async def _find_membership(self, key: Mapping[str, str]) -> str | None:
        kind = EntityKind.GROUP_MEMBERSHIP
        try:
            await self._call(kind, key, self.head(_relationship_path(kind, key)))
        except _NotFound:
            return None
        return relationship_id(kind, key)

    async def _find_assignment(self, key: Mapping[str, str]) -> str | None:
        kind = EntityKind.ROLE_ASSIGNMENT
        params = {"role.id": key["role"]}
        if "user" in key:
            params["user.id"] = key["user"]
        else:
            params["group.id"] = key["group"]
        if "project" in key:
            params["scope.project.id"] = key["project"]
        else:
            params["scope.system"] = key["system"]
        data = await self._call(kind, key, self.get("/v3/role_assignments", params=params))
        if data.get("role_assignments"):
            return relationship_id(kind, key)
        return None

    async def _call(self, kind: EntityKind, key: Mapping[str, str], request: Awaitable[T]) -> T:
        details = {"kind": kind.value, "key": dict(key)}
        try:
            return await request
        except PermanentHTTPError as exc:
            if exc.status_code == 409:
                raise EntityExistsError(f"{kind.value} already exists", details) from exc
            if exc.status_code == 404:
                raise _NotFound(str(exc)) from exc
            raise DirectoryError(str(exc), details | {"status": exc.status_code}) from exc
        except RetryableHTTPError as exc:
            raise DirectoryError(f"Identity service unavailable: {exc}", details) from exc
        except CircuitBreakerError as exc:
            logger.warning("identity_circuit_open", kind=kind.value)
            raise DirectoryError(f"Identity service circuit open: {exc}", details) from exc


class _NotFound(DirectoryError):
    """A 404 from the service; only meaningful to membership lookups."""


def _relationship_path(kind: EntityKind, key: Mapping[str, str]) -> str:
    if kind is EntityKind.GROUP_MEMBERSHIP:
        return f"/v3/groups/{key['group']}/users/{key['user']}"
    if "project" in key:
        scope = f"/v3/projects/{key['project']}"
    else:
        scope = "/v3/system"
    actor = f"users/{key['user']}" if "user" in key else f"groups/{key['group']}"
    return f"{scope}/{actor}/roles/{key['role']}"

