"""
Directory entity models.

An ``EntitySpec`` describes one get-or-create request: the entity kind,
its natural key and the attributes used only when the entity is created.
Keys and attributes of dependent steps may hold ``Ref`` placeholders that
stand for the ID produced by another named task.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from keyseed.errors import PlanError


class EntityKind(str, Enum):
    DOMAIN = "domain"
    PROJECT = "project"
    USER = "user"
    ROLE = "role"
    GROUP = "group"
    GROUP_MEMBERSHIP = "group_membership"
    ROLE_ASSIGNMENT = "role_assignment"


class TaskState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (TaskState.SUCCEEDED, TaskState.FAILED)


# Natural key fields per kind. Role assignments are checked separately
# because they take one actor field and one scope field.
KEY_FIELDS: dict[EntityKind, frozenset[str]] = {
    EntityKind.DOMAIN: frozenset({"name"}),
    EntityKind.PROJECT: frozenset({"name", "domain"}),
    EntityKind.USER: frozenset({"name", "domain"}),
    EntityKind.ROLE: frozenset({"name"}),
    EntityKind.GROUP: frozenset({"name", "domain"}),
    EntityKind.GROUP_MEMBERSHIP: frozenset({"group", "user"}),
}

ACTOR_FIELDS = frozenset({"user", "group"})
SCOPE_FIELDS = frozenset({"project", "system"})

NaturalKey = tuple[EntityKind, tuple[tuple[str, str], ...]]


@dataclass(frozen=True)
class Ref:
    """The entity ID produced by the task called ``task``."""

    task: str

    def __str__(self) -> str:
        return f"<{self.task}>"


@dataclass(frozen=True, eq=False)
class EntitySpec:
    """A single get-or-create request against the directory."""

    kind: EntityKind
    key: Mapping[str, Any]
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        fields = set(self.key)
        if self.kind is EntityKind.ROLE_ASSIGNMENT:
            if (
                "role" not in fields
                or len(fields & ACTOR_FIELDS) != 1
                or len(fields & SCOPE_FIELDS) != 1
                or fields - ACTOR_FIELDS - SCOPE_FIELDS - {"role"}
            ):
                raise PlanError(
                    "Role assignment needs 'role', one of user/group and one of project/system",
                    {"key": sorted(fields)},
                )
        elif fields != KEY_FIELDS[self.kind]:
            raise PlanError(
                f"Invalid natural key for {self.kind.value}",
                {"expected": sorted(KEY_FIELDS[self.kind]), "got": sorted(fields)},
            )

    def refs(self) -> set[str]:
        """Names of tasks whose results this spec depends on."""
        values = list(self.key.values()) + list(self.attributes.values())
        return {value.task for value in values if isinstance(value, Ref)}

    def bind(self, results: Mapping[str, str]) -> EntitySpec:
        """Return a copy with every ``Ref`` replaced by its task's result."""

        def _sub(value: Any) -> Any:
            if isinstance(value, Ref):
                try:
                    return results[value.task]
                except KeyError:
                    raise PlanError(f"No result for task '{value.task}'") from None
            return value

        return EntitySpec(
            kind=self.kind,
            key={k: _sub(v) for k, v in self.key.items()},
            attributes={k: _sub(v) for k, v in self.attributes.items()},
        )

    @property
    def bound(self) -> bool:
        return not self.refs()

    def natural_key(self) -> NaturalKey:
        if not self.bound:
            raise PlanError(f"Unbound references in {self.kind.value} key: {sorted(self.refs())}")
        return self.kind, tuple(sorted((k, str(v)) for k, v in self.key.items()))

    def describe(self) -> str:
        parts = ", ".join(f"{k}={v}" for k, v in sorted(self.key.items()))
        return f"{self.kind.value}({parts})"


def relationship_id(kind: EntityKind, key: Mapping[str, str]) -> str:
    """Deterministic ID for entities the directory does not assign IDs to."""
    if kind is EntityKind.GROUP_MEMBERSHIP:
        return f"{key['group']}:{key['user']}"
    if kind is EntityKind.ROLE_ASSIGNMENT:
        actor = key.get("user") or key["group"]
        scope = f"project/{key['project']}" if "project" in key else f"system/{key['system']}"
        return f"{key['role']}@{actor}:{scope}"
    raise ValueError(f"{kind.value} entities have directory-assigned IDs")
