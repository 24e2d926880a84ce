"""
Provisioning plans.

A plan is data: an ordered list of phases, each a list of named steps. Every
step carries the names of the tasks it must wait for. Steps inside a phase
are independent of each other; a step may only depend on steps of earlier
phases.
"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass, field
from typing import Any, Iterator

from keyseed.errors import DuplicateTaskError, PlanError
from keyseed.models import EntityKind, EntitySpec, Ref

_BRACES = re.compile(r"\{([^{}]*)\}")


def expand_names(*patterns: str) -> list[str]:
    """Expand brace patterns into literal task names.

    ``expand_names("ks-demo-{member,admin}")`` gives
    ``["ks-demo-member", "ks-demo-admin"]``. Several groups expand to their
    cartesian product; nesting is not supported.
    """
    names: list[str] = []
    for pattern in patterns:
        pieces = _BRACES.split(pattern)
        literals, groups = pieces[0::2], pieces[1::2]
        if any("{" in lit or "}" in lit for lit in literals):
            raise PlanError(f"Unbalanced or nested braces in '{pattern}'")
        options = [group.split(",") for group in groups]
        for combo in itertools.product(*options):
            name = literals[0]
            for choice, literal in zip(combo, literals[1:]):
                name += choice + literal
            names.append(name)
    return list(dict.fromkeys(names))


@dataclass(frozen=True)
class PlanStep:
    name: str
    spec: EntitySpec
    requires: tuple[str, ...] = ()


@dataclass
class Phase:
    steps: list[PlanStep] = field(default_factory=list)

    @property
    def prerequisites(self) -> list[str]:
        """Union of the steps' prerequisites, in declaration order."""
        return list(dict.fromkeys(name for step in self.steps for name in step.requires))


@dataclass
class ProvisioningPlan:
    phases: list[Phase] = field(default_factory=list)

    def steps(self) -> Iterator[PlanStep]:
        for phase in self.phases:
            yield from phase.steps

    def names(self) -> list[str]:
        return [step.name for step in self.steps()]

    def __len__(self) -> int:
        return sum(len(phase.steps) for phase in self.phases)

    def validate(self) -> "ProvisioningPlan":
        """Check names are unique and every dependency points backwards."""
        earlier: set[str] = set()
        for index, phase in enumerate(self.phases):
            current: set[str] = set()
            for step in phase.steps:
                if step.name in earlier or step.name in current:
                    raise DuplicateTaskError(step.name)
                current.add(step.name)
            for step in phase.steps:
                unknown = [name for name in step.requires if name not in earlier]
                if unknown:
                    raise PlanError(
                        f"Step '{step.name}' in phase {index} requires steps not in an earlier phase",
                        {"step": step.name, "requires": unknown},
                    )
                undeclared = step.spec.refs() - set(step.requires)
                if undeclared:
                    raise PlanError(
                        f"Step '{step.name}' references undeclared prerequisites",
                        {"step": step.name, "refs": sorted(undeclared)},
                    )
            earlier |= current
        return self


class PlanBuilder:
    """Fluent construction of a ``ProvisioningPlan``.

    Prerequisites are inferred from ``Ref`` values; ``after`` adds ordering
    the refs do not express. ``barrier()`` closes the current phase.
    """

    def __init__(self) -> None:
        self._phases: list[Phase] = [Phase()]

    def step(self, name: str, spec: EntitySpec, *, after: tuple[str, ...] | list[str] = ()) -> Ref:
        requires = tuple(dict.fromkeys([*sorted(spec.refs()), *after]))
        self._phases[-1].steps.append(PlanStep(name=name, spec=spec, requires=requires))
        return Ref(name)

    def barrier(self) -> "PlanBuilder":
        if self._phases[-1].steps:
            self._phases.append(Phase())
        return self

    def domain(self, task: str, name: str, *, description: str | None = None) -> Ref:
        return self.step(
            task,
            EntitySpec(EntityKind.DOMAIN, {"name": name}, _attrs(description=description)),
        )

    def project(
        self,
        task: str,
        name: str,
        domain: str | Ref,
        *,
        description: str | None = None,
    ) -> Ref:
        return self.step(
            task,
            EntitySpec(
                EntityKind.PROJECT,
                {"name": name, "domain": domain},
                _attrs(description=description),
            ),
        )

    def user(
        self,
        task: str,
        name: str,
        domain: str | Ref,
        *,
        password: str | None = None,
        email: str | None = None,
    ) -> Ref:
        return self.step(
            task,
            EntitySpec(
                EntityKind.USER,
                {"name": name, "domain": domain},
                _attrs(password=password, email=email),
            ),
        )

    def role(self, task: str, name: str) -> Ref:
        return self.step(task, EntitySpec(EntityKind.ROLE, {"name": name}))

    def group(
        self,
        task: str,
        name: str,
        domain: str | Ref,
        *,
        description: str | None = None,
    ) -> Ref:
        return self.step(
            task,
            EntitySpec(
                EntityKind.GROUP,
                {"name": name, "domain": domain},
                _attrs(description=description),
            ),
        )

    def member(self, task: str, *, group: str | Ref, user: str | Ref) -> Ref:
        return self.step(
            task,
            EntitySpec(EntityKind.GROUP_MEMBERSHIP, {"group": group, "user": user}),
        )

    def grant(
        self,
        task: str,
        *,
        role: str | Ref,
        user: str | Ref | None = None,
        group: str | Ref | None = None,
        project: str | Ref | None = None,
        system: str | None = None,
    ) -> Ref:
        """Assign ``role`` to a user or group on a project or the system."""
        key: dict[str, Any] = {"role": role}
        for field_name, value in (("user", user), ("group", group), ("project", project), ("system", system)):
            if value is not None:
                key[field_name] = value
        return self.step(task, EntitySpec(EntityKind.ROLE_ASSIGNMENT, key))

    def build(self) -> ProvisioningPlan:
        phases = [phase for phase in self._phases if phase.steps]
        return ProvisioningPlan(phases=phases).validate()


def _attrs(**values: Any) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}
