"""
Plan file loading.

Plans are YAML documents with a list of phases, each holding named steps:

    phases:
      - steps:
          - name: ks-project-demo
            kind: project
            key: {name: demo, domain: default}
            attributes: {description: Demo project}
          - name: ks-user-demo
            kind: user
            key: {name: demo, domain: default}
      - steps:
          - name: ks-demo-member
            kind: role_assignment
            key:
              role: member
              user: {ref: ks-user-demo}
              project: {ref: ks-project-demo}

``{ref: <task>}`` stands for the ID produced by another step and makes that
step a prerequisite. ``after`` lists extra prerequisites and accepts brace
patterns (``ks-demo-{member,admin}``), expanded when the file is loaded.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml

from keyseed.errors import ConfigurationError, PlanError
from keyseed.models import EntityKind, EntitySpec, Ref
from keyseed.orchestration.plan import Phase, PlanStep, ProvisioningPlan, expand_names

logger = structlog.get_logger()


def load_plan(path: str | Path) -> ProvisioningPlan:
    """Load and validate a plan from a YAML file."""
    plan_path = Path(path)
    try:
        with open(plan_path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigurationError(f"Cannot read plan file: {plan_path}", {"error": str(exc)}) from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in plan file: {plan_path}", {"error": str(exc)}) from exc

    plan = parse_plan(data)
    logger.debug("plan_loaded", path=str(plan_path), phases=len(plan.phases), steps=len(plan))
    return plan


def parse_plan(data: dict[str, Any]) -> ProvisioningPlan:
    """Build a validated plan from already-parsed data."""
    if not isinstance(data, dict) or not isinstance(data.get("phases"), list):
        raise PlanError("Plan must be a mapping with a 'phases' list")

    phases = []
    for index, raw_phase in enumerate(data["phases"]):
        raw_steps = raw_phase.get("steps") if isinstance(raw_phase, dict) else raw_phase
        if not isinstance(raw_steps, list):
            raise PlanError(f"Phase {index} must be a list of steps")
        phases.append(Phase(steps=[_parse_step(raw) for raw in raw_steps]))

    return ProvisioningPlan(phases=phases).validate()


def _parse_step(raw: Any) -> PlanStep:
    if not isinstance(raw, dict) or "name" not in raw or "kind" not in raw:
        raise PlanError("Each step needs 'name' and 'kind'", {"step": raw})

    name = str(raw["name"])
    try:
        kind = EntityKind(raw["kind"])
    except ValueError:
        raise PlanError(f"Unknown entity kind '{raw['kind']}'", {"step": name}) from None

    spec = EntitySpec(
        kind=kind,
        key={k: _parse_value(v) for k, v in (raw.get("key") or {}).items()},
        attributes={k: _parse_value(v) for k, v in (raw.get("attributes") or {}).items()},
    )
    after = expand_names(*[str(item) for item in raw.get("after") or []])
    requires = tuple(dict.fromkeys([*sorted(spec.refs()), *after]))
    return PlanStep(name=name, spec=spec, requires=requires)


def _parse_value(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value) != {"ref"}:
            raise PlanError("Mapping values must have the form {ref: <task>}", {"value": value})
        return Ref(str(value["ref"]))
    return value
