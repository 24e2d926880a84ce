"""Idempotent identity directory provisioning with barrier-synchronized tasks."""

from keyseed.errors import (
    AggregatedBarrierFailure,
    BarrierTimeout,
    DirectoryError,
    DuplicateTaskError,
    EntityExistsError,
    ExitCode,
    KeyseedError,
    PlanError,
)
from keyseed.models import EntityKind, EntitySpec, Ref, TaskState
from keyseed.orchestration import (
    BarrierScheduler,
    PlanBuilder,
    ProvisioningPlan,
    ProvisioningResult,
    TaskRegistry,
    load_plan,
    provision,
    run_plan,
)
from keyseed.resolver import IdempotentResolver
from keyseed.topology import default_plan

__version__ = "0.1.0"

__all__ = [
    "AggregatedBarrierFailure",
    "BarrierScheduler",
    "BarrierTimeout",
    "DirectoryError",
    "DuplicateTaskError",
    "EntityExistsError",
    "EntityKind",
    "EntitySpec",
    "ExitCode",
    "IdempotentResolver",
    "KeyseedError",
    "PlanBuilder",
    "PlanError",
    "ProvisioningPlan",
    "ProvisioningResult",
    "Ref",
    "TaskRegistry",
    "TaskState",
    "default_plan",
    "load_plan",
    "provision",
    "run_plan",
]
