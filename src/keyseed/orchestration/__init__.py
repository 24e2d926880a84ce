"""Orchestration of provisioning runs: plans, task registry and barrier scheduling."""

from keyseed.orchestration.engine import build_scheduler, provision, run_plan
from keyseed.orchestration.loader import load_plan, parse_plan
from keyseed.orchestration.plan import (
    Phase,
    PlanBuilder,
    PlanStep,
    ProvisioningPlan,
    expand_names,
)
from keyseed.orchestration.registry import TaskHandle, TaskRegistry
from keyseed.orchestration.results import ProvisioningResult, ResultCollector
from keyseed.orchestration.scheduler import BarrierScheduler

__all__ = [
    "BarrierScheduler",
    "Phase",
    "PlanBuilder",
    "PlanStep",
    "ProvisioningPlan",
    "ProvisioningResult",
    "ResultCollector",
    "TaskHandle",
    "TaskRegistry",
    "build_scheduler",
    "expand_names",
    "load_plan",
    "parse_plan",
    "provision",
    "run_plan",
]
