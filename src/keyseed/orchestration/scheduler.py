"""Fan-out / barrier execution of provisioning plans."""

from __future__ import annotations

import time
import uuid
from typing import Any

import structlog

from keyseed.errors import AggregatedBarrierFailure, BarrierTimeout, KeyseedError
from keyseed.logging import bind_context
from keyseed.orchestration.plan import PlanStep, ProvisioningPlan
from keyseed.orchestration.registry import TaskRegistry
from keyseed.orchestration.results import ProvisioningResult, ResultCollector
from keyseed.resolver import IdempotentResolver

logger = structlog.get_logger()


class BarrierScheduler:
    """Runs a plan phase by phase against an ``IdempotentResolver``.

    Before a phase is submitted, the scheduler waits for the union of the
    prerequisites its steps declare, then binds their results into the
    steps' references. Tasks from earlier phases that nobody declared as a
    prerequisite keep running across the barrier. A failed barrier stops
    the run; tasks already submitted still run to completion.
    """

    def __init__(
        self,
        resolver: IdempotentResolver,
        registry: TaskRegistry | None = None,
        *,
        barrier_timeout: float | None = None,
    ) -> None:
        self._resolver = resolver
        self._registry = registry or TaskRegistry()
        self._barrier_timeout = barrier_timeout

    @property
    def registry(self) -> TaskRegistry:
        return self._registry

    def submit(self, step: PlanStep, results: dict[str, Any]) -> None:
        """Submit one step with its references bound from ``results``."""
        spec = step.spec.bind(results)
        self._registry.submit(step.name, lambda: self._resolver.resolve(spec))

    async def barrier(self, names: list[str]) -> dict[str, Any]:
        if not names:
            return {}
        results = await self._registry.wait(*names, timeout=self._barrier_timeout)
        logger.info("barrier_cleared", tasks=len(names))
        return results

    async def run(self, plan: ProvisioningPlan) -> ProvisioningResult:
        plan.validate()
        collector = ResultCollector()
        start = time.monotonic()
        log = bind_context(run_id=uuid.uuid4().hex[:12], phases=len(plan.phases), steps=len(plan))
        log.info("provisioning_started")

        try:
            for index, phase in enumerate(plan.phases):
                results = await self.barrier(phase.prerequisites)
                log.info("phase_submitted", phase=index, steps=len(phase.steps))
                for step in phase.steps:
                    self.submit(step, results)
        except AggregatedBarrierFailure as exc:
            log.error("provisioning_halted", failed=list(exc.failures))
        except BarrierTimeout as exc:
            log.error("provisioning_halted", timed_out=exc.pending)
            collector.record_timeout(exc.pending)
        except KeyseedError as exc:
            log.error("provisioning_aborted", error=exc.message)
            collector.record_error(exc)

        await self._drain(collector)

        for handle in self._registry.handles():
            if handle.error is not None:
                collector.record_failure(handle.name, handle.error)
            elif handle.done:
                collector.record(handle.name, handle.result)
        collector.record_skipped([name for name in plan.names() if name not in self._registry])

        result = collector.finalize(time.monotonic() - start)
        log.info(
            "provisioning_finished",
            success=result.success,
            entities=len(result.entities),
            failed=sorted(result.failures),
            skipped=len(result.skipped),
            duration=round(result.duration_seconds, 3),
        )
        return result

    async def _drain(self, collector: ResultCollector) -> None:
        """Wait for every submitted task to reach a terminal state."""
        try:
            await self._registry.wait_all(timeout=self._barrier_timeout)
        except AggregatedBarrierFailure:
            pass  # failures are read from the handles
        except BarrierTimeout as exc:
            collector.record_timeout(exc.pending)
