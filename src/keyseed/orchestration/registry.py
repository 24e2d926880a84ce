"""Named background tasks and barrier waits for one provisioning run."""

from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import structlog

from keyseed.errors import (
    AggregatedBarrierFailure,
    BarrierTimeout,
    DuplicateTaskError,
    UnknownTaskError,
)
from keyseed.models import TaskState

logger = structlog.get_logger()

Work = Callable[[], Awaitable[Any]]


@dataclass
class TaskHandle:
    """Bookkeeping for one named task. Terminal state is set exactly once."""

    name: str
    state: TaskState = TaskState.PENDING
    result: Any = None
    error: BaseException | None = None
    started_at: float | None = None
    finished_at: float | None = None
    _task: asyncio.Task[None] | None = field(default=None, repr=False)

    @property
    def done(self) -> bool:
        return self.state.terminal


class TaskRegistry:
    """Tracks named asynchronous units of work and their outcomes.

    ``submit`` schedules work without blocking; ``wait`` is the only place a
    caller suspends. Task failures are stored on the handle and surface,
    aggregated, at the next ``wait`` that names the task.
    """

    def __init__(self, *, max_concurrency: int | None = None) -> None:
        self._lock = threading.Lock()
        self._handles: dict[str, TaskHandle] = {}
        self._max_concurrency = max_concurrency
        self._semaphore: asyncio.Semaphore | None = None

    def submit(self, name: str, work: Work) -> TaskHandle:
        """Register ``name`` and start running ``work()`` in the background.

        Must be called from inside a running event loop.
        """
        handle = TaskHandle(name=name)
        with self._lock:
            if name in self._handles:
                raise DuplicateTaskError(name)
            self._handles[name] = handle
        handle._task = asyncio.get_running_loop().create_task(
            self._run(handle, work), name=f"keyseed:{name}"
        )
        logger.debug("task_submitted", task=name)
        return handle

    async def _run(self, handle: TaskHandle, work: Work) -> None:
        semaphore = self._get_semaphore()
        if semaphore is not None:
            await semaphore.acquire()
        try:
            self._transition(handle, TaskState.RUNNING)
            try:
                result = await work()
            except asyncio.CancelledError as exc:
                self._transition(handle, TaskState.FAILED, error=exc)
                raise
            except Exception as exc:
                self._transition(handle, TaskState.FAILED, error=exc)
                logger.warning(
                    "task_failed",
                    task=handle.name,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
            else:
                self._transition(handle, TaskState.SUCCEEDED, result=result)
                logger.debug("task_succeeded", task=handle.name)
        finally:
            if semaphore is not None:
                semaphore.release()

    def _get_semaphore(self) -> asyncio.Semaphore | None:
        if self._max_concurrency is None:
            return None
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self._max_concurrency)
        return self._semaphore

    def _transition(
        self,
        handle: TaskHandle,
        state: TaskState,
        *,
        result: Any = None,
        error: BaseException | None = None,
    ) -> None:
        now = time.monotonic()
        with self._lock:
            handle.state = state
            if state is TaskState.RUNNING:
                handle.started_at = now
            else:
                handle.result = result
                handle.error = error
                handle.finished_at = now

    async def wait(self, *names: str, timeout: float | None = None) -> dict[str, Any]:
        """Block until every named task is terminal and return their results.

        Raises ``AggregatedBarrierFailure`` naming every failed task, but only
        once all named tasks have finished. On ``timeout`` raises
        ``BarrierTimeout`` and leaves the tasks running.
        """
        wanted = list(dict.fromkeys(names))
        with self._lock:
            missing = [name for name in wanted if name not in self._handles]
            handles = [self._handles[name] for name in wanted if name in self._handles]
        if missing:
            raise UnknownTaskError(missing)

        tasks = [h._task for h in handles if not h.done and h._task is not None]
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            if pending:
                stalled = [h.name for h in handles if not h.done]
                logger.warning("barrier_timeout", pending=stalled, timeout=timeout)
                raise BarrierTimeout(stalled, timeout or 0.0)

        with self._lock:
            failures = {
                h.name: h.error
                for h in handles
                if h.state is TaskState.FAILED and h.error is not None
            }
            results = {h.name: h.result for h in handles if h.state is TaskState.SUCCEEDED}
        if failures:
            logger.error("barrier_failed", failed=sorted(failures), awaited=len(handles))
            raise AggregatedBarrierFailure(failures)
        logger.debug("barrier_cleared", tasks=wanted)
        return results

    async def wait_all(self, *, timeout: float | None = None) -> dict[str, Any]:
        """Wait for every task submitted so far."""
        return await self.wait(*self.names(), timeout=timeout)

    def get(self, name: str) -> TaskHandle | None:
        with self._lock:
            return self._handles.get(name)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._handles)

    def handles(self) -> list[TaskHandle]:
        with self._lock:
            return list(self._handles.values())

    def pending(self) -> list[str]:
        with self._lock:
            return [name for name, h in self._handles.items() if not h.done]

    def results(self) -> dict[str, Any]:
        """Results of every task that has succeeded so far."""
        with self._lock:
            return {
                name: h.result
                for name, h in self._handles.items()
                if h.state is TaskState.SUCCEEDED
            }

    def failures(self) -> dict[str, BaseException]:
        with self._lock:
            return {
                name: h.error
                for name, h in self._handles.items()
                if h.state is TaskState.FAILED and h.error is not None
            }

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._handles

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)
