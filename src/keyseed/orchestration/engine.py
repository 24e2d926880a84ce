"""Entry points for running a provisioning plan."""

from __future__ import annotations

import asyncio

from keyseed.clients.directory import DirectoryClient
from keyseed.config import Settings, get_settings
from keyseed.logging import configure_logging
from keyseed.orchestration.plan import ProvisioningPlan
from keyseed.orchestration.registry import TaskRegistry
from keyseed.orchestration.results import ProvisioningResult
from keyseed.orchestration.scheduler import BarrierScheduler
from keyseed.resolver import IdempotentResolver


def build_scheduler(client: DirectoryClient, settings: Settings) -> BarrierScheduler:
    """Wire a fresh resolver and task registry for a single run."""
    resolver = IdempotentResolver(
        client,
        cache_size=settings.resolver_cache_size,
        cache_ttl=settings.resolver_cache_ttl,
    )
    registry = TaskRegistry(max_concurrency=settings.max_concurrency)
    return BarrierScheduler(resolver, registry, barrier_timeout=settings.barrier_timeout)


async def run_plan(
    plan: ProvisioningPlan,
    client: DirectoryClient,
    settings: Settings | None = None,
) -> ProvisioningResult:
    """Provision every entity in ``plan``.

    Safe to re-run: entities that already exist are found, not recreated.
    """
    scheduler = build_scheduler(client, settings or get_settings())
    return await scheduler.run(plan)


def provision(
    plan: ProvisioningPlan,
    client: DirectoryClient,
    settings: Settings | None = None,
) -> ProvisioningResult:
    """Synchronous wrapper around ``run_plan`` for bootstrap scripts."""
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_format)
    return asyncio.run(run_plan(plan, client, settings))
