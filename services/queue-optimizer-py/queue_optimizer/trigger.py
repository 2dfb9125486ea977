from __future__ import annotations

"""
File: services/queue-optimizer-py/queue_optimizer/trigger.py
Purpose: Re-optimization trigger for newly queued inspection work.
Key responsibilities:
- Threshold predicate on pending job count.
- Launch orchestrated runs as detached asyncio tasks (fire-and-forget).
Provider calls block, so both the count and the run happen in worker threads.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from queue_optimizer.orchestrator import AssignmentSink, DataProvider, run_optimization
from queue_optimizer.schemas import OptimizationResult
from queue_optimizer.settings import settings

logger = logging.getLogger("queue-optimizer.trigger")

ResultCallback = Callable[[OptimizationResult], Awaitable[None]]

_background_tasks: set[asyncio.Task] = set()


def should_reoptimize(provider: DataProvider, machine_type: str, threshold: Optional[int] = None) -> bool:
    """True when enough jobs are waiting to make a re-run worthwhile."""
    limit = threshold if threshold is not None else settings.reoptimize_threshold
    return provider.count_pending_jobs(machine_type) >= limit


async def _run_detached(
    machine_type: str,
    provider: DataProvider,
    sink: AssignmentSink,
    on_result: Optional[ResultCallback],
) -> OptimizationResult:
    """Run the orchestrator off the event loop and hand the result to on_result."""
    result = await asyncio.to_thread(run_optimization, machine_type, provider, sink)
    if on_result is not None:
        await on_result(result)
    return result


def _on_task_done(task: asyncio.Task, machine_type: str) -> None:
    """Drop the task handle and log how the detached run ended."""
    _background_tasks.discard(task)
    if task.cancelled():
        logger.warning("background optimization cancelled machine_type=%s", machine_type)
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "background optimization failed machine_type=%s err=%s",
            machine_type,
            exc,
            exc_info=exc,
        )


async def schedule_reoptimization(
    machine_type: str,
    provider: DataProvider,
    sink: AssignmentSink,
    on_result: Optional[ResultCallback] = None,
) -> Optional[asyncio.Task]:
    """Start a detached re-optimization if the threshold holds.

    Only the pending-count check is awaited. The caller never observes the
    run's outcome; failures are logged by the task's done-callback.
    """
    if not await asyncio.to_thread(should_reoptimize, provider, machine_type):
        logger.debug("reoptimize skipped machine_type=%s", machine_type)
        return None

    task = asyncio.create_task(_run_detached(machine_type, provider, sink, on_result))
    _background_tasks.add(task)
    task.add_done_callback(lambda t, mt=machine_type: _on_task_done(t, mt))
    logger.info("reoptimize scheduled machine_type=%s", machine_type)
    return task
