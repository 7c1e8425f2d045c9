"""Background auto-complete sweep.

Runs a simple asyncio loop that periodically completes active leaves whose
end date has passed. Each tick uses its own session and commits once; a
failed tick is rolled back and retried on the next one.
"""

from __future__ import annotations

import asyncio
import logging

from leave_tracker.core.config import settings
from leave_tracker.core.database import async_session_factory
from leave_tracker.services.leave.service import LeaveService
from leave_tracker.services.leave.store import SqlLeaveStore
from leave_tracker.services.storage import get_document_store

logger = logging.getLogger(__name__)

_scheduler_task: asyncio.Task | None = None


async def run_sweep_once() -> int:
    async with async_session_factory() as db:
        try:
            service = LeaveService(SqlLeaveStore(db), get_document_store())
            count = await service.auto_complete_expired()
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    return count


async def _scheduler_loop(interval: int) -> None:
    logger.info("Leave sweep scheduler started (interval=%ds)", interval)
    while True:
        try:
            count = await run_sweep_once()
            logger.info("Sweep tick complete: %d leaves auto-completed", count)
        except Exception:
            logger.exception("Error during leave sweep")

        await asyncio.sleep(interval)


def start_scheduler(interval: int | None = None) -> None:
    """Start the background sweep as an asyncio task.

    Safe to call multiple times; only one sweep loop runs. An interval of 0
    leaves the sweep to dashboard loads.
    """
    global _scheduler_task
    interval = settings.SWEEP_INTERVAL_SECONDS if interval is None else interval
    if interval <= 0:
        logger.info("Leave sweep scheduler disabled")
        return
    if _scheduler_task is not None and not _scheduler_task.done():
        logger.warning("Scheduler already running, skipping start")
        return

    _scheduler_task = asyncio.create_task(
        _scheduler_loop(interval),
        name="leave-sweep",
    )


def stop_scheduler() -> None:
    global _scheduler_task
    if _scheduler_task is not None and not _scheduler_task.done():
        _scheduler_task.cancel()
        logger.info("Leave sweep scheduler cancelled")
    _scheduler_task = None
