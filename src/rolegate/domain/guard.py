"""At-most-once gate for bulk operations, backed by persisted flags."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from logging import getLogger
from typing import TYPE_CHECKING

from .clock import utcnow
from .model import FlagState
from .results import BatchResult, GuardResult

if TYPE_CHECKING:
    from datetime import datetime

    from .clock import Clock
    from .ports.persistence import EntitlementStore
    from .ports.scheduling import JobScheduler

type GuardedOperation = Callable[[], Awaitable[BatchResult]]

log = getLogger(__name__)


class MigrationGuard:
    """Run named operations at most once.

    The flag is read immediately before the operation runs, under a lock per
    flag name, so a scheduled trigger and an on-demand call cannot both get
    through. A flag left ``in_progress`` by a crashed run does not block: the
    operation is resumed, and its steps are expected to be idempotent.
    """

    def __init__(self, store: EntitlementStore) -> None:
        self.store = store
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, flag_name: str) -> asyncio.Lock:
        return self._locks.setdefault(flag_name, asyncio.Lock())

    async def is_completed(self, flag_name: str) -> bool:
        flag = await self.store.get_flag(flag_name)
        return flag is not None and flag.is_completed

    async def run_once(self, flag_name: str, operation: GuardedOperation) -> GuardResult:
        async with self._lock_for(flag_name):
            flag = await self.store.get_flag(flag_name)
            if flag is not None and flag.is_completed:
                log.info(
                    "Operation %s already completed at %s (%s affected); skipping",
                    flag_name,
                    flag.completed_at,
                    flag.affected_count,
                )
                return GuardResult(flag_name=flag_name, executed=False)
            if flag is not None and flag.state is FlagState.IN_PROGRESS:
                log.warning("Operation %s did not finish last time; resuming", flag_name)

            await self.store.set_flag(flag_name, FlagState.IN_PROGRESS)
            log.info("Starting one-time operation %s", flag_name)
            # An exception here leaves the flag in_progress for the next attempt.
            batch = await operation()
            await self.store.set_flag(flag_name, FlagState.COMPLETED, batch.total)
            log.info(f"Completed one-time operation {flag_name}: {batch.summary()}")
            return GuardResult(flag_name=flag_name, executed=True, batch=batch)


def guarded_job_id(flag_name: str) -> str:
    return f"guarded:{flag_name}"


async def schedule_guarded_run(
    timers: JobScheduler,
    guard: MigrationGuard,
    flag_name: str,
    operation: GuardedOperation,
    *,
    run_at: datetime,
    clock: Clock = utcnow,
) -> bool:
    """Schedule ``operation`` behind ``guard`` at ``run_at``.

    Returns ``False`` when the flag is already completed and nothing was
    scheduled. A target in the past runs as soon as the scheduler picks it up.
    """

    if await guard.is_completed(flag_name):
        log.info("Operation %s already completed; not scheduling", flag_name)
        return False

    now = clock()
    if run_at <= now:
        log.info("Target time %s for %s has passed; running now", run_at, flag_name)
        run_at = now

    async def _run() -> GuardResult:
        return await guard.run_once(flag_name, operation)

    timers.add_date_job(guarded_job_id(flag_name), _run, run_at=run_at)
    log.info("Scheduled %s for %s", flag_name, run_at)
    return True


__all__ = ["GuardedOperation", "MigrationGuard", "guarded_job_id", "schedule_guarded_run"]
