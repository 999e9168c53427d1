"""Job scheduler port implemented on APScheduler's ``AsyncIOScheduler``."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from rolegate.domain.ports.scheduling import JobScheduler

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from rolegate.domain.ports.scheduling import JobFunc

log = getLogger(__name__)

MISFIRE_GRACE_SECONDS = 120


def build_scheduler() -> AsyncIOScheduler:
    return AsyncIOScheduler(
        jobstores={"default": MemoryJobStore()},
        executors={"default": AsyncIOExecutor()},
        job_defaults={
            "coalesce": True,
            "max_instances": 1,
            "misfire_grace_time": MISFIRE_GRACE_SECONDS,
        },
        timezone=UTC,
    )


class ApsJobScheduler:
    """Add, replace and remove asyncio jobs by id.

    The underlying scheduler starts on the first added job, so jobs must be
    added from inside the running event loop.
    """

    def __init__(self, scheduler: AsyncIOScheduler | None = None) -> None:
        self.scheduler = scheduler or build_scheduler()
        self._running: set[asyncio.Task[object]] = set()

    def add_interval_job(
        self, job_id: str, func: JobFunc, *, seconds: float, run_immediately: bool = False
    ) -> None:
        options: dict[str, object] = {}
        if run_immediately:
            options["next_run_time"] = datetime.now(UTC)
        self.scheduler.add_job(
            self._tracked(func),
            trigger=IntervalTrigger(seconds=seconds, timezone=UTC),
            id=job_id,
            name=job_id,
            replace_existing=True,
            **options,
        )
        log.debug("Scheduled %s every %ss", job_id, seconds)
        self._ensure_started()

    def add_date_job(self, job_id: str, func: JobFunc, *, run_at: datetime) -> None:
        self.scheduler.add_job(
            self._tracked(func),
            trigger=DateTrigger(run_date=run_at, timezone=UTC),
            id=job_id,
            name=job_id,
            replace_existing=True,
            # One-time jobs must never be dropped for starting late.
            misfire_grace_time=None,
        )
        log.debug("Scheduled %s at %s", job_id, run_at)
        self._ensure_started()

    def remove_job(self, job_id: str) -> None:
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            return
        log.debug("Removed job %s", job_id)

    def has_job(self, job_id: str) -> bool:
        return self.scheduler.get_job(job_id) is not None

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for job runs that are still in flight."""

        pending = {task for task in self._running if not task.done()}
        if not pending:
            return
        log.info("Waiting for %d running job(s) to finish", len(pending))
        await asyncio.wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def _ensure_started(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()

    def _tracked(self, func: JobFunc) -> Callable[[], Awaitable[object]]:
        async def run() -> object:
            task = asyncio.current_task()
            if task is not None:
                self._running.add(task)
            try:
                return await func()
            finally:
                if task is not None:
                    self._running.discard(task)

        return run


if TYPE_CHECKING:
    _scheduler_check: JobScheduler = ApsJobScheduler()
