"""Port for the timers driving periodic and one-time jobs."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

type JobFunc = Callable[[], Awaitable[object]]


@runtime_checkable
class JobScheduler(Protocol):
    def add_interval_job(
        self, job_id: str, func: JobFunc, *, seconds: float, run_immediately: bool = False
    ) -> None: ...

    def add_date_job(self, job_id: str, func: JobFunc, *, run_at: datetime) -> None: ...

    def remove_job(self, job_id: str) -> None:
        """Remove ``job_id``; a missing job is not an error."""
        ...

    def has_job(self, job_id: str) -> bool: ...

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for job runs still in flight."""
        ...

    def shutdown(self) -> None: ...
