from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from rolegate.domain.guard import MigrationGuard, guarded_job_id, schedule_guarded_run
from rolegate.domain.model import FlagState, MigrationFlag
from rolegate.domain.results import BatchResult, ItemOutcome
from tests.helpers.fakes import T0, FakeStore, FakeTimers, ManualClock

FLAG = "subscription_reset_2026_03_01"


class CountingOperation:
    def __init__(self, items: int = 2, *, delay: float = 0.0) -> None:
        self.calls = 0
        self.items = items
        self.delay = delay

    async def __call__(self) -> BatchResult:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return BatchResult([ItemOutcome(f"u{index}") for index in range(self.items)])


def test_run_once_executes_and_marks_completed(store: FakeStore) -> None:
    guard = MigrationGuard(store)
    operation = CountingOperation(items=3)

    result = asyncio.run(guard.run_once(FLAG, operation))

    assert result.executed
    assert result.batch is not None
    assert result.batch.total == 3
    assert store.flag_writes == [(FLAG, FlagState.IN_PROGRESS), (FLAG, FlagState.COMPLETED)]
    assert store.flags[FLAG].affected_count == 3
    assert store.flags[FLAG].completed_at == T0


def test_second_run_is_skipped(store: FakeStore) -> None:
    guard = MigrationGuard(store)
    operation = CountingOperation()

    asyncio.run(guard.run_once(FLAG, operation))
    second = asyncio.run(guard.run_once(FLAG, operation))

    assert not second.executed
    assert second.batch is None
    assert operation.calls == 1


def test_concurrent_callers_run_the_operation_once(store: FakeStore) -> None:
    guard = MigrationGuard(store)
    operation = CountingOperation(delay=0.01)

    async def race() -> list[bool]:
        results = await asyncio.gather(
            guard.run_once(FLAG, operation), guard.run_once(FLAG, operation)
        )
        return [result.executed for result in results]

    executed = asyncio.run(race())

    assert sorted(executed) == [False, True]
    assert operation.calls == 1


def test_failure_leaves_flag_in_progress(store: FakeStore) -> None:
    guard = MigrationGuard(store)

    async def explode() -> BatchResult:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        asyncio.run(guard.run_once(FLAG, explode))

    assert store.flags[FLAG].state is FlagState.IN_PROGRESS
    assert not asyncio.run(guard.is_completed(FLAG))


def test_in_progress_flag_is_resumed(store: FakeStore) -> None:
    store.flags[FLAG] = MigrationFlag(name=FLAG, state=FlagState.IN_PROGRESS)
    guard = MigrationGuard(store)
    operation = CountingOperation()

    result = asyncio.run(guard.run_once(FLAG, operation))

    assert result.executed
    assert operation.calls == 1
    assert store.flags[FLAG].is_completed


def test_schedule_skips_completed_flag(
    store: FakeStore, timers: FakeTimers, clock: ManualClock
) -> None:
    store.flags[FLAG] = MigrationFlag(name=FLAG, state=FlagState.COMPLETED, completed_at=T0)
    guard = MigrationGuard(store)

    scheduled = asyncio.run(
        schedule_guarded_run(
            timers, guard, FLAG, CountingOperation(), run_at=T0 + timedelta(days=1), clock=clock
        )
    )

    assert not scheduled
    assert timers.jobs == {}


def test_schedule_in_the_past_runs_now(
    store: FakeStore, timers: FakeTimers, clock: ManualClock
) -> None:
    guard = MigrationGuard(store)
    operation = CountingOperation()

    scheduled = asyncio.run(
        schedule_guarded_run(
            timers, guard, FLAG, operation, run_at=T0 - timedelta(days=30), clock=clock
        )
    )

    assert scheduled
    job = timers.jobs[guarded_job_id(FLAG)]
    assert job.run_at == T0

    asyncio.run(timers.run(guarded_job_id(FLAG)))
    assert operation.calls == 1
    assert store.flags[FLAG].is_completed


def test_schedule_in_the_future_keeps_target(
    store: FakeStore, timers: FakeTimers, clock: ManualClock
) -> None:
    guard = MigrationGuard(store)
    target = T0 + timedelta(days=10)

    asyncio.run(
        schedule_guarded_run(timers, guard, FLAG, CountingOperation(), run_at=target, clock=clock)
    )

    assert timers.jobs[guarded_job_id(FLAG)].run_at == target
