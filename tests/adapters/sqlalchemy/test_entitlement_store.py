from __future__ import annotations

import asyncio
import threading
from datetime import timedelta
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from rolegate.adapters.sqlalchemy.store import SqlAlchemyEntitlementStore
from rolegate.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    create_store_engine,
    is_started,
    shutdown,
    startup,
)
from rolegate.domain.model import EntitlementStatus, FlagState
from tests.helpers.fakes import T0, make_record

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

S = EntitlementStatus


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_unit_of_work_requires_startup() -> None:
    with pytest.raises(StartupError):
        SqlAlchemyUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b
    assert is_started()


def test_upsert_and_get_round_trip(sqlite_store: SqlAlchemyEntitlementStore) -> None:
    record = make_record("u1", S.PAST_DUE)

    asyncio.run(sqlite_store.upsert(record))
    loaded = asyncio.run(sqlite_store.get("u1"))

    assert loaded is not None
    assert loaded.status is S.PAST_DUE
    assert loaded.billing_subscription_id == "sub_u1"
    assert loaded.period_end == T0 + timedelta(days=20)
    assert loaded.period_end.tzinfo is not None
    assert asyncio.run(sqlite_store.get("missing")) is None


def test_upsert_replaces_existing_record(sqlite_store: SqlAlchemyEntitlementStore) -> None:
    asyncio.run(sqlite_store.upsert(make_record("u1", S.ACTIVE)))
    loaded = asyncio.run(sqlite_store.get("u1"))
    assert loaded is not None

    asyncio.run(sqlite_store.upsert(loaded.evolve(now=T0, status=S.CANCELED, period_end=T0)))

    updated = asyncio.run(sqlite_store.get("u1"))
    assert updated is not None
    assert updated.status is S.CANCELED
    assert updated.updated_at == T0


def test_delete_removes_record(sqlite_store: SqlAlchemyEntitlementStore) -> None:
    asyncio.run(sqlite_store.upsert(make_record("u1", S.ACTIVE)))

    asyncio.run(sqlite_store.delete("u1"))

    assert asyncio.run(sqlite_store.get("u1")) is None


def test_list_by_status_filters_and_orders(sqlite_store: SqlAlchemyEntitlementStore) -> None:
    for identity, status in (("c", S.ACTIVE), ("a", S.PAST_DUE), ("b", S.CANCELED)):
        asyncio.run(sqlite_store.upsert(make_record(identity, status)))

    records = asyncio.run(sqlite_store.list_by_status({S.ACTIVE, S.PAST_DUE}))

    assert [record.identity for record in records] == ["a", "c"]
    assert asyncio.run(sqlite_store.list_by_status([])) == []


def test_list_legacy_expiring(sqlite_store: SqlAlchemyEntitlementStore) -> None:
    legacy = {"billing_subscription_id": None, "is_legacy_grant": True}
    asyncio.run(
        sqlite_store.upsert(make_record("due", S.TRIALING, period_end=T0, **legacy))
    )
    asyncio.run(
        sqlite_store.upsert(
            make_record("later", S.TRIALING, period_end=T0 + timedelta(days=1), **legacy)
        )
    )
    asyncio.run(
        sqlite_store.upsert(
            make_record("done", S.CANCELED, period_end=T0 - timedelta(days=3), **legacy)
        )
    )
    asyncio.run(
        sqlite_store.upsert(make_record("paid", S.TRIALING, period_end=T0 - timedelta(days=1)))
    )

    records = asyncio.run(sqlite_store.list_legacy_expiring(T0))

    assert [record.identity for record in records] == ["due"]


def test_flags_are_persisted(sqlite_store: SqlAlchemyEntitlementStore) -> None:
    assert asyncio.run(sqlite_store.get_flag("legacy_users_grace_period")) is None

    asyncio.run(sqlite_store.set_flag("legacy_users_grace_period", FlagState.IN_PROGRESS))
    in_progress = asyncio.run(sqlite_store.get_flag("legacy_users_grace_period"))
    assert in_progress is not None
    assert in_progress.state is FlagState.IN_PROGRESS
    assert in_progress.completed_at is None

    asyncio.run(sqlite_store.set_flag("legacy_users_grace_period", FlagState.COMPLETED, 42))
    completed = asyncio.run(sqlite_store.get_flag("legacy_users_grace_period"))
    assert completed is not None
    assert completed.is_completed
    assert completed.affected_count == 42
    assert completed.completed_at is not None


def test_store_queries_run_off_the_event_loop_thread(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    session_threads: list[int] = []

    def tracking_factory() -> SqlAlchemyUnitOfWork:
        session_threads.append(threading.get_ident())
        return sqlite_unit_of_work()

    store = SqlAlchemyEntitlementStore(tracking_factory)

    async def scenario() -> tuple[int, bool]:
        loop_thread = threading.get_ident()
        ticks = 0

        async def ticker() -> None:
            nonlocal ticks
            while True:
                ticks += 1
                await asyncio.sleep(0)

        task = asyncio.create_task(ticker())
        await store.upsert(make_record("u1", S.ACTIVE))
        loaded = await store.get("u1")
        task.cancel()
        return loop_thread, loaded is not None and ticks > 0

    loop_thread, loop_kept_running = asyncio.run(scenario())

    assert loop_kept_running
    assert len(session_threads) == 2
    assert loop_thread not in session_threads


def test_in_memory_engine_shares_one_connection_across_threads() -> None:
    memory = create_store_engine("sqlite+pysqlite:///:memory:")
    on_disk = create_store_engine("sqlite+pysqlite:////tmp/rolegate-test.db")

    assert isinstance(memory.pool, StaticPool)
    assert not isinstance(on_disk.pool, StaticPool)
    memory.dispose()
    on_disk.dispose()
