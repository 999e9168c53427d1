from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.engine import Engine  # noqa: TC002

from rolegate.adapters.sqlalchemy import start_mappers
from rolegate.adapters.sqlalchemy.migrations import upgrade_head
from rolegate.adapters.sqlalchemy.store import SqlAlchemyEntitlementStore
from rolegate.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyUnitOfWork,
    create_store_engine,
    shutdown,
    startup,
)
from rolegate.domain.access import AccessDispatcher
from tests.helpers.fakes import ROLES, FakeBilling, FakeChat, FakeStore, FakeTimers, ManualClock

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_store_engine("sqlite+pysqlite:///:memory:")
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def sqlite_store(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> SqlAlchemyEntitlementStore:
    return SqlAlchemyEntitlementStore(sqlite_unit_of_work)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def billing() -> FakeBilling:
    return FakeBilling()


@pytest.fixture
def chat() -> FakeChat:
    return FakeChat()


@pytest.fixture
def timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture
def dispatcher(chat: FakeChat) -> AccessDispatcher:
    return AccessDispatcher(chat=chat, roles=ROLES, grace_period_days=3)
