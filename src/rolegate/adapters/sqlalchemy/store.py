"""Entitlement store port over short-lived SQLAlchemy units of work."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING

from rolegate.domain.ports.persistence import EntitlementStore

from .unit_of_work import SqlAlchemyUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from rolegate.domain.model import (
        EntitlementRecord,
        EntitlementStatus,
        FlagState,
        MigrationFlag,
    )

UnitOfWorkFactory = Callable[[], SqlAlchemyUnitOfWork]


class SqlAlchemyEntitlementStore:
    """Async facade over synchronous sessions.

    Each call opens its own unit of work on a worker thread, so the event loop
    keeps serving scheduler jobs and HTTP clients while a query runs.
    """

    def __init__(self, unit_of_work_factory: UnitOfWorkFactory = SqlAlchemyUnitOfWork) -> None:
        self._uow = unit_of_work_factory

    async def get(self, identity: str) -> EntitlementRecord | None:
        def _task() -> EntitlementRecord | None:
            with self._uow() as uow:
                return uow.entitlements.get(identity)

        return await asyncio.to_thread(_task)

    async def upsert(self, record: EntitlementRecord) -> None:
        def _task() -> None:
            with self._uow() as uow:
                uow.entitlements.save(record)
                uow.commit()

        await asyncio.to_thread(_task)

    async def delete(self, identity: str) -> None:
        def _task() -> None:
            with self._uow() as uow:
                uow.entitlements.delete(identity)
                uow.commit()

        await asyncio.to_thread(_task)

    async def list_by_status(
        self, statuses: Iterable[EntitlementStatus]
    ) -> list[EntitlementRecord]:
        wanted = list(statuses)

        def _task() -> list[EntitlementRecord]:
            with self._uow() as uow:
                return uow.entitlements.list_by_status(wanted)

        return await asyncio.to_thread(_task)

    async def list_legacy_expiring(self, now: datetime) -> list[EntitlementRecord]:
        def _task() -> list[EntitlementRecord]:
            with self._uow() as uow:
                return uow.entitlements.list_legacy_expiring(now)

        return await asyncio.to_thread(_task)

    async def get_flag(self, name: str) -> MigrationFlag | None:
        def _task() -> MigrationFlag | None:
            with self._uow() as uow:
                return uow.flags.get(name)

        return await asyncio.to_thread(_task)

    async def set_flag(self, name: str, state: FlagState, count: int | None = None) -> None:
        def _task() -> None:
            with self._uow() as uow:
                uow.flags.set(name, state, count)
                uow.commit()

        await asyncio.to_thread(_task)


if TYPE_CHECKING:
    _store_check: EntitlementStore = SqlAlchemyEntitlementStore()
