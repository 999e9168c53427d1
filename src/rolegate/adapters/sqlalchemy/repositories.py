"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, select

from rolegate.adapters.sqlalchemy.mappings import entitlement_table
from rolegate.domain.model import EntitlementRecord, EntitlementStatus, FlagState, MigrationFlag

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.orm import Session


class SqlAlchemyEntitlementRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, identity: str) -> EntitlementRecord | None:
        return self.session.get(EntitlementRecord, identity)

    def save(self, record: EntitlementRecord) -> EntitlementRecord:
        return self.session.merge(record)

    def delete(self, identity: str) -> None:
        self.session.execute(
            delete(entitlement_table).where(entitlement_table.c.identity == identity)
        )

    def list_by_status(self, statuses: Iterable[EntitlementStatus]) -> list[EntitlementRecord]:
        wanted = list(statuses)
        if not wanted:
            return []
        stmt = (
            select(EntitlementRecord)
            .where(entitlement_table.c.status.in_(wanted))
            .order_by(entitlement_table.c.identity)
        )
        return list(self.session.execute(stmt).scalars())

    def list_legacy_expiring(self, now: datetime) -> list[EntitlementRecord]:
        stmt = (
            select(EntitlementRecord)
            .where(entitlement_table.c.is_legacy_grant.is_(True))
            .where(entitlement_table.c.status == EntitlementStatus.TRIALING)
            .where(entitlement_table.c.period_end.is_not(None))
            .where(entitlement_table.c.period_end <= now)
            .order_by(entitlement_table.c.identity)
        )
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyMigrationFlagRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, name: str) -> MigrationFlag | None:
        return self.session.get(MigrationFlag, name)

    def set(self, name: str, state: FlagState, count: int | None = None) -> MigrationFlag:
        flag = self.get(name)
        if flag is None:
            flag = MigrationFlag(name=name)
            self.session.add(flag)
        flag.state = state
        flag.affected_count = count
        flag.completed_at = datetime.now(UTC) if state is FlagState.COMPLETED else None
        return flag
