"""SQLAlchemy mapping metadata for entitlements and migration flags."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import StrEnum
from functools import cache

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Index,
    Integer,
    String,
    Table,
    TypeDecorator,
    orm,
)

from rolegate.domain.model import EntitlementRecord, EntitlementStatus, FlagState, MigrationFlag

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def _enum_values(enum_cls: type[StrEnum]) -> list[str]:
    return [member.value for member in enum_cls]


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

entitlement_table = Table(
    "entitlement",
    mapper_registry.metadata,
    Column("identity", String(64), primary_key=True),
    Column("billing_customer_id", String(255), nullable=True),
    Column("billing_subscription_id", String(255), nullable=True),
    Column(
        "status",
        Enum(
            EntitlementStatus,
            name="entitlement_status",
            values_callable=_enum_values,
            native_enum=False,
            length=32,
        ),
        nullable=False,
        default=EntitlementStatus.NONE,
    ),
    Column("period_end", UTCDateTime(), nullable=True),
    Column("is_legacy_grant", Boolean, nullable=False, default=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
    Index("ix_entitlement_status", "status"),
    Index("ix_entitlement_billing_subscription_id", "billing_subscription_id"),
)

migration_flag_table = Table(
    "migration_flag",
    mapper_registry.metadata,
    Column("name", String(128), primary_key=True),
    Column(
        "state",
        Enum(
            FlagState,
            name="migration_flag_state",
            values_callable=_enum_values,
            native_enum=False,
            length=32,
        ),
        nullable=False,
    ),
    Column("completed_at", UTCDateTime(), nullable=True),
    Column("affected_count", Integer, nullable=True),
)


@cache
def start_mappers() -> None:
    """Map the domain dataclasses onto their tables (idempotent)."""

    mapper_registry.map_imperatively(EntitlementRecord, entitlement_table)
    mapper_registry.map_imperatively(MigrationFlag, migration_flag_table)
    log.debug("Mapped entitlement and migration flag tables")
