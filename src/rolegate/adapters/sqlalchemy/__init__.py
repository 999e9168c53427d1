"""SQLAlchemy adapter package for rolegate."""

from __future__ import annotations

from .mappings import entitlement_table, mapper_registry, migration_flag_table, start_mappers
from .repositories import SqlAlchemyEntitlementRepository, SqlAlchemyMigrationFlagRepository
from .store import SqlAlchemyEntitlementStore
from .unit_of_work import SqlAlchemyUnitOfWork, StartupError, is_started, shutdown, startup

__all__ = [
    "SqlAlchemyEntitlementRepository",
    "SqlAlchemyEntitlementStore",
    "SqlAlchemyMigrationFlagRepository",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "entitlement_table",
    "is_started",
    "mapper_registry",
    "migration_flag_table",
    "shutdown",
    "start_mappers",
    "startup",
]
