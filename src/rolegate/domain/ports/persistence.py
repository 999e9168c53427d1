"""Ports for persisting entitlements and one-time operation flags."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from rolegate.domain.model import EntitlementRecord, EntitlementStatus, FlagState, MigrationFlag


@runtime_checkable
class EntitlementStore(Protocol):
    """Durable record per user identity plus named migration flags."""

    async def get(self, identity: str) -> EntitlementRecord | None: ...

    async def upsert(self, record: EntitlementRecord) -> None: ...

    async def delete(self, identity: str) -> None: ...

    async def list_by_status(
        self, statuses: Iterable[EntitlementStatus]
    ) -> list[EntitlementRecord]: ...

    async def list_legacy_expiring(self, now: datetime) -> list[EntitlementRecord]:
        """Legacy grants still ``trialing`` whose ``period_end`` is at or before ``now``."""
        ...

    async def get_flag(self, name: str) -> MigrationFlag | None: ...

    async def set_flag(self, name: str, state: FlagState, count: int | None = None) -> None: ...
