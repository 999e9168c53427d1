"""Entitlement records: the local truth about who holds privileges and why."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from .enums import EntitlementStatus


class EntitlementInvariantError(ValueError):
    """Raised when a record would grant access without a subscription or legacy grant."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(kw_only=True)
class EntitlementRecord:
    """One record per user identity."""

    identity: str
    billing_customer_id: str | None = None
    billing_subscription_id: str | None = None
    status: EntitlementStatus = EntitlementStatus.NONE
    period_end: datetime | None = None
    is_legacy_grant: bool = False
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def has_billing_linkage(self) -> bool:
        return bool(self.billing_subscription_id)

    def check_invariants(self) -> None:
        if (
            self.status.grants_access
            and not self.billing_subscription_id
            and not self.is_legacy_grant
        ):
            raise EntitlementInvariantError(
                f"Entitlement for {self.identity} is {self.status} "
                "without a subscription or legacy grant"
            )

    def evolve(self, *, now: datetime, **changes: object) -> EntitlementRecord:
        """Return a copy with ``changes`` applied and ``updated_at`` set to ``now``."""

        return replace(self, updated_at=now, **changes)  # type: ignore[arg-type]
