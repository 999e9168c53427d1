"""Ports for querying the external billing provider."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from rolegate.domain.model import EntitlementStatus


@dataclass(frozen=True, slots=True)
class BillingSubscription:
    """A provider subscription tagged with a known identity."""

    identity: str
    status: EntitlementStatus
    period_end: datetime | None
    customer_id: str | None
    subscription_id: str


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    token: str
    paid: bool
    identity: str | None = None
    customer_id: str | None = None
    subscription_id: str | None = None
    status: EntitlementStatus | None = None
    period_end: datetime | None = None


@dataclass(frozen=True, slots=True)
class CheckoutLink:
    token: str
    url: str


@runtime_checkable
class BillingProvider(Protocol):
    async def list_active_subscriptions(self) -> list[BillingSubscription]: ...

    async def get_checkout_session(self, token: str) -> CheckoutSession: ...

    async def cancel_subscription(self, subscription_id: str, *, immediate: bool) -> None: ...

    async def create_checkout_session(
        self,
        identity: str,
        *,
        display_name: str | None = None,
        email: str | None = None,
    ) -> CheckoutLink: ...
