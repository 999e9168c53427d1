"""Translate Stripe payloads into billing port types."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger

from rolegate.domain.model import EntitlementStatus
from rolegate.domain.ports.billing import BillingSubscription, CheckoutSession

from .schema import CheckoutSessionPayload, SubscriptionPayload

log = getLogger(__name__)

IDENTITY_METADATA_KEY = "discord_id"

_STATUS_MAP: dict[str, EntitlementStatus] = {
    "active": EntitlementStatus.ACTIVE,
    "trialing": EntitlementStatus.TRIALING,
    "past_due": EntitlementStatus.PAST_DUE,
    "canceled": EntitlementStatus.CANCELED,
    "unpaid": EntitlementStatus.UNPAID,
    "incomplete": EntitlementStatus.NONE,
    "incomplete_expired": EntitlementStatus.CANCELED,
    "paused": EntitlementStatus.UNPAID,
}


def map_status(raw: str) -> EntitlementStatus:
    try:
        return _STATUS_MAP[raw]
    except KeyError:
        log.warning("Unknown Stripe subscription status %r, treating as none", raw)
        return EntitlementStatus.NONE


def _from_epoch(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=UTC)


def parse_subscription(payload: SubscriptionPayload) -> BillingSubscription | None:
    """Return ``None`` for subscriptions not tagged with a member identity."""

    identity = payload.metadata.get(IDENTITY_METADATA_KEY)
    if not identity:
        return None
    return BillingSubscription(
        identity=identity,
        status=map_status(payload.status),
        period_end=_from_epoch(payload.current_period_end),
        customer_id=payload.customer,
        subscription_id=payload.id,
    )


def parse_checkout_session(payload: CheckoutSessionPayload) -> CheckoutSession:
    identity = payload.client_reference_id or payload.metadata.get(IDENTITY_METADATA_KEY)
    subscription = payload.subscription
    if isinstance(subscription, SubscriptionPayload):
        return CheckoutSession(
            token=payload.id,
            paid=payload.payment_status == "paid",
            identity=identity,
            customer_id=payload.customer or subscription.customer,
            subscription_id=subscription.id,
            status=map_status(subscription.status),
            period_end=_from_epoch(subscription.current_period_end),
        )
    return CheckoutSession(
        token=payload.id,
        paid=payload.payment_status == "paid",
        identity=identity,
        customer_id=payload.customer,
        subscription_id=subscription,
    )
