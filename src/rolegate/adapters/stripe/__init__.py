"""Public interface for the Stripe billing adapter."""

from __future__ import annotations

from .client import StripeAPIError, StripeBillingClient
from .schema import CheckoutSessionPayload, SubscriptionList, SubscriptionPayload
from .translator import map_status, parse_checkout_session, parse_subscription

__all__ = [
    "CheckoutSessionPayload",
    "StripeAPIError",
    "StripeBillingClient",
    "SubscriptionList",
    "SubscriptionPayload",
    "map_status",
    "parse_checkout_session",
    "parse_subscription",
]
