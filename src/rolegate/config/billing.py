"""Billing provider (Stripe) configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

STRIPE_BASE_URL = "https://api.stripe.com/v1/"
STRIPE_API_VERSION = "2023-10-16"
STRIPE_TIMEOUT_SECONDS = 20.0
DEFAULT_SUCCESS_URL = "https://discord.com/channels/@me?checkout=success"
DEFAULT_CANCEL_URL = "https://discord.com/channels/@me?checkout=cancelled"


@dataclass(frozen=True, slots=True)
class BillingConfig:
    """Holds Stripe API configuration values."""

    secret_key: str
    price_id: str
    resilience: ResilienceConfig
    success_url: str = DEFAULT_SUCCESS_URL
    cancel_url: str = DEFAULT_CANCEL_URL
    allow_promotion_codes: bool = True
    page_size: int = 100


def get_billing_config(*, resilience: ResilienceConfig | None = None) -> BillingConfig:
    values = require_env_vars(("STRIPE_SECRET_KEY", "STRIPE_PRICE_ID"))
    return BillingConfig(
        secret_key=values["STRIPE_SECRET_KEY"],
        price_id=values["STRIPE_PRICE_ID"],
        success_url=optional_env_var("STRIPE_SUCCESS_URL") or DEFAULT_SUCCESS_URL,
        cancel_url=optional_env_var("STRIPE_CANCEL_URL") or DEFAULT_CANCEL_URL,
        resilience=resilience
        or ResilienceConfig(
            name="stripe",
            base_url=STRIPE_BASE_URL,
            timeout_seconds=STRIPE_TIMEOUT_SECONDS,
            # Stripe allows 100 read requests per second in live mode; stay well below.
            ratelimit=RateLimit(max_calls=20, per_seconds=1.0),
            retry=RetryPolicy(total=3),
            default_headers={"Stripe-Version": STRIPE_API_VERSION},
        ),
    )
