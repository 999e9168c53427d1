"""Pydantic models describing the Stripe API payloads we read."""

from __future__ import annotations

from collections.abc import Mapping
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _expandable_id(value: object) -> object:
    """Collapse an expanded Stripe object to its id."""

    if isinstance(value, Mapping):
        return cast(Mapping[str, object], value).get("id")
    return value


class StripeBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SubscriptionPayload(StripeBaseModel):
    id: str
    status: str
    customer: str | None = None
    current_period_end: int | None = None
    cancel_at_period_end: bool = False
    metadata: dict[str, str] = Field(default_factory=dict)

    _normalize_customer = field_validator("customer", mode="before")(_expandable_id)


class SubscriptionList(StripeBaseModel):
    data: list[SubscriptionPayload] = Field(default_factory=list)
    has_more: bool = False


class CheckoutSessionPayload(StripeBaseModel):
    id: str
    url: str | None = None
    payment_status: str
    status: str | None = None
    client_reference_id: str | None = None
    customer: str | None = None
    subscription: SubscriptionPayload | str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    _normalize_customer = field_validator("customer", mode="before")(_expandable_id)


class ErrorPayload(StripeBaseModel):
    type: str | None = None
    code: str | None = None
    message: str = "Unknown Stripe error"


class ErrorResponse(StripeBaseModel):
    error: ErrorPayload
