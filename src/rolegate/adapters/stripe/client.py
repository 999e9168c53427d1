"""HTTP client for the Stripe API."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Unpack

from rolegate.adapters.http_resilience import ResilienceConfig, ResilientClient
from rolegate.config.billing import BillingConfig, get_billing_config
from rolegate.domain.ports.billing import BillingProvider, CheckoutLink

from .schema import CheckoutSessionPayload, ErrorResponse, SubscriptionList
from .translator import IDENTITY_METADATA_KEY, parse_checkout_session, parse_subscription

if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx

    from rolegate.adapters.http_resilience import RequestOptions
    from rolegate.domain.ports.billing import BillingSubscription, CheckoutSession

log = getLogger(__name__)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class StripeAPIError(RuntimeError):
    """Raised when the Stripe API rejects a request."""

    def __init__(
        self, message: str, *, status_code: int | None = None, code: str | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


@dataclass(slots=True)
class StripeBillingClient:
    config: BillingConfig = field(default_factory=get_billing_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _client: ResilientClient | None = field(default=None, init=False, repr=False)

    def _resilience(self) -> ResilienceConfig:
        return self.config.resilience.with_authorization(f"Bearer {self.config.secret_key}")

    def _http(self) -> ResilientClient:
        if self._client is None:
            self._client = self.client_factory(self._resilience())
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def list_active_subscriptions(self) -> list[BillingSubscription]:
        """Every subscription tagged with a member identity, in any status."""

        subscriptions: list[BillingSubscription] = []
        params: dict[str, str | int] = {"status": "all", "limit": self.config.page_size}
        pages = 0
        while True:
            payload = await self._perform_request("GET", "subscriptions", params=params)
            page = SubscriptionList.model_validate(payload)
            pages += 1
            for item in page.data:
                subscription = parse_subscription(item)
                if subscription is not None:
                    subscriptions.append(subscription)
            if not page.has_more or not page.data:
                break
            params["starting_after"] = page.data[-1].id

        log.info(
            f"Fetched {len(subscriptions)} tagged subscriptions from Stripe ({pages} pages)"
        )
        return subscriptions

    async def get_checkout_session(self, token: str) -> CheckoutSession:
        payload = await self._perform_request(
            "GET",
            f"checkout/sessions/{token}",
            params={"expand[]": "subscription"},
        )
        return parse_checkout_session(CheckoutSessionPayload.model_validate(payload))

    async def cancel_subscription(self, subscription_id: str, *, immediate: bool) -> None:
        if immediate:
            await self._perform_request("DELETE", f"subscriptions/{subscription_id}")
            log.info("Subscription %s canceled immediately", subscription_id)
        else:
            await self._perform_request(
                "POST",
                f"subscriptions/{subscription_id}",
                data={"cancel_at_period_end": "true"},
            )
            log.info("Subscription %s set to cancel at period end", subscription_id)

    async def create_checkout_session(
        self,
        identity: str,
        *,
        display_name: str | None = None,
        email: str | None = None,
    ) -> CheckoutLink:
        data: dict[str, str] = {
            "mode": "subscription",
            "line_items[0][price]": self.config.price_id,
            "line_items[0][quantity]": "1",
            "success_url": self.config.success_url,
            "cancel_url": self.config.cancel_url,
            "client_reference_id": identity,
            "allow_promotion_codes": "true" if self.config.allow_promotion_codes else "false",
            f"metadata[{IDENTITY_METADATA_KEY}]": identity,
            f"subscription_data[metadata][{IDENTITY_METADATA_KEY}]": identity,
        }
        if display_name:
            data["metadata[discord_username]"] = display_name
            data["subscription_data[metadata][discord_username]"] = display_name
        if email:
            data["customer_email"] = email

        payload = await self._perform_request("POST", "checkout/sessions", data=data)
        session = CheckoutSessionPayload.model_validate(payload)
        if not session.url:
            raise StripeAPIError(f"Checkout session {session.id} has no URL")
        log.info("Created checkout session %s for %s", session.id, identity)
        return CheckoutLink(token=session.id, url=session.url)

    async def _perform_request(
        self,
        method: str,
        path: str,
        **kwargs: Unpack[RequestOptions],
    ) -> object:
        response = await self._http().request(method, path, **kwargs)
        if response.is_error:
            raise _api_error(response)
        return response.json()


def _api_error(response: httpx.Response) -> StripeAPIError:
    try:
        error = ErrorResponse.model_validate(response.json()).error
    except ValueError:
        return StripeAPIError(
            f"Stripe request failed with HTTP {response.status_code}",
            status_code=response.status_code,
        )
    log.error(f"Stripe API error {response.status_code} ({error.code}): {error.message}")
    return StripeAPIError(error.message, status_code=response.status_code, code=error.code)


if TYPE_CHECKING:
    _provider_check: BillingProvider = StripeBillingClient()
