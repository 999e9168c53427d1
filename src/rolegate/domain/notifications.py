"""Direct-message templates sent to members on entitlement changes."""

from __future__ import annotations

from enum import StrEnum


class NotificationKind(StrEnum):
    WELCOME = "welcome"
    RESTORED = "restored"
    PAYMENT_FAILED = "payment_failed"
    ENDED_CANCELED = "ended_canceled"
    ENDED_UNPAID = "ended_unpaid"
    LEGACY_EXPIRED = "legacy_expired"
    SUBSCRIPTION_RESET = "subscription_reset"


_TEMPLATES: dict[NotificationKind, str] = {
    NotificationKind.WELCOME: (
        "**Welcome aboard!**\n\n"
        "Your subscription is now active and you have access to all member channels.\n\n"
        "Thank you for your support. If you have any questions, reach out to the staff."
    ),
    NotificationKind.RESTORED: (
        "**Subscription reactivated!**\n\n"
        "Your subscription is active again and your access has been restored."
    ),
    NotificationKind.PAYMENT_FAILED: (
        "**Payment problem**\n\n"
        "We could not process your subscription payment. Please update your payment "
        "method to avoid losing access.\n\n"
        "You have {grace_period_days} days to resolve this."
    ),
    NotificationKind.ENDED_CANCELED: (
        "**Subscription ended**\n\n"
        "Your subscription was canceled and your member roles have been removed. "
        "Use the subscribe button on the server to regain access."
    ),
    NotificationKind.ENDED_UNPAID: (
        "**Subscription ended**\n\n"
        "Your subscription ended because of a payment problem and your member roles "
        "have been removed. Use the subscribe button on the server to regain access."
    ),
    NotificationKind.LEGACY_EXPIRED: (
        "**Free access period ended**\n\n"
        "Your complimentary access has ended now that membership runs on subscriptions. "
        "Use the subscribe button on the server to keep access to the member channels."
    ),
    NotificationKind.SUBSCRIPTION_RESET: (
        "**Subscription reset**\n\n"
        "Your subscription has ended because we moved to a new subscription system. "
        "Please subscribe again with the Subscribe button on the server to keep your access."
    ),
}


def render_notification(kind: NotificationKind, *, grace_period_days: int) -> str:
    return _TEMPLATES[kind].format(grace_period_days=grace_period_days)


__all__ = ["NotificationKind", "render_notification"]
