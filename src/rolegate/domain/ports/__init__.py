"""Domain port definitions for adapters."""

from __future__ import annotations

from .billing import BillingProvider, BillingSubscription, CheckoutLink, CheckoutSession
from .chat import ChatPlatform, DirectMessagesDisabledError, Member, MemberNotFoundError
from .persistence import EntitlementStore
from .scheduling import JobFunc, JobScheduler

__all__ = [
    "BillingProvider",
    "BillingSubscription",
    "ChatPlatform",
    "CheckoutLink",
    "CheckoutSession",
    "DirectMessagesDisabledError",
    "EntitlementStore",
    "JobFunc",
    "JobScheduler",
    "Member",
    "MemberNotFoundError",
]
