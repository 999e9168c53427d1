"""Entitlement reconciliation: transition table, checkout tracker and engine."""

from __future__ import annotations

from .checkouts import PendingCheckout, PendingCheckoutTracker
from .engine import FAST_JOB_ID, SLOW_JOB_ID, ReconciliationEngine, select_subscriptions
from .transitions import NOOP, TRANSITIONS, TransitionAction, transition_for

__all__ = [
    "FAST_JOB_ID",
    "NOOP",
    "SLOW_JOB_ID",
    "TRANSITIONS",
    "PendingCheckout",
    "PendingCheckoutTracker",
    "ReconciliationEngine",
    "TransitionAction",
    "select_subscriptions",
    "transition_for",
]
