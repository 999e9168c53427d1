"""Reconciliation engine: billing truth in, entitlement transitions out.

The engine owns its timers and its pending-checkout tracker. A slow job sweeps
every provider subscription and expires legacy grants; a fast job polls only
the checkout sessions that are still pending, and exists only while there are
any.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from rolegate.config.polling import PollingConfig
from rolegate.domain.clock import utcnow
from rolegate.domain.model import ACCESS_STATUSES, EntitlementRecord, EntitlementStatus
from rolegate.domain.notifications import NotificationKind
from rolegate.domain.ports.billing import BillingSubscription
from rolegate.domain.results import BatchResult, ItemOutcome, StepResult, SweepResult

from .checkouts import PendingCheckoutTracker
from .transitions import transition_for

if TYPE_CHECKING:
    from collections.abc import Iterable

    from rolegate.domain.access import AccessDispatcher
    from rolegate.domain.clock import Clock
    from rolegate.domain.ports import BillingProvider, CheckoutSession, EntitlementStore
    from rolegate.domain.ports.scheduling import JobScheduler

    from .transitions import TransitionAction

log = getLogger(__name__)

SLOW_JOB_ID = "reconcile-all"
FAST_JOB_ID = "reconcile-pending-checkouts"

_SELECTION_PRIORITY: dict[EntitlementStatus, int] = {
    EntitlementStatus.ACTIVE: 0,
    EntitlementStatus.PAST_DUE: 1,
    EntitlementStatus.TRIALING: 2,
    EntitlementStatus.UNPAID: 3,
    EntitlementStatus.CANCELED: 4,
    EntitlementStatus.NONE: 5,
}


def select_subscriptions(
    subscriptions: Iterable[BillingSubscription],
) -> list[BillingSubscription]:
    """Keep the most relevant subscription per identity, in first-seen order."""

    selected: dict[str, BillingSubscription] = {}
    for subscription in subscriptions:
        current = selected.get(subscription.identity)
        if current is None or _outranks(subscription, current):
            selected[subscription.identity] = subscription
    return list(selected.values())


def _outranks(candidate: BillingSubscription, current: BillingSubscription) -> bool:
    candidate_rank = _SELECTION_PRIORITY[candidate.status]
    current_rank = _SELECTION_PRIORITY[current.status]
    if candidate_rank != current_rank:
        return candidate_rank < current_rank
    if candidate.period_end is None:
        return False
    return current.period_end is None or candidate.period_end > current.period_end


@dataclass(slots=True)
class ReconciliationEngine:
    store: EntitlementStore
    billing: BillingProvider | None
    dispatcher: AccessDispatcher
    timers: JobScheduler
    polling: PollingConfig = field(default_factory=PollingConfig)
    clock: Clock = utcnow
    tracker: PendingCheckoutTracker = field(init=False)

    def __post_init__(self) -> None:
        self.tracker = PendingCheckoutTracker(
            expires_after=timedelta(seconds=self.polling.fast_duration_seconds),
            clock=self.clock,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Schedule the slow sweep; it runs once right away."""

        if self.billing is None:
            log.error("Billing provider is not configured; entitlement reconciliation disabled")
            return False
        if self.timers.has_job(SLOW_JOB_ID):
            log.warning("Reconciliation is already running")
            return False
        self.timers.add_interval_job(
            SLOW_JOB_ID,
            self.run_slow_tick,
            seconds=self.polling.slow_interval_seconds,
            run_immediately=True,
        )
        log.info(
            "Started entitlement reconciliation: slow interval %ss, fast interval %ss",
            self.polling.slow_interval_seconds,
            self.polling.fast_interval_seconds,
        )
        return True

    def stop(self) -> None:
        """Remove both jobs and forget pending checkouts; running sweeps finish."""

        self.timers.remove_job(SLOW_JOB_ID)
        self.timers.remove_job(FAST_JOB_ID)
        self.tracker.clear()
        log.info("Stopped entitlement reconciliation")

    @property
    def running(self) -> bool:
        return self.timers.has_job(SLOW_JOB_ID)

    # ------------------------------------------------------------------
    # Pending checkouts
    # ------------------------------------------------------------------

    def track(self, identity: str, checkout_session_token: str) -> None:
        self.tracker.track(identity, checkout_session_token)
        log.info("Tracking checkout for %s (%d pending)", identity, len(self.tracker))
        if not self.timers.has_job(FAST_JOB_ID):
            self.timers.add_interval_job(
                FAST_JOB_ID,
                self.reconcile_pending_checkouts,
                seconds=self.polling.fast_interval_seconds,
                run_immediately=True,
            )
            log.info("Started fast polling for pending checkouts")

    def has(self, identity: str) -> bool:
        return self.tracker.has(identity)

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    async def run_slow_tick(self) -> None:
        await self.reconcile_all()
        await self.reconcile_legacy_expiry()

    async def reconcile_all(self) -> SweepResult:
        result = SweepResult()
        if self.billing is None:
            log.error("Cannot reconcile entitlements without a billing provider")
            result.aborted = True
            return result

        try:
            subscriptions = await self.billing.list_active_subscriptions()
        except Exception as exc:  # noqa: BLE001
            log.error("Error fetching subscriptions from billing provider: %s", exc)
            result.aborted = True
            return result

        for subscription in select_subscriptions(subscriptions):
            result.checked += 1
            try:
                outcome = await self._reconcile_subscription(subscription)
            except Exception as exc:  # noqa: BLE001
                log.error("Error reconciling entitlement for %s: %s", subscription.identity, exc)
                result.failed += 1
                continue
            result.count(outcome)

        log.info(f"Entitlement sweep finished: {result.summary()}")
        return result

    async def reconcile_legacy_expiry(self) -> BatchResult:
        """Cancel legacy grants whose grace period has run out."""

        batch = BatchResult()
        now = self.clock()
        try:
            records = await self.store.list_legacy_expiring(now)
        except Exception as exc:  # noqa: BLE001
            log.error("Error listing expiring legacy grants: %s", exc)
            return batch

        for record in records:
            item = ItemOutcome(record.identity)
            batch.outcomes.append(item)
            try:
                expired = record.evolve(
                    now=now, status=EntitlementStatus.CANCELED, period_end=now
                )
                expired.check_invariants()
                await self.store.upsert(expired)
            except Exception as exc:  # noqa: BLE001
                log.error("Error expiring legacy grant for %s: %s", record.identity, exc)
                item.add(StepResult.failed("persist", str(exc)))
                continue
            item.add(StepResult.success("persist"))
            log.info("Legacy grace period ended for %s", record.identity)
            item.add(await self.dispatcher.revoke(record.identity))
            item.add(await self.dispatcher.notify(record.identity, NotificationKind.LEGACY_EXPIRED))

        if batch.total:
            log.info(f"Legacy expiry finished: {batch.summary()}")
        return batch

    async def reconcile_pending_checkouts(self) -> SweepResult:
        result = SweepResult()
        if self.billing is None:
            result.aborted = True
            return result

        now = self.clock()
        for entry in self.tracker.snapshot():
            if self.tracker.is_expired(entry, now=now):
                log.info("Checkout for %s expired without payment", entry.identity)
                self.tracker.discard(entry)
                result.expired += 1
                continue

            result.checked += 1
            try:
                session = await self.billing.get_checkout_session(entry.checkout_session_token)
            except Exception as exc:  # noqa: BLE001
                log.warning("Error checking checkout session for %s: %s", entry.identity, exc)
                continue
            if not session.paid:
                continue

            try:
                outcome = await self.apply_checkout(session, identity=entry.identity)
            except Exception as exc:  # noqa: BLE001
                log.error("Error applying paid checkout for %s: %s", entry.identity, exc)
                result.failed += 1
                continue
            result.count(outcome)
            self.tracker.discard(entry)

        if not self.tracker:
            self.timers.remove_job(FAST_JOB_ID)
            log.info("No pending checkouts left; stopped fast polling")
        return result

    async def apply_checkout(self, session: CheckoutSession, *, identity: str | None = None) -> str:
        """Apply a paid checkout session as a new subscription."""

        subject = session.identity or identity
        if not session.paid:
            raise ValueError(f"Checkout session {session.token} is not paid")
        if subject is None:
            raise ValueError(f"Checkout session {session.token} carries no identity")
        if not session.subscription_id:
            raise ValueError(f"Checkout session {session.token} has no subscription")

        subscription = BillingSubscription(
            identity=subject,
            status=session.status or EntitlementStatus.ACTIVE,
            period_end=session.period_end,
            customer_id=session.customer_id,
            subscription_id=session.subscription_id,
        )
        return await self._reconcile_subscription(subscription)

    # ------------------------------------------------------------------
    # Per-user reconciliation
    # ------------------------------------------------------------------

    async def _reconcile_subscription(self, subscription: BillingSubscription) -> str:
        now = self.clock()
        record = await self.store.get(subscription.identity)

        if record is None:
            previous = EntitlementStatus.NONE
            updated = EntitlementRecord(
                identity=subscription.identity,
                billing_customer_id=subscription.customer_id,
                billing_subscription_id=subscription.subscription_id,
                status=subscription.status,
                period_end=subscription.period_end,
                created_at=now,
                updated_at=now,
            )
            outcome = "created"
        else:
            previous = record.status
            changes: dict[str, object] = {}
            if not record.has_billing_linkage:
                changes["billing_customer_id"] = (
                    subscription.customer_id or record.billing_customer_id
                )
                changes["billing_subscription_id"] = subscription.subscription_id
                if subscription.status in ACCESS_STATUSES:
                    changes["is_legacy_grant"] = False
                outcome = "backfilled"
            elif record.billing_subscription_id != subscription.subscription_id:
                # Resubscribed: the newer subscription replaces the old reference.
                changes["billing_subscription_id"] = subscription.subscription_id
                if subscription.customer_id:
                    changes["billing_customer_id"] = subscription.customer_id
                outcome = "refreshed"
            else:
                outcome = "refreshed"

            if subscription.status is not record.status:
                changes["status"] = subscription.status
                if outcome != "backfilled":
                    outcome = "updated"
            if subscription.period_end != record.period_end:
                changes["period_end"] = subscription.period_end

            if not changes:
                return "unchanged"
            updated = record.evolve(now=now, **changes)

        updated.check_invariants()
        await self.store.upsert(updated)
        if previous is not updated.status:
            log.info(
                "Entitlement for %s changed: %s -> %s", updated.identity, previous, updated.status
            )
        await self._dispatch(updated.identity, transition_for(previous, updated.status))
        return outcome

    async def _dispatch(self, identity: str, action: TransitionAction) -> ItemOutcome:
        item = ItemOutcome(identity)
        if action.grant:
            item.add(await self.dispatcher.grant(identity))
        if action.revoke:
            item.add(await self.dispatcher.revoke(identity))
        if action.notification is not None:
            item.add(await self.dispatcher.notify(identity, action.notification))
        for failure in item.failures:
            log.warning("Step %s failed for %s: %s", failure.step, identity, failure.reason)
        return item


__all__ = ["FAST_JOB_ID", "SLOW_JOB_ID", "ReconciliationEngine", "select_subscriptions"]
