"""One-time bulk operations run through the migration guard.

Both operations walk their target set one identity at a time with a fixed pause
between items, and record an ``ItemOutcome`` per identity instead of stopping
at the first failure.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from rolegate.config.polling import DEFAULT_BATCH_DELAY_SECONDS, DEFAULT_LEGACY_GRACE_DAYS

from .clock import utcnow
from .model import EntitlementRecord, EntitlementStatus
from .notifications import NotificationKind
from .results import BatchResult, ItemOutcome, StepResult

if TYPE_CHECKING:
    from .access import AccessDispatcher
    from .clock import Clock
    from .ports.billing import BillingProvider
    from .ports.persistence import EntitlementStore

type Sleep = Callable[[float], Awaitable[None]]
type ItemProcessor = Callable[[EntitlementRecord], Awaitable[ItemOutcome]]

log = getLogger(__name__)

RESET_STATUSES = frozenset(
    {EntitlementStatus.ACTIVE, EntitlementStatus.TRIALING, EntitlementStatus.PAST_DUE}
)


async def run_batch(
    records: Sequence[EntitlementRecord],
    process: ItemProcessor,
    *,
    delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
    sleep: Sleep = asyncio.sleep,
) -> BatchResult:
    batch = BatchResult()
    for index, record in enumerate(records):
        if index and delay_seconds > 0:
            await sleep(delay_seconds)
        try:
            outcome = await process(record)
        except Exception as exc:  # noqa: BLE001
            log.error("Unexpected error processing %s: %s", record.identity, exc)
            outcome = ItemOutcome(record.identity, [StepResult.failed("process", str(exc))])
        batch.outcomes.append(outcome)
        log.debug("Processed %d/%d (%s)", index + 1, len(records), record.identity)
    return batch


@dataclass(slots=True)
class SubscriptionReset:
    """Cancel every live subscription and take the privileges back."""

    store: EntitlementStore
    billing: BillingProvider | None
    dispatcher: AccessDispatcher
    clock: Clock = utcnow
    delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS
    sleep: Sleep = asyncio.sleep

    async def __call__(self) -> BatchResult:
        records = await self.store.list_by_status(RESET_STATUSES)
        log.info("Found %d subscriptions to reset", len(records))
        return await run_batch(
            records, self.reset_one, delay_seconds=self.delay_seconds, sleep=self.sleep
        )

    async def reset_one(self, record: EntitlementRecord) -> ItemOutcome:
        item = ItemOutcome(record.identity)
        item.add(await self._cancel(record))
        item.add(await self.dispatcher.revoke(record.identity))
        item.add(await self._reset_record(record))
        item.add(
            await self.dispatcher.notify(record.identity, NotificationKind.SUBSCRIPTION_RESET)
        )
        if item.failed:
            log.warning(f"Reset of {record.identity} finished with errors: {item.failures}")
        else:
            log.info("Reset subscription for %s", record.identity)
        return item

    async def _cancel(self, record: EntitlementRecord) -> StepResult:
        step = "cancel"
        if self.billing is None:
            return StepResult.skipped(step, "billing provider not configured")
        if not record.billing_subscription_id:
            return StepResult.skipped(step, "no subscription")
        try:
            await self.billing.cancel_subscription(record.billing_subscription_id, immediate=True)
        except Exception as exc:  # noqa: BLE001
            log.error(
                "Error canceling subscription %s for %s: %s",
                record.billing_subscription_id,
                record.identity,
                exc,
            )
            return StepResult.failed(step, str(exc))
        log.info("Canceled subscription %s", record.billing_subscription_id)
        return StepResult.success(step)

    async def _reset_record(self, record: EntitlementRecord) -> StepResult:
        step = "persist"
        try:
            # A sweep may have touched the record since the target list was read.
            current = await self.store.get(record.identity) or record
            await self.store.upsert(
                current.evolve(
                    now=self.clock(),
                    status=EntitlementStatus.NONE,
                    billing_subscription_id=None,
                    period_end=None,
                    is_legacy_grant=False,
                )
            )
        except Exception as exc:  # noqa: BLE001
            log.error("Error resetting entitlement for %s: %s", record.identity, exc)
            return StepResult.failed(step, str(exc))
        return StepResult.success(step)


@dataclass(slots=True)
class LegacyMigration:
    """Grant a grace period to every member who joined before subscriptions."""

    store: EntitlementStore
    clock: Clock = utcnow
    grace_days: int = DEFAULT_LEGACY_GRACE_DAYS
    delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS
    sleep: Sleep = asyncio.sleep

    async def targets(self) -> list[EntitlementRecord]:
        records = await self.store.list_by_status(EntitlementStatus)
        return [
            record
            for record in records
            if not record.is_legacy_grant and not record.billing_subscription_id
        ]

    async def __call__(self) -> BatchResult:
        records = await self.targets()
        log.info(
            "Granting a %d day grace period to %d legacy members", self.grace_days, len(records)
        )
        return await run_batch(
            records, self.migrate_one, delay_seconds=self.delay_seconds, sleep=self.sleep
        )

    async def migrate_one(self, record: EntitlementRecord) -> ItemOutcome:
        item = ItemOutcome(record.identity)
        now = self.clock()
        try:
            await self.store.upsert(
                record.evolve(
                    now=now,
                    is_legacy_grant=True,
                    status=EntitlementStatus.TRIALING,
                    period_end=now + timedelta(days=self.grace_days),
                )
            )
        except Exception as exc:  # noqa: BLE001
            log.error("Error marking %s as legacy: %s", record.identity, exc)
            item.add(StepResult.failed("persist", str(exc)))
            return item
        item.add(StepResult.success("persist"))
        return item


__all__ = ["RESET_STATUSES", "LegacyMigration", "SubscriptionReset", "run_batch"]
