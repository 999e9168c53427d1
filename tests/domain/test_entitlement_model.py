from __future__ import annotations

import pytest

from rolegate.domain.model import (
    ACCESS_STATUSES,
    EntitlementInvariantError,
    EntitlementRecord,
    EntitlementStatus,
)
from rolegate.domain.notifications import NotificationKind, render_notification
from rolegate.domain.results import BatchResult, ItemOutcome, StepResult, SweepResult
from tests.helpers.fakes import T0

S = EntitlementStatus


def test_access_statuses() -> None:
    assert {status for status in S if status.grants_access} == ACCESS_STATUSES
    assert not S.CANCELED.grants_access
    assert not S.NONE.grants_access


@pytest.mark.parametrize("status", sorted(ACCESS_STATUSES))
def test_access_without_subscription_or_legacy_grant_is_rejected(
    status: EntitlementStatus,
) -> None:
    record = EntitlementRecord(identity="u1", status=status)

    with pytest.raises(EntitlementInvariantError):
        record.check_invariants()


def test_legacy_grant_satisfies_invariant() -> None:
    EntitlementRecord(identity="u1", status=S.TRIALING, is_legacy_grant=True).check_invariants()
    EntitlementRecord(identity="u1", status=S.CANCELED).check_invariants()


def test_evolve_stamps_updated_at_and_keeps_original() -> None:
    record = EntitlementRecord(identity="u1", billing_subscription_id="sub_1", status=S.ACTIVE)

    evolved = record.evolve(now=T0, status=S.PAST_DUE)

    assert evolved.status is S.PAST_DUE
    assert evolved.updated_at == T0
    assert evolved.created_at == record.created_at
    assert record.status is S.ACTIVE
    assert evolved.has_billing_linkage


def test_sweep_result_counts_outcomes() -> None:
    result = SweepResult(checked=2)
    result.count("created")
    result.count("unchanged")

    assert result.created == 1
    assert result.unchanged == 1
    assert "created=1" in result.summary()
    with pytest.raises(ValueError, match="Unknown sweep outcome"):
        result.count("exploded")


def test_batch_result_counts_items_with_any_failure() -> None:
    ok = ItemOutcome("a", [StepResult.success("revoke"), StepResult.skipped("cancel", "none")])
    bad = ItemOutcome("b", [StepResult.success("revoke"), StepResult.failed("notify", "dm")])

    batch = BatchResult([ok, bad])

    assert (batch.total, batch.succeeded, batch.failed) == (2, 1, 1)
    assert bad.failures == [StepResult.failed("notify", "dm")]


def test_payment_failed_notification_mentions_grace_period() -> None:
    text = render_notification(NotificationKind.PAYMENT_FAILED, grace_period_days=5)

    assert "5 days" in text
    for kind in NotificationKind:
        assert render_notification(kind, grace_period_days=3)
