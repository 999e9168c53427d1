"""Typed outcomes for best-effort steps, sweeps and guarded batch operations.

Every per-item step reports a ``StepResult`` instead of raising, so callers can
aggregate partial failures without relying on caught-and-logged exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class StepStatus(StrEnum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class StepResult:
    step: str
    status: StepStatus
    reason: str | None = None

    @classmethod
    def success(cls, step: str, reason: str | None = None) -> StepResult:
        return cls(step=step, status=StepStatus.SUCCESS, reason=reason)

    @classmethod
    def skipped(cls, step: str, reason: str) -> StepResult:
        return cls(step=step, status=StepStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, step: str, reason: str) -> StepResult:
        return cls(step=step, status=StepStatus.FAILED, reason=reason)

    @property
    def ok(self) -> bool:
        return self.status is not StepStatus.FAILED


@dataclass(slots=True)
class ItemOutcome:
    """Ordered step results for one identity within a batch."""

    identity: str
    steps: list[StepResult] = field(default_factory=list[StepResult])

    def add(self, result: StepResult) -> StepResult:
        self.steps.append(result)
        return result

    @property
    def failed(self) -> bool:
        return any(not step.ok for step in self.steps)

    @property
    def failures(self) -> list[StepResult]:
        return [step for step in self.steps if not step.ok]


@dataclass(slots=True)
class BatchResult:
    outcomes: list[ItemOutcome] = field(default_factory=list[ItemOutcome])

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.failed)

    @property
    def succeeded(self) -> int:
        return self.total - self.failed

    def summary(self) -> str:
        return f"{self.succeeded} successful, {self.failed} with errors out of {self.total}"


@dataclass(slots=True)
class SweepResult:
    """Counters for one reconciliation sweep."""

    checked: int = 0
    created: int = 0
    backfilled: int = 0
    updated: int = 0
    refreshed: int = 0
    unchanged: int = 0
    expired: int = 0
    failed: int = 0
    aborted: bool = False

    def count(self, outcome: str) -> None:
        match outcome:
            case "created":
                self.created += 1
            case "backfilled":
                self.backfilled += 1
            case "updated":
                self.updated += 1
            case "refreshed":
                self.refreshed += 1
            case "unchanged":
                self.unchanged += 1
            case _:
                raise ValueError(f"Unknown sweep outcome: {outcome!r}")

    def summary(self) -> str:
        if self.aborted:
            return "aborted"
        return (
            f"checked={self.checked}, created={self.created}, backfilled={self.backfilled}, "
            f"updated={self.updated}, refreshed={self.refreshed}, "
            f"unchanged={self.unchanged}, expired={self.expired}, failed={self.failed}"
        )


@dataclass(frozen=True, slots=True)
class GuardResult:
    flag_name: str
    executed: bool
    batch: BatchResult | None = None
