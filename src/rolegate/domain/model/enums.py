"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EntitlementStatus(StrEnum):
    NONE = "none"
    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    UNPAID = "unpaid"

    @property
    def grants_access(self) -> bool:
        """Whether a record in this status should hold a privilege role."""
        return self in ACCESS_STATUSES


ACCESS_STATUSES = frozenset(
    {EntitlementStatus.ACTIVE, EntitlementStatus.TRIALING, EntitlementStatus.PAST_DUE}
)


class FlagState(StrEnum):
    ABSENT = "absent"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
