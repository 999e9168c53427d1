"""Domain model for entitlements and one-time operation flags."""

from __future__ import annotations

from .entitlement import EntitlementInvariantError, EntitlementRecord
from .enums import ACCESS_STATUSES, EntitlementStatus, FlagState
from .flags import MigrationFlag

__all__ = [
    "ACCESS_STATUSES",
    "EntitlementInvariantError",
    "EntitlementRecord",
    "EntitlementStatus",
    "FlagState",
    "MigrationFlag",
]
