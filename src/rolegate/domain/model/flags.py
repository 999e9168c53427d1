"""Persisted one-time operation flags."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .enums import FlagState

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(kw_only=True)
class MigrationFlag:
    name: str
    state: FlagState = FlagState.ABSENT
    completed_at: datetime | None = None
    affected_count: int | None = None

    @property
    def is_completed(self) -> bool:
        return self.state is FlagState.COMPLETED
