"""In-memory registry of users who are mid-checkout."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from rolegate.domain.clock import utcnow

if TYPE_CHECKING:
    from datetime import datetime

    from rolegate.domain.clock import Clock


@dataclass(frozen=True, slots=True)
class PendingCheckout:
    identity: str
    checkout_session_token: str
    created_at: datetime


class PendingCheckoutTracker:
    """Short-lived map of identity to checkout session.

    Entries are lost on restart; the slow sweep picks up anything that was
    paid while the process was down.
    """

    def __init__(self, *, expires_after: timedelta, clock: Clock = utcnow) -> None:
        self.expires_after = expires_after
        self._clock = clock
        self._entries: dict[str, PendingCheckout] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identity: object) -> bool:
        return identity in self._entries

    def track(self, identity: str, checkout_session_token: str) -> PendingCheckout:
        entry = PendingCheckout(
            identity=identity,
            checkout_session_token=checkout_session_token,
            created_at=self._clock(),
        )
        self._entries[identity] = entry
        return entry

    def has(self, identity: str) -> bool:
        return identity in self._entries

    def get(self, identity: str) -> PendingCheckout | None:
        return self._entries.get(identity)

    def remove(self, identity: str) -> None:
        self._entries.pop(identity, None)

    def discard(self, entry: PendingCheckout) -> None:
        """Remove ``entry`` unless it was replaced by a newer checkout meanwhile."""

        if self._entries.get(entry.identity) is entry:
            del self._entries[entry.identity]

    def clear(self) -> None:
        self._entries.clear()

    def snapshot(self) -> list[PendingCheckout]:
        return list(self._entries.values())

    def is_expired(self, entry: PendingCheckout, *, now: datetime | None = None) -> bool:
        current = now or self._clock()
        return current - entry.created_at > self.expires_after
