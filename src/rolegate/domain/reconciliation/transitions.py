"""Exhaustive entitlement state machine.

Every ``(old, new)`` status pair maps to one ``TransitionAction``; the engine
never branches on status values itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import product
from types import MappingProxyType
from typing import TYPE_CHECKING

from rolegate.domain.model import EntitlementStatus
from rolegate.domain.notifications import NotificationKind

if TYPE_CHECKING:
    from collections.abc import Mapping

S = EntitlementStatus

_ENDED = frozenset({S.CANCELED, S.UNPAID})
_FIRST_SUBSCRIPTION = frozenset({S.NONE, S.TRIALING})


@dataclass(frozen=True, slots=True)
class TransitionAction:
    grant: bool = False
    revoke: bool = False
    notification: NotificationKind | None = None

    @property
    def is_noop(self) -> bool:
        return not (self.grant or self.revoke or self.notification)


NOOP = TransitionAction()


def _action_for(old: EntitlementStatus, new: EntitlementStatus) -> TransitionAction:  # noqa: PLR0911
    if old is new:
        return NOOP

    match new:
        case S.ACTIVE:
            if old in _FIRST_SUBSCRIPTION:
                return TransitionAction(grant=True, notification=NotificationKind.WELCOME)
            return TransitionAction(grant=True, notification=NotificationKind.RESTORED)
        case S.PAST_DUE:
            # A brand-new record never held the role, so it gets it with the warning.
            return TransitionAction(
                grant=old is S.NONE, notification=NotificationKind.PAYMENT_FAILED
            )
        case S.CANCELED | S.UNPAID:
            # A record at none may still belong to a legacy member holding the role.
            if old is S.NONE or old in _ENDED:
                return TransitionAction(revoke=True)
            kind = (
                NotificationKind.ENDED_CANCELED
                if new is S.CANCELED
                else NotificationKind.ENDED_UNPAID
            )
            return TransitionAction(revoke=True, notification=kind)
        case S.TRIALING:
            return TransitionAction(grant=old is S.NONE)
        case S.NONE:
            return NOOP
    raise ValueError(f"Unknown entitlement status: {new!r}")


TRANSITIONS: Mapping[tuple[EntitlementStatus, EntitlementStatus], TransitionAction] = (
    MappingProxyType({(old, new): _action_for(old, new) for old, new in product(S, S)})
)


def transition_for(old: EntitlementStatus, new: EntitlementStatus) -> TransitionAction:
    return TRANSITIONS[(old, new)]


__all__ = ["NOOP", "TRANSITIONS", "TransitionAction", "transition_for"]
