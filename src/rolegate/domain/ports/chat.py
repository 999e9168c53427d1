"""Ports for the chat platform hosting the community space."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class Member:
    identity: str
    role_ids: frozenset[str] = field(default_factory=frozenset[str])
    display_name: str | None = None

    def has_role(self, role_id: str) -> bool:
        return role_id in self.role_ids


class MemberNotFoundError(LookupError):
    """The member left the space between lookup and a role change."""


class DirectMessagesDisabledError(RuntimeError):
    """The member does not accept direct messages."""


@runtime_checkable
class ChatPlatform(Protocol):
    async def get_member(self, identity: str) -> Member | None:
        """Return the guild member, or ``None`` when the user is not in the space."""
        ...

    async def add_role(self, identity: str, role_id: str) -> None: ...

    async def remove_role(self, identity: str, role_id: str) -> None: ...

    async def send_direct_message(self, identity: str, content: str) -> None: ...
