"""Public interface for the Discord chat adapter."""

from __future__ import annotations

from .client import (
    DirectMessageRefusedError,
    DiscordAPIError,
    DiscordChatClient,
    UnknownMemberError,
)
from .schema import MemberPayload

__all__ = [
    "DirectMessageRefusedError",
    "DiscordAPIError",
    "DiscordChatClient",
    "MemberPayload",
    "UnknownMemberError",
]
