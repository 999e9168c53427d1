"""HTTP client for the Discord REST API."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Unpack

from rolegate.adapters.http_resilience import ResilienceConfig, ResilientClient
from rolegate.config.chat import ChatConfig, get_chat_config
from rolegate.domain.ports.chat import (
    ChatPlatform,
    DirectMessagesDisabledError,
    Member,
    MemberNotFoundError,
)

from .schema import ChannelPayload, ErrorResponse, MemberPayload

if TYPE_CHECKING:
    from collections.abc import Callable

    import httpx

    from rolegate.adapters.http_resilience import RequestOptions

log = getLogger(__name__)

UNKNOWN_MEMBER = 10007
CANNOT_MESSAGE_USER = 50007
DM_CHANNEL_CACHE_SIZE = 1024
AUDIT_LOG_REASON = "Subscription status change"


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class DiscordAPIError(RuntimeError):
    """Raised when the Discord API rejects a request."""

    def __init__(
        self, message: str, *, status_code: int | None = None, code: int | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class DirectMessageRefusedError(DiscordAPIError, DirectMessagesDisabledError):
    """The member does not accept direct messages from the bot."""


class UnknownMemberError(DiscordAPIError, MemberNotFoundError):
    """The member left the guild before a role change reached Discord."""


@dataclass(slots=True)
class DiscordChatClient:
    config: ChatConfig = field(default_factory=get_chat_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    dm_channel_cache_size: int = DM_CHANNEL_CACHE_SIZE
    _client: ResilientClient | None = field(default=None, init=False, repr=False)
    _dm_channels: OrderedDict[str, str] = field(
        default_factory=OrderedDict[str, str], init=False, repr=False
    )

    def _resilience(self) -> ResilienceConfig:
        return self.config.resilience.with_authorization(f"Bot {self.config.bot_token}")

    def _http(self) -> ResilientClient:
        if self._client is None:
            self._client = self.client_factory(self._resilience())
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _member_path(self, identity: str) -> str:
        return f"guilds/{self.config.guild_id}/members/{identity}"

    async def get_member(self, identity: str) -> Member | None:
        response = await self._http().get(self._member_path(identity))
        if response.status_code == 404:  # noqa: PLR2004
            return None
        _raise_for_error(response)
        payload = MemberPayload.model_validate(response.json())
        return Member(
            identity=payload.user.id,
            role_ids=frozenset(payload.roles),
            display_name=payload.display_name,
        )

    async def add_role(self, identity: str, role_id: str) -> None:
        await self._perform_request(
            "PUT",
            f"{self._member_path(identity)}/roles/{role_id}",
            headers={"X-Audit-Log-Reason": AUDIT_LOG_REASON},
        )

    async def remove_role(self, identity: str, role_id: str) -> None:
        await self._perform_request(
            "DELETE",
            f"{self._member_path(identity)}/roles/{role_id}",
            headers={"X-Audit-Log-Reason": AUDIT_LOG_REASON},
        )

    async def send_direct_message(self, identity: str, content: str) -> None:
        channel_id = await self._dm_channel(identity)
        await self._perform_request(
            "POST", f"channels/{channel_id}/messages", json={"content": content}
        )

    async def _dm_channel(self, identity: str) -> str:
        channel_id = self._dm_channels.get(identity)
        if channel_id is not None:
            self._dm_channels.move_to_end(identity)
            return channel_id
        response = await self._perform_request(
            "POST", "users/@me/channels", json={"recipient_id": identity}
        )
        channel_id = ChannelPayload.model_validate(response.json()).id
        self._dm_channels[identity] = channel_id
        while len(self._dm_channels) > self.dm_channel_cache_size:
            self._dm_channels.popitem(last=False)
        return channel_id

    async def _perform_request(
        self,
        method: str,
        path: str,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        response = await self._http().request(method, path, **kwargs)
        _raise_for_error(response)
        return response


def _raise_for_error(response: httpx.Response) -> None:
    if not response.is_error:
        return
    try:
        error = ErrorResponse.model_validate(response.json())
    except ValueError:
        raise DiscordAPIError(
            f"Discord request failed with HTTP {response.status_code}",
            status_code=response.status_code,
        ) from None
    if error.code == UNKNOWN_MEMBER:
        raise UnknownMemberError(error.message, status_code=response.status_code, code=error.code)
    if error.code == CANNOT_MESSAGE_USER:
        raise DirectMessageRefusedError(
            error.message, status_code=response.status_code, code=error.code
        )
    log.error(f"Discord API error {response.status_code} ({error.code}): {error.message}")
    raise DiscordAPIError(error.message, status_code=response.status_code, code=error.code)


if TYPE_CHECKING:
    _platform_check: ChatPlatform = DiscordChatClient()
