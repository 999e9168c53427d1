"""Chat platform (Discord) configuration values."""

from __future__ import annotations

from dataclasses import dataclass, field

from .env import optional_env_var, require_env_vars
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DISCORD_BASE_URL = "https://discord.com/api/v10/"
DISCORD_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True, slots=True)
class RoleConfig:
    """Role ids used by the access dispatcher.

    ``locale_roles`` maps a locale role (picked during onboarding) to the member
    role granted to subscribers holding it. Members without a locale role get
    ``member_role_id``.
    """

    restricted_role_id: str
    member_role_id: str
    locale_roles: tuple[tuple[str, str], ...] = ()

    @property
    def privilege_role_ids(self) -> tuple[str, ...]:
        role_ids = [self.member_role_id]
        for _, member_role in self.locale_roles:
            if member_role not in role_ids:
                role_ids.append(member_role)
        return tuple(role_ids)


@dataclass(frozen=True, slots=True)
class ChatConfig:
    bot_token: str
    guild_id: str
    roles: RoleConfig
    resilience: ResilienceConfig = field(
        default_factory=lambda: ResilienceConfig(name="discord", base_url=DISCORD_BASE_URL)
    )


def parse_locale_roles(raw: str | None) -> tuple[tuple[str, str], ...]:
    """Parse ``localeRole:memberRole,localeRole:memberRole`` pairs."""

    if raw is None:
        return ()
    pairs: list[tuple[str, str]] = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        locale_role, sep, member_role = chunk.partition(":")
        if not sep or not locale_role.strip() or not member_role.strip():
            raise ConfigurationError(f"Invalid locale role mapping: {chunk!r}")
        pairs.append((locale_role.strip(), member_role.strip()))
    return tuple(pairs)


def get_role_config() -> RoleConfig:
    values = require_env_vars(("ROLEGATE_ROLE_RESTRICTED", "ROLEGATE_ROLE_MEMBER"))
    return RoleConfig(
        restricted_role_id=values["ROLEGATE_ROLE_RESTRICTED"],
        member_role_id=values["ROLEGATE_ROLE_MEMBER"],
        locale_roles=parse_locale_roles(optional_env_var("ROLEGATE_ROLE_LOCALES")),
    )


def get_chat_config(*, resilience: ResilienceConfig | None = None) -> ChatConfig:
    values = require_env_vars(("DISCORD_TOKEN", "GUILD_ID"))
    return ChatConfig(
        bot_token=values["DISCORD_TOKEN"],
        guild_id=values["GUILD_ID"],
        roles=get_role_config(),
        resilience=resilience
        or ResilienceConfig(
            name="discord",
            base_url=DISCORD_BASE_URL,
            timeout_seconds=DISCORD_TIMEOUT_SECONDS,
            # Discord's global limit is 50 requests per second per bot.
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
            retry=RetryPolicy(total=3),
        ),
    )
