"""Polling cadence and bulk-operation defaults."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Final

from .env import env_float, env_int, optional_env_var, parse_iso_datetime
from .errors import ConfigurationError

DEFAULT_SLOW_INTERVAL_SECONDS: Final[float] = 60 * 60
DEFAULT_FAST_INTERVAL_SECONDS: Final[float] = 60
DEFAULT_FAST_DURATION_SECONDS: Final[float] = 20 * 60
DEFAULT_GRACE_PERIOD_DAYS: Final[int] = 3
DEFAULT_LEGACY_GRACE_DAYS: Final[int] = 30
DEFAULT_BATCH_DELAY_SECONDS: Final[float] = 2.0
DEFAULT_RESET_AT: Final[datetime] = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)

MIN_FAST_INTERVAL_SECONDS: Final[float] = 15
MAX_FAST_INTERVAL_SECONDS: Final[float] = 60

LEGACY_MIGRATION_FLAG: Final[str] = "legacy_users_grace_period"


def reset_flag_name(target: datetime) -> str:
    return f"subscription_reset_{target.astimezone(UTC):%Y_%m_%d}"


@dataclass(frozen=True, slots=True)
class PollingConfig:
    slow_interval_seconds: float = DEFAULT_SLOW_INTERVAL_SECONDS
    fast_interval_seconds: float = DEFAULT_FAST_INTERVAL_SECONDS
    fast_duration_seconds: float = DEFAULT_FAST_DURATION_SECONDS
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS
    legacy_grace_days: int = DEFAULT_LEGACY_GRACE_DAYS
    batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS
    reset_at: datetime = DEFAULT_RESET_AT

    @property
    def reset_flag(self) -> str:
        return reset_flag_name(self.reset_at)


def get_polling_config() -> PollingConfig:
    fast_interval = env_float("ROLEGATE_FAST_INTERVAL_SECONDS", DEFAULT_FAST_INTERVAL_SECONDS)
    if not MIN_FAST_INTERVAL_SECONDS <= fast_interval <= MAX_FAST_INTERVAL_SECONDS:
        raise ConfigurationError(
            "ROLEGATE_FAST_INTERVAL_SECONDS must be between "
            f"{MIN_FAST_INTERVAL_SECONDS:g} and {MAX_FAST_INTERVAL_SECONDS:g} seconds"
        )
    raw_reset_at = optional_env_var("ROLEGATE_RESET_AT")
    return PollingConfig(
        slow_interval_seconds=env_float(
            "ROLEGATE_SLOW_INTERVAL_SECONDS", DEFAULT_SLOW_INTERVAL_SECONDS
        ),
        fast_interval_seconds=fast_interval,
        fast_duration_seconds=env_float(
            "ROLEGATE_FAST_DURATION_SECONDS", DEFAULT_FAST_DURATION_SECONDS
        ),
        grace_period_days=env_int("ROLEGATE_GRACE_PERIOD_DAYS", DEFAULT_GRACE_PERIOD_DAYS),
        legacy_grace_days=env_int("ROLEGATE_LEGACY_GRACE_DAYS", DEFAULT_LEGACY_GRACE_DAYS),
        batch_delay_seconds=env_float("ROLEGATE_BATCH_DELAY_SECONDS", DEFAULT_BATCH_DELAY_SECONDS),
        reset_at=parse_iso_datetime(raw_reset_at) if raw_reset_at else DEFAULT_RESET_AT,
    )
