from __future__ import annotations

import logging
from datetime import UTC, datetime

import pytest

from rolegate.config import (
    ConfigurationError,
    MissingConfigurationError,
    ResilienceConfig,
    configure_logging,
    get_billing_config,
    get_chat_config,
    get_database_config,
    get_polling_config,
    parse_iso_datetime,
    parse_locale_roles,
    require_env_var,
    require_env_vars,
    reset_flag_name,
)
from rolegate.config.billing import STRIPE_API_VERSION, STRIPE_BASE_URL
from rolegate.config.chat import RoleConfig
from rolegate.config.polling import DEFAULT_RESET_AT

_POLLING_VARS = (
    "ROLEGATE_SLOW_INTERVAL_SECONDS",
    "ROLEGATE_FAST_INTERVAL_SECONDS",
    "ROLEGATE_FAST_DURATION_SECONDS",
    "ROLEGATE_GRACE_PERIOD_DAYS",
    "ROLEGATE_LEGACY_GRACE_DAYS",
    "ROLEGATE_BATCH_DELAY_SECONDS",
    "ROLEGATE_RESET_AT",
)


@pytest.fixture
def clean_polling_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _POLLING_VARS:
        monkeypatch.delenv(name, raising=False)


def test_require_env_vars_returns_stripped_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "  value ")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_names_every_missing_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_A", raising=False)
    monkeypatch.delenv("MISSING_B", raising=False)

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_require_env_var_handles_blank_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "   ")

    with pytest.raises(MissingConfigurationError):
        require_env_var("EXAMPLE_VAR")


def test_billing_config_pins_api_version(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setenv("STRIPE_PRICE_ID", "price_123")
    monkeypatch.setenv("STRIPE_SUCCESS_URL", "https://example.com/thanks")
    monkeypatch.delenv("STRIPE_CANCEL_URL", raising=False)

    config = get_billing_config()

    assert config.secret_key == "sk_test_123"
    assert config.price_id == "price_123"
    assert config.success_url == "https://example.com/thanks"
    assert config.resilience.base_url == STRIPE_BASE_URL
    assert config.resilience.default_headers == {"Stripe-Version": STRIPE_API_VERSION}
    assert "POST" not in config.resilience.retry.allowed_methods


def test_authorization_header_keeps_default_headers() -> None:
    base = ResilienceConfig(name="stripe", default_headers={"Stripe-Version": STRIPE_API_VERSION})

    authorized = base.with_authorization("Bearer sk_test_123")

    assert authorized.default_headers == {
        "Stripe-Version": STRIPE_API_VERSION,
        "Authorization": "Bearer sk_test_123",
    }
    assert base.default_headers == {"Stripe-Version": STRIPE_API_VERSION}


def test_billing_config_requires_secret_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)
    monkeypatch.setenv("STRIPE_PRICE_ID", "price_123")

    with pytest.raises(MissingConfigurationError, match="STRIPE_SECRET_KEY"):
        get_billing_config()


def test_chat_config_reads_roles(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DISCORD_TOKEN", "token")
    monkeypatch.setenv("GUILD_ID", "42")
    monkeypatch.setenv("ROLEGATE_ROLE_RESTRICTED", "100")
    monkeypatch.setenv("ROLEGATE_ROLE_MEMBER", "200")
    monkeypatch.setenv("ROLEGATE_ROLE_LOCALES", "300:301, 400:401")

    config = get_chat_config()

    assert config.guild_id == "42"
    assert config.roles == RoleConfig(
        restricted_role_id="100",
        member_role_id="200",
        locale_roles=(("300", "301"), ("400", "401")),
    )
    assert config.roles.privilege_role_ids == ("200", "301", "401")


def test_parse_locale_roles_rejects_malformed_pairs() -> None:
    assert parse_locale_roles(None) == ()
    assert parse_locale_roles("1:2,") == (("1", "2"),)

    with pytest.raises(ConfigurationError):
        parse_locale_roles("1:2,3")


def test_polling_config_defaults(clean_polling_env: None) -> None:
    _ = clean_polling_env

    config = get_polling_config()

    assert config.slow_interval_seconds == 3600
    assert config.fast_interval_seconds == 60
    assert config.fast_duration_seconds == 1200
    assert config.grace_period_days == 3
    assert config.legacy_grace_days == 30
    assert config.batch_delay_seconds == 2.0
    assert config.reset_at == DEFAULT_RESET_AT
    assert config.reset_flag == "subscription_reset_2026_03_01"


def test_polling_config_reads_overrides(
    clean_polling_env: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    _ = clean_polling_env
    monkeypatch.setenv("ROLEGATE_FAST_INTERVAL_SECONDS", "15")
    monkeypatch.setenv("ROLEGATE_GRACE_PERIOD_DAYS", "5")
    monkeypatch.setenv("ROLEGATE_RESET_AT", "2026-06-01T11:00:00+02:00")

    config = get_polling_config()

    assert config.fast_interval_seconds == 15
    assert config.grace_period_days == 5
    assert config.reset_at == datetime(2026, 6, 1, 9, 0, tzinfo=UTC)
    assert config.reset_flag == "subscription_reset_2026_06_01"


@pytest.mark.parametrize("value", ["5", "61", "soon"])
def test_polling_config_rejects_invalid_fast_interval(
    clean_polling_env: None, monkeypatch: pytest.MonkeyPatch, value: str
) -> None:
    _ = clean_polling_env
    monkeypatch.setenv("ROLEGATE_FAST_INTERVAL_SECONDS", value)

    with pytest.raises(ConfigurationError):
        get_polling_config()


def test_polling_config_rejects_negative_days(
    clean_polling_env: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    _ = clean_polling_env
    monkeypatch.setenv("ROLEGATE_LEGACY_GRACE_DAYS", "-1")

    with pytest.raises(ConfigurationError, match="ROLEGATE_LEGACY_GRACE_DAYS"):
        get_polling_config()


def test_parse_iso_datetime_treats_naive_values_as_utc() -> None:
    assert parse_iso_datetime("2026-03-01T09:00:00") == datetime(2026, 3, 1, 9, tzinfo=UTC)
    assert parse_iso_datetime("2026-03-01T09:00:00Z") == datetime(2026, 3, 1, 9, tzinfo=UTC)

    with pytest.raises(ConfigurationError):
        parse_iso_datetime("first of march")


def test_reset_flag_name_uses_utc_date() -> None:
    target = datetime(2026, 3, 1, 0, 30, tzinfo=UTC)

    assert reset_flag_name(target) == "subscription_reset_2026_03_01"


def test_database_config_prefers_explicit_uri(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite+pysqlite:///:memory:")

    assert get_database_config().uri == "sqlite+pysqlite:///:memory:"


def test_database_config_uses_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:  # noqa: ANN001
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("ROLEGATE_DATA_DIR", str(tmp_path))

    uri = get_database_config().uri

    assert uri == f"sqlite+pysqlite:///{tmp_path.resolve() / 'rolegate.db'}"


def test_configure_logging_accepts_level_names() -> None:
    configure_logging(level="debug", force=True)

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING

    configure_logging(force=True)
