"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from rolegate.adapters.apscheduler import ApsJobScheduler
from rolegate.adapters.discord import DiscordChatClient
from rolegate.adapters.sqlalchemy import SqlAlchemyEntitlementStore, is_started, startup
from rolegate.adapters.stripe import StripeBillingClient
from rolegate.config import (
    LEGACY_MIGRATION_FLAG,
    MissingConfigurationError,
    PollingConfig,
    get_billing_config,
    get_chat_config,
    get_polling_config,
)
from rolegate.domain.access import AccessDispatcher
from rolegate.domain.bulk import LegacyMigration, SubscriptionReset
from rolegate.domain.clock import utcnow
from rolegate.domain.guard import MigrationGuard, schedule_guarded_run
from rolegate.domain.model import ACCESS_STATUSES
from rolegate.domain.reconciliation import ReconciliationEngine

if TYPE_CHECKING:
    from rolegate.config import RoleConfig
    from rolegate.domain.clock import Clock
    from rolegate.domain.model import MigrationFlag
    from rolegate.domain.ports import (
        BillingProvider,
        ChatPlatform,
        CheckoutLink,
        EntitlementStore,
        JobScheduler,
    )
    from rolegate.domain.results import BatchResult, GuardResult, SweepResult

log = getLogger(__name__)

DRAIN_TIMEOUT_SECONDS = 30.0


class CheckoutRejectedError(RuntimeError):
    """Raised when a checkout link must not be issued for a member."""


@dataclass(slots=True)
class Runtime:
    """Composition root holding every wired collaborator."""

    store: EntitlementStore
    billing: BillingProvider | None
    chat: ChatPlatform | None
    timers: JobScheduler
    polling: PollingConfig
    dispatcher: AccessDispatcher
    engine: ReconciliationEngine
    guard: MigrationGuard
    clock: Clock = field(default=utcnow)

    def subscription_reset(self) -> SubscriptionReset:
        return SubscriptionReset(
            store=self.store,
            billing=self.billing,
            dispatcher=self.dispatcher,
            clock=self.clock,
            delay_seconds=self.polling.batch_delay_seconds,
        )

    def legacy_migration(self) -> LegacyMigration:
        return LegacyMigration(
            store=self.store,
            clock=self.clock,
            grace_days=self.polling.legacy_grace_days,
            delay_seconds=self.polling.batch_delay_seconds,
        )

    async def aclose(self) -> None:
        for client in (self.billing, self.chat):
            aclose = getattr(client, "aclose", None)
            if aclose is not None:
                await aclose()


def assemble_runtime(
    *,
    store: EntitlementStore,
    billing: BillingProvider | None,
    chat: ChatPlatform | None,
    roles: RoleConfig | None,
    timers: JobScheduler,
    polling: PollingConfig | None = None,
    clock: Clock = utcnow,
) -> Runtime:
    effective_polling = polling or PollingConfig()
    dispatcher = AccessDispatcher(
        chat=chat, roles=roles, grace_period_days=effective_polling.grace_period_days
    )
    engine = ReconciliationEngine(
        store=store,
        billing=billing,
        dispatcher=dispatcher,
        timers=timers,
        polling=effective_polling,
        clock=clock,
    )
    return Runtime(
        store=store,
        billing=billing,
        chat=chat,
        timers=timers,
        polling=effective_polling,
        dispatcher=dispatcher,
        engine=engine,
        guard=MigrationGuard(store),
        clock=clock,
    )


def build_runtime() -> Runtime:
    """Wire adapters from the environment.

    Missing billing or chat credentials are logged and leave that side inert;
    invalid polling values raise ``ConfigurationError``.
    """

    polling = get_polling_config()
    if not is_started():
        startup()

    billing: StripeBillingClient | None = None
    try:
        billing = StripeBillingClient(config=get_billing_config())
    except MissingConfigurationError as exc:
        log.error(f"Billing provider not configured: {exc}")

    chat: DiscordChatClient | None = None
    roles: RoleConfig | None = None
    try:
        chat_config = get_chat_config()
    except MissingConfigurationError as exc:
        log.error(f"Chat platform not configured: {exc}")
    else:
        chat = DiscordChatClient(config=chat_config)
        roles = chat_config.roles

    return assemble_runtime(
        store=SqlAlchemyEntitlementStore(),
        billing=billing,
        chat=chat,
        roles=roles,
        timers=ApsJobScheduler(),
        polling=polling,
    )


async def serve(
    runtime: Runtime,
    stop_event: asyncio.Event,
    *,
    schedule_reset: bool = False,
) -> None:
    """Run the reconciliation jobs until ``stop_event`` is set."""

    runtime.engine.start()
    if schedule_reset:
        await schedule_subscription_reset(runtime)

    log.info("rolegate service running")
    try:
        await stop_event.wait()
    finally:
        log.info("Shutting down")
        runtime.engine.stop()
        await runtime.timers.drain(DRAIN_TIMEOUT_SECONDS)
        runtime.timers.shutdown()
        await runtime.aclose()


async def sync_once(runtime: Runtime) -> tuple[SweepResult, BatchResult]:
    """Run one slow tick: the full sweep followed by legacy expiry."""

    sweep = await runtime.engine.reconcile_all()
    expiry = await runtime.engine.reconcile_legacy_expiry()
    return sweep, expiry


async def begin_checkout(
    runtime: Runtime,
    identity: str,
    *,
    display_name: str | None = None,
    email: str | None = None,
) -> CheckoutLink:
    """Issue a checkout link and start fast polling for ``identity``."""

    if runtime.billing is None:
        raise CheckoutRejectedError("Billing provider is not configured")
    if runtime.engine.has(identity):
        raise CheckoutRejectedError(f"A checkout is already pending for {identity}")
    record = await runtime.store.get(identity)
    if record is not None and record.status in ACCESS_STATUSES and not record.is_legacy_grant:
        raise CheckoutRejectedError(f"{identity} already has a {record.status} subscription")

    link = await runtime.billing.create_checkout_session(
        identity, display_name=display_name, email=email
    )
    runtime.engine.track(identity, link.token)
    return link


async def run_subscription_reset(runtime: Runtime) -> GuardResult:
    return await runtime.guard.run_once(runtime.polling.reset_flag, runtime.subscription_reset())


async def schedule_subscription_reset(runtime: Runtime) -> bool:
    return await schedule_guarded_run(
        runtime.timers,
        runtime.guard,
        runtime.polling.reset_flag,
        runtime.subscription_reset(),
        run_at=runtime.polling.reset_at,
        clock=runtime.clock,
    )


async def run_legacy_migration(runtime: Runtime) -> GuardResult:
    return await runtime.guard.run_once(LEGACY_MIGRATION_FLAG, runtime.legacy_migration())


async def list_flags(runtime: Runtime) -> list[MigrationFlag]:
    flags: list[MigrationFlag] = []
    for name in (LEGACY_MIGRATION_FLAG, runtime.polling.reset_flag):
        flag = await runtime.store.get_flag(name)
        if flag is not None:
            flags.append(flag)
    return flags
