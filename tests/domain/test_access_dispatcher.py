from __future__ import annotations

import asyncio

from rolegate.domain.access import DMS_DISABLED, NOT_A_MEMBER, NOT_CONFIGURED, AccessDispatcher
from rolegate.domain.notifications import NotificationKind, render_notification
from rolegate.domain.results import StepStatus
from tests.helpers.fakes import LOCALE_EN, MEMBER, MEMBER_EN, RESTRICTED, ROLES, FakeChat


def test_grant_swaps_restricted_for_member_role(
    chat: FakeChat, dispatcher: AccessDispatcher
) -> None:
    chat.join("u1", RESTRICTED)

    result = asyncio.run(dispatcher.grant("u1"))

    assert result.status is StepStatus.SUCCESS
    assert chat.roles_of("u1") == frozenset({MEMBER})


def test_grant_uses_locale_member_role(chat: FakeChat, dispatcher: AccessDispatcher) -> None:
    chat.join("u1", RESTRICTED, LOCALE_EN)

    asyncio.run(dispatcher.grant("u1"))

    assert chat.roles_of("u1") == frozenset({LOCALE_EN, MEMBER_EN})


def test_grant_is_idempotent(chat: FakeChat, dispatcher: AccessDispatcher) -> None:
    chat.join("u1", RESTRICTED)

    asyncio.run(dispatcher.grant("u1"))
    calls_after_first = list(chat.role_calls)
    second = asyncio.run(dispatcher.grant("u1"))

    assert second.status is StepStatus.SKIPPED
    assert second.ok
    assert chat.role_calls == calls_after_first


def test_revoke_removes_every_privilege_role(chat: FakeChat, dispatcher: AccessDispatcher) -> None:
    chat.join("u1", LOCALE_EN, MEMBER, MEMBER_EN)

    result = asyncio.run(dispatcher.revoke("u1"))

    assert result.status is StepStatus.SUCCESS
    assert chat.roles_of("u1") == frozenset({LOCALE_EN, RESTRICTED})


def test_revoke_is_idempotent(chat: FakeChat, dispatcher: AccessDispatcher) -> None:
    chat.join("u1", RESTRICTED)

    result = asyncio.run(dispatcher.revoke("u1"))

    assert result.status is StepStatus.SKIPPED
    assert chat.role_calls == []


def test_member_who_left_is_skipped(dispatcher: AccessDispatcher) -> None:
    grant = asyncio.run(dispatcher.grant("ghost"))
    revoke = asyncio.run(dispatcher.revoke("ghost"))

    assert grant.status is StepStatus.SKIPPED
    assert grant.reason == NOT_A_MEMBER
    assert revoke.ok


def test_platform_errors_become_failed_steps(chat: FakeChat, dispatcher: AccessDispatcher) -> None:
    chat.join("u1", RESTRICTED)
    chat.fail_roles_for.add("u1")

    result = asyncio.run(dispatcher.grant("u1"))

    assert result.status is StepStatus.FAILED
    assert result.reason == "Missing Permissions"


def test_notify_sends_rendered_template(chat: FakeChat, dispatcher: AccessDispatcher) -> None:
    result = asyncio.run(dispatcher.notify("u1", NotificationKind.PAYMENT_FAILED))

    assert result.step == "notify:payment_failed"
    assert result.status is StepStatus.SUCCESS
    assert chat.messages_to("u1") == [
        render_notification(NotificationKind.PAYMENT_FAILED, grace_period_days=3)
    ]
    assert "3 days" in chat.messages_to("u1")[0]


def test_refused_dm_is_a_skipped_step(chat: FakeChat, dispatcher: AccessDispatcher) -> None:
    chat.refuse_dms_from.add("u1")

    result = asyncio.run(dispatcher.notify("u1", NotificationKind.WELCOME))

    assert result.status is StepStatus.SKIPPED
    assert result.reason == DMS_DISABLED
    assert result.ok
    assert chat.messages == []


def test_transient_dm_error_is_reported_not_raised(
    chat: FakeChat, dispatcher: AccessDispatcher
) -> None:
    chat.fail_dms_for.add("u1")

    result = asyncio.run(dispatcher.notify("u1", NotificationKind.WELCOME))

    assert result.status is StepStatus.FAILED
    assert result.reason == "chat platform timed out"


def test_member_leaving_mid_grant_is_skipped(chat: FakeChat, dispatcher: AccessDispatcher) -> None:
    chat.join("u1", RESTRICTED)
    chat.leave_on_role_change.add("u1")

    grant = asyncio.run(dispatcher.grant("u1"))

    assert grant.status is StepStatus.SKIPPED
    assert grant.reason == NOT_A_MEMBER


def test_member_leaving_mid_revoke_is_skipped(chat: FakeChat, dispatcher: AccessDispatcher) -> None:
    chat.join("u1", MEMBER)
    chat.leave_on_role_change.add("u1")

    revoke = asyncio.run(dispatcher.revoke("u1"))

    assert revoke.status is StepStatus.SKIPPED
    assert revoke.reason == NOT_A_MEMBER


def test_unconfigured_dispatcher_skips_everything() -> None:
    dispatcher = AccessDispatcher(chat=None, roles=ROLES)

    results = [
        asyncio.run(dispatcher.grant("u1")),
        asyncio.run(dispatcher.revoke("u1")),
        asyncio.run(dispatcher.notify("u1", NotificationKind.WELCOME)),
    ]

    assert all(result.status is StepStatus.SKIPPED for result in results)
    assert {result.reason for result in results} == {NOT_CONFIGURED}
