"""Access dispatcher: privilege roles and member notifications.

Grant and revoke are idempotent and converge on the target role set no matter
how often they run. A member who left the space is a successful no-op, since
there is nobody left to act on; a member who refuses direct messages is skipped
the same way. Chat-platform errors never escape: every call reports a
``StepResult`` and logs each role change on its own line.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from rolegate.config.polling import DEFAULT_GRACE_PERIOD_DAYS

from .notifications import NotificationKind, render_notification
from .ports.chat import DirectMessagesDisabledError, MemberNotFoundError
from .results import StepResult

if TYPE_CHECKING:
    from rolegate.config.chat import RoleConfig

    from .ports.chat import ChatPlatform, Member

log = getLogger(__name__)

NOT_CONFIGURED = "chat platform not configured"
NOT_A_MEMBER = "member not in guild"
DMS_DISABLED = "direct messages disabled"


@dataclass(slots=True)
class AccessDispatcher:
    chat: ChatPlatform | None
    roles: RoleConfig | None
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS

    def resolve_privilege_role(self, member: Member) -> str:
        """Pick the member role matching the locale role the member already holds."""

        if self.roles is None:
            raise RuntimeError(NOT_CONFIGURED)
        for locale_role, member_role in self.roles.locale_roles:
            if member.has_role(locale_role):
                return member_role
        return self.roles.member_role_id

    async def grant(self, identity: str) -> StepResult:
        step = "grant"
        if self.chat is None or self.roles is None:
            return StepResult.skipped(step, NOT_CONFIGURED)
        try:
            member = await self.chat.get_member(identity)
            if member is None:
                log.warning("Could not find member %s in guild for role assignment", identity)
                return StepResult.skipped(step, NOT_A_MEMBER)

            changed = False
            restricted = self.roles.restricted_role_id
            if member.has_role(restricted):
                await self.chat.remove_role(identity, restricted)
                log.info("Removed restricted role %s from %s", restricted, identity)
                changed = True

            privilege_role = self.resolve_privilege_role(member)
            if not member.has_role(privilege_role):
                await self.chat.add_role(identity, privilege_role)
                log.info("Assigned privilege role %s to %s", privilege_role, identity)
                changed = True
        except MemberNotFoundError:
            log.warning("Member %s left the guild during role assignment", identity)
            return StepResult.skipped(step, NOT_A_MEMBER)
        except Exception as exc:  # noqa: BLE001
            log.error("Error assigning privilege roles to %s: %s", identity, exc)
            return StepResult.failed(step, str(exc))

        if not changed:
            return StepResult.skipped(step, "already granted")
        return StepResult.success(step)

    async def revoke(self, identity: str) -> StepResult:
        step = "revoke"
        if self.chat is None or self.roles is None:
            return StepResult.skipped(step, NOT_CONFIGURED)
        try:
            member = await self.chat.get_member(identity)
            if member is None:
                log.warning("Could not find member %s in guild for role removal", identity)
                return StepResult.skipped(step, NOT_A_MEMBER)

            changed = False
            for role_id in self.roles.privilege_role_ids:
                if member.has_role(role_id):
                    await self.chat.remove_role(identity, role_id)
                    log.info("Removed privilege role %s from %s", role_id, identity)
                    changed = True

            restricted = self.roles.restricted_role_id
            if not member.has_role(restricted):
                await self.chat.add_role(identity, restricted)
                log.info("Added restricted role %s to %s", restricted, identity)
                changed = True
        except MemberNotFoundError:
            log.warning("Member %s left the guild during role removal", identity)
            return StepResult.skipped(step, NOT_A_MEMBER)
        except Exception as exc:  # noqa: BLE001
            log.error("Error removing privilege roles from %s: %s", identity, exc)
            return StepResult.failed(step, str(exc))

        if not changed:
            return StepResult.skipped(step, "already revoked")
        return StepResult.success(step)

    async def notify(self, identity: str, kind: NotificationKind) -> StepResult:
        step = f"notify:{kind}"
        if self.chat is None:
            return StepResult.skipped(step, NOT_CONFIGURED)
        content = render_notification(kind, grace_period_days=self.grace_period_days)
        try:
            await self.chat.send_direct_message(identity, content)
        except DirectMessagesDisabledError:
            log.info("%s has direct messages disabled; skipped %s DM", identity, kind)
            return StepResult.skipped(step, DMS_DISABLED)
        except Exception as exc:  # noqa: BLE001
            log.warning("Could not send %s DM to %s: %s", kind, identity, exc)
            return StepResult.failed(step, str(exc))
        log.info("Sent %s DM to %s", kind, identity)
        return StepResult.success(step)
