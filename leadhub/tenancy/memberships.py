"""Membership lifecycle: invite, accept, decline, change role or status, remove.

Every mutation runs in one transaction that starts by locking the tenant
row, then re-reads the actor's and the target's memberships. Role, status
and owner-count checks therefore see committed state, not what the guard
saw at the start of the request. Each successful mutation records a
``system`` Activity in the same transaction.
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

import structlog
from sqlalchemy.exc import IntegrityError

from leadhub.audit.activity import record_activity
from leadhub.exceptions import (
    BadRequest,
    Conflict,
    ConfigError,
    Forbidden,
    IdentityProviderError,
    NotFound,
    StorageError,
)
from leadhub.models.database import Membership, Tenant, User, _utc_now
from leadhub.storage.repositories.memberships import MembershipRepository
from leadhub.storage.repositories.tenants import TenantRepository
from leadhub.storage.repositories.users import UserRepository, normalize_email
from leadhub.tenancy.policy import Action, can, can_grant_role, can_manage_member
from leadhub.tenancy.principal import resolve_user
from leadhub.types import MembershipStatus, Role

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from leadhub.tenancy.context import Principal, TenantContext
    from leadhub.web.auth.identity import IdentityProvider

logger = structlog.get_logger(__name__)

_NO_MEMBERSHIP = "No active membership found"


class MembershipService:
    """Guarded state transitions on Membership rows."""

    def __init__(
        self,
        session: AsyncSession,
        identity_provider: IdentityProvider | None = None,
    ) -> None:
        self._session = session
        self._identity_provider = identity_provider
        self._memberships = MembershipRepository(session)
        self._tenants = TenantRepository(session)
        self._users = UserRepository(session)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_members(self, ctx: TenantContext) -> list[tuple[Membership, User]]:
        return await self._memberships.list_for_tenant(ctx.tenant_id)

    async def my_invitations(self, user: Principal) -> list[tuple[Membership, Tenant]]:
        return await self._memberships.list_pending_for_user(user.id)

    # ------------------------------------------------------------------
    # Transaction helpers
    # ------------------------------------------------------------------

    @contextlib.asynccontextmanager
    async def _transaction(self) -> AsyncIterator[None]:
        try:
            yield
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise

    async def _lock_actor(self, ctx: TenantContext, action: Action, message: str) -> Membership:
        """Lock the tenant and re-validate the actor's membership under the lock."""
        if await self._tenants.lock(ctx.tenant_id) is None:
            raise Forbidden(_NO_MEMBERSHIP)
        actor = await self._memberships.get(ctx.membership_id, refresh=True)
        if (
            actor is None
            or actor.tenant_id != ctx.tenant_id
            or actor.status != MembershipStatus.ACTIVE
        ):
            raise Forbidden(_NO_MEMBERSHIP)
        if not can(Role(actor.role), action):
            raise Forbidden(message)
        return actor

    async def _load_target(
        self, membership_id: str, tenant_id: str, foreign_message: str
    ) -> tuple[Membership, User]:
        target = await self._memberships.get(membership_id, refresh=True)
        if target is None:
            raise NotFound("Membership not found")
        if target.tenant_id != tenant_id:
            raise Forbidden(foreign_message)
        user = await self._users.get(target.user_id)
        if user is None:
            msg = f"Membership {target.id} references missing user {target.user_id}"
            raise StorageError(msg)
        return target, user

    async def _ensure_owner_remains(self, target: Membership, message: str) -> None:
        """Refuse a change that would leave the tenant without an active OWNER."""
        if target.role != Role.OWNER or target.status != MembershipStatus.ACTIVE:
            return
        others = await self._memberships.count_active_owners(target.tenant_id, excluding=target.id)
        if others < 1:
            raise BadRequest(message)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def invite(
        self, ctx: TenantContext, email: str, role: Role = Role.USER
    ) -> tuple[Membership, User]:
        """Create a pending membership for ``email``, creating a placeholder user if needed."""
        if not can(ctx.role, Action.INVITE_MEMBER):
            raise Forbidden("Only owners and admins can invite users")
        if not can_grant_role(ctx.role, role):
            raise Forbidden("Only owners can assign the owner role")

        email = normalize_email(email)
        invited = await resolve_user(self._session, None, email)
        invited_id = invited.id

        async with self._transaction():
            actor = await self._lock_actor(
                ctx, Action.INVITE_MEMBER, "Only owners and admins can invite users"
            )
            if not can_grant_role(Role(actor.role), role):
                raise Forbidden("Only owners can assign the owner role")
            if await self._memberships.get_for(invited_id, ctx.tenant_id) is not None:
                raise Conflict("User is already a member of this tenant")
            try:
                membership = await self._memberships.add(
                    Membership(
                        user_id=invited_id,
                        tenant_id=ctx.tenant_id,
                        role=role,
                        status=MembershipStatus.PENDING,
                    )
                )
            except IntegrityError as exc:
                raise Conflict("User is already a member of this tenant") from exc
            await record_activity(
                self._session,
                tenant_id=ctx.tenant_id,
                user_id=ctx.user_id,
                title="User invited",
                description=f"{ctx.user.display_name} invited {email} to the team as {role}",
            )

        logger.info(
            "member_invited",
            tenant_id=ctx.tenant_id,
            membership_id=membership.id,
            invited_user_id=invited_id,
            role=str(role),
        )
        return membership, invited

    async def _lock_own_invitation(
        self, user: Principal, membership_id: str
    ) -> tuple[Membership, Tenant]:
        """Lock the invitation's tenant, then validate the invitation under the lock."""
        membership = await self._memberships.get(membership_id)
        tenant = await self._tenants.lock(membership.tenant_id) if membership else None
        membership = await self._memberships.get(membership_id, refresh=True)
        if membership is None or tenant is None:
            raise NotFound("Invitation not found")
        if membership.user_id != user.id:
            raise Forbidden("This invitation is not for you")
        if membership.status != MembershipStatus.PENDING:
            raise BadRequest("This invitation has already been processed")
        return membership, tenant

    async def accept_invitation(
        self, user: Principal, membership_id: str
    ) -> tuple[Membership, Tenant]:
        """Activate the caller's own pending membership."""
        async with self._transaction():
            membership, tenant = await self._lock_own_invitation(user, membership_id)
            membership.status = MembershipStatus.ACTIVE
            membership.updated_at = _utc_now()
            self._session.add(membership)
            await record_activity(
                self._session,
                tenant_id=membership.tenant_id,
                user_id=user.id,
                title="Invitation accepted",
                description=f"{user.display_name} joined the team",
            )

        logger.info("invitation_accepted", membership_id=membership.id, user_id=user.id)
        return membership, tenant

    async def decline_invitation(self, user: Principal, membership_id: str) -> None:
        """Delete the caller's own pending membership."""
        async with self._transaction():
            membership, tenant = await self._lock_own_invitation(user, membership_id)
            tenant_id = tenant.id
            await self._memberships.delete(membership)
            await record_activity(
                self._session,
                tenant_id=tenant_id,
                user_id=user.id,
                title="Invitation declined",
                description=f"{user.display_name} declined the invitation",
            )

        logger.info("invitation_declined", membership_id=membership_id, user_id=user.id)

    async def update_status(
        self, ctx: TenantContext, membership_id: str, status: MembershipStatus
    ) -> tuple[Membership, User]:
        """Set any status by administrative fiat; nobody may suspend themselves."""
        denied = "Only owners and admins can update membership status"
        if not can(ctx.role, Action.CHANGE_MEMBER_STATUS):
            raise Forbidden(denied)

        async with self._transaction():
            actor = await self._lock_actor(ctx, Action.CHANGE_MEMBER_STATUS, denied)
            target, target_user = await self._load_target(
                membership_id, ctx.tenant_id, "Cannot modify membership from another tenant"
            )
            if target.user_id == actor.user_id and status == MembershipStatus.SUSPENDED:
                raise BadRequest("You cannot suspend your own membership")
            if status != MembershipStatus.ACTIVE:
                await self._ensure_owner_remains(
                    target, "Cannot deactivate the last owner. Transfer ownership first."
                )
            if not can_manage_member(Role(actor.role), Role(target.role)):
                raise Forbidden("Only owners can modify an owner's membership")

            target.status = status
            target.updated_at = _utc_now()
            self._session.add(target)
            await record_activity(
                self._session,
                tenant_id=ctx.tenant_id,
                user_id=ctx.user_id,
                title="Membership status updated",
                description=(
                    f"{ctx.user.display_name} changed {target_user.name or target_user.email}'s "
                    f"status to {status}"
                ),
            )

        logger.info(
            "membership_status_updated",
            tenant_id=ctx.tenant_id,
            membership_id=target.id,
            status=str(status),
        )
        return target, target_user

    async def update_role(
        self, ctx: TenantContext, membership_id: str, role: Role
    ) -> tuple[Membership, User]:
        """Change a member's role; owners cannot demote themselves."""
        denied = "Only owners and admins can update roles"
        if not can(ctx.role, Action.CHANGE_MEMBER_ROLE):
            raise Forbidden(denied)

        async with self._transaction():
            actor = await self._lock_actor(ctx, Action.CHANGE_MEMBER_ROLE, denied)
            target, target_user = await self._load_target(
                membership_id, ctx.tenant_id, "Cannot modify membership from another tenant"
            )
            if target.user_id == actor.user_id and target.role == Role.OWNER and role != Role.OWNER:
                raise BadRequest("You cannot remove your own owner role")
            if role != Role.OWNER:
                await self._ensure_owner_remains(
                    target, "Cannot demote the last owner. Transfer ownership first."
                )
            if not can_grant_role(Role(actor.role), role):
                raise Forbidden("Only owners can assign the owner role")
            if not can_manage_member(Role(actor.role), Role(target.role)):
                raise Forbidden("Only owners can change an owner's role")

            previous = Role(target.role)
            target.role = role
            target.updated_at = _utc_now()
            self._session.add(target)
            await record_activity(
                self._session,
                tenant_id=ctx.tenant_id,
                user_id=ctx.user_id,
                title="Role updated",
                description=(
                    f"{ctx.user.display_name} changed {target_user.name or target_user.email}'s "
                    f"role to {role}"
                ),
            )

        logger.info(
            "membership_role_updated",
            tenant_id=ctx.tenant_id,
            membership_id=target.id,
            previous_role=str(previous),
            role=str(role),
        )
        return target, target_user

    async def remove(self, ctx: TenantContext, membership_id: str) -> None:
        """Delete a membership; delete the user too when it was their last one.

        Identity-provider account deletion happens after commit and is
        best-effort: its failure is logged and never undoes the removal.
        """
        denied = "Only owners and admins can remove members"
        if not can(ctx.role, Action.REMOVE_MEMBER):
            raise Forbidden(denied)

        orphan_external_id: str | None = None
        async with self._transaction():
            actor = await self._lock_actor(ctx, Action.REMOVE_MEMBER, denied)
            target, target_user = await self._load_target(
                membership_id, ctx.tenant_id, "Cannot remove membership from another tenant"
            )
            if target.user_id == actor.user_id:
                raise BadRequest("You cannot remove your own membership. Transfer ownership first.")
            if target.role == Role.OWNER:
                await self._ensure_owner_remains(
                    target, "Cannot remove the last owner. Transfer ownership first."
                )
            if not can_manage_member(Role(actor.role), Role(target.role)):
                raise Forbidden("Only owners can remove an owner")

            target_user_id = target.user_id
            target_label = target_user.name or target_user.email
            await self._memberships.delete(target)

            tenant = await self._tenants.get(ctx.tenant_id)
            if tenant is not None and tenant.provisioned_for_id == target_user_id:
                tenant.provisioned_for_id = None
                self._session.add(tenant)

            if await self._memberships.count_for_user(target_user_id) == 0:
                orphan_external_id = target_user.external_id
                await self._users.delete(target_user)

            await record_activity(
                self._session,
                tenant_id=ctx.tenant_id,
                user_id=ctx.user_id,
                title="Member removed",
                description=f"{ctx.user.display_name} removed {target_label} from the team",
            )

        logger.info(
            "membership_removed",
            tenant_id=ctx.tenant_id,
            membership_id=membership_id,
            user_deleted=orphan_external_id is not None,
        )
        if orphan_external_id:
            await self._delete_identity_quietly(orphan_external_id)

    async def _delete_identity_quietly(self, external_id: str) -> None:
        if self._identity_provider is None:
            logger.warning("identity_cleanup_skipped", external_id=external_id)
            return
        try:
            await self._identity_provider.delete_account(external_id)
        except Exception as exc:
            logger.warning(
                "identity_cleanup_failed",
                external_id=external_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def create_member(
        self,
        ctx: TenantContext,
        *,
        email: str,
        username: str,
        password: str,
        role: Role = Role.USER,
    ) -> tuple[Membership, User]:
        """Create an identity-provider account and an active membership (OWNER only)."""
        denied = "Only owners can create users"
        if not can(ctx.role, Action.CREATE_MEMBER):
            raise Forbidden(denied)
        if self._identity_provider is None:
            raise ConfigError("No identity provider configured")

        email = normalize_email(email)
        existing = await self._users.get_by_email(email)
        if existing is not None and await self._memberships.get_for(existing.id, ctx.tenant_id):
            raise Conflict("User is already a member of this tenant")

        try:
            identity = await self._identity_provider.create_account(email, password)
        except IdentityProviderError as exc:
            raise BadRequest(str(exc) or "Failed to create user") from exc

        user = await resolve_user(self._session, identity.external_id, email, username)
        user_id = user.id

        async with self._transaction():
            await self._lock_actor(ctx, Action.CREATE_MEMBER, denied)
            if await self._memberships.get_for(user_id, ctx.tenant_id) is not None:
                raise Conflict("User is already a member of this tenant")
            user.name = username
            user.updated_at = _utc_now()
            self._session.add(user)
            membership = await self._memberships.add(
                Membership(
                    user_id=user_id,
                    tenant_id=ctx.tenant_id,
                    role=role,
                    status=MembershipStatus.ACTIVE,
                )
            )
            await record_activity(
                self._session,
                tenant_id=ctx.tenant_id,
                user_id=ctx.user_id,
                title="User created",
                description=f"{ctx.user.display_name} created {email} as {role}",
            )

        logger.info(
            "member_created",
            tenant_id=ctx.tenant_id,
            membership_id=membership.id,
            user_id=user_id,
            role=str(role),
        )
        return membership, user
