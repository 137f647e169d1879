"""Unit tests for the membership lifecycle against an in-memory database."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlmodel import col, select

from leadhub.exceptions import BadRequest, Conflict, Forbidden, NotFound
from leadhub.models.database import Activity, Tenant
from leadhub.storage.repositories.memberships import MembershipRepository
from leadhub.storage.repositories.users import UserRepository
from leadhub.tenancy.context import Principal
from leadhub.tenancy.memberships import MembershipService
from leadhub.types import ActivityType, MembershipStatus, Role

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from tests.conftest import FakeIdentityProvider, Workspace


@pytest.fixture()
def service(session: AsyncSession, identity_provider: FakeIdentityProvider) -> MembershipService:
    return MembershipService(session, identity_provider=identity_provider)


async def _activities(session: AsyncSession, tenant_id: str) -> list[Activity]:
    stmt = select(Activity).where(col(Activity.tenant_id) == tenant_id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def _principal(session: AsyncSession, email: str) -> Principal:
    user = await UserRepository(session).get_by_email(email)
    assert user is not None
    return Principal.from_user(user)


@pytest.mark.unit
class TestInvite:
    async def test_admin_invites_then_duplicate_conflicts(
        self, session: AsyncSession, workspace: Workspace, service: MembershipService
    ) -> None:
        admin = await workspace.member("ann@example.com", Role.ADMIN)

        membership, user = await service.invite(admin, "bob@x.com", Role.ADMIN)

        assert membership.status == MembershipStatus.PENDING
        assert membership.role == Role.ADMIN
        assert membership.tenant_id == workspace.tenant_id
        assert user.email == "bob@x.com"
        assert user.external_id is None

        with pytest.raises(Conflict, match="already a member"):
            await service.invite(admin, "BOB@x.com", Role.ADMIN)

    async def test_conflict_in_any_status(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)
        await workspace.member("sam@example.com", Role.USER, MembershipStatus.SUSPENDED)

        with pytest.raises(Conflict):
            await service.invite(owner, "sam@example.com")

    async def test_user_cannot_invite(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        user = await workspace.member("uma@example.com", Role.USER)

        with pytest.raises(Forbidden, match="Only owners and admins can invite users"):
            await service.invite(user, "bob@x.com")

    async def test_admin_cannot_invite_owner(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        admin = await workspace.member("ann@example.com", Role.ADMIN)

        with pytest.raises(Forbidden, match="Only owners can assign the owner role"):
            await service.invite(admin, "bob@x.com", Role.OWNER)

    async def test_owner_can_invite_owner(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)
        membership, _ = await service.invite(owner, "co@example.com", Role.OWNER)
        assert membership.role == Role.OWNER

    async def test_invite_reuses_existing_user(
        self, workspace: Workspace, new_workspace, service: MembershipService
    ) -> None:
        other = await new_workspace("Globex")
        existing = await other.member("bob@x.com", Role.USER)
        owner = await workspace.member("alice@example.com", Role.OWNER)

        _, user = await service.invite(owner, "bob@x.com")

        assert user.id == existing.user_id

    async def test_invite_records_system_activity(
        self, session: AsyncSession, workspace: Workspace, service: MembershipService
    ) -> None:
        admin = await workspace.member("ann@example.com", Role.ADMIN)

        await service.invite(admin, "bob@x.com")

        activities = await _activities(session, workspace.tenant_id)
        assert len(activities) == 1
        assert activities[0].type == ActivityType.SYSTEM
        assert activities[0].title == "User invited"
        assert activities[0].user_id == admin.user_id
        assert "bob@x.com" in activities[0].description

    async def test_suspended_actor_rechecked_under_lock(
        self, session: AsyncSession, workspace: Workspace, service: MembershipService
    ) -> None:
        admin = await workspace.member("ann@example.com", Role.ADMIN)
        # Suspended after the guard built the context.
        record = await MembershipRepository(session).get(admin.membership_id)
        assert record is not None
        record.status = MembershipStatus.SUSPENDED
        await session.commit()

        with pytest.raises(Forbidden, match="No active membership found"):
            await service.invite(admin, "bob@x.com")


@pytest.mark.unit
class TestInvitationResponse:
    async def test_invitee_accepts_own_invitation(
        self, session: AsyncSession, workspace: Workspace, service: MembershipService
    ) -> None:
        admin = await workspace.member("ann@example.com", Role.ADMIN)
        membership, _ = await service.invite(admin, "bob@x.com", Role.ADMIN)
        bob = await _principal(session, "bob@x.com")

        accepted, tenant = await service.accept_invitation(bob, membership.id)

        assert accepted.status == MembershipStatus.ACTIVE
        assert tenant.id == workspace.tenant_id

    async def test_accepting_someone_elses_invitation_is_forbidden(
        self, session: AsyncSession, workspace: Workspace, service: MembershipService
    ) -> None:
        admin = await workspace.member("ann@example.com", Role.ADMIN)
        mine, _ = await service.invite(admin, "bob@x.com")
        theirs, _ = await service.invite(admin, "carl@x.com")
        theirs_id = theirs.id
        bob = await _principal(session, "bob@x.com")

        await service.accept_invitation(bob, mine.id)
        with pytest.raises(Forbidden, match="This invitation is not for you"):
            await service.accept_invitation(bob, theirs_id)

        record = await MembershipRepository(session).get(theirs_id, refresh=True)
        assert record is not None
        assert record.status == MembershipStatus.PENDING

    async def test_accepting_twice_is_bad_request(
        self, session: AsyncSession, workspace: Workspace, service: MembershipService
    ) -> None:
        admin = await workspace.member("ann@example.com", Role.ADMIN)
        membership, _ = await service.invite(admin, "bob@x.com")
        membership_id = membership.id
        bob = await _principal(session, "bob@x.com")
        await service.accept_invitation(bob, membership_id)

        with pytest.raises(BadRequest, match="already been processed"):
            await service.accept_invitation(bob, membership_id)

    async def test_unknown_invitation(
        self, session: AsyncSession, workspace: Workspace, service: MembershipService
    ) -> None:
        member = await workspace.member("bob@x.com")

        with pytest.raises(NotFound, match="Invitation not found"):
            await service.accept_invitation(member.user, "missing")

    async def test_decline_deletes_pending_membership(
        self, session: AsyncSession, workspace: Workspace, service: MembershipService
    ) -> None:
        admin = await workspace.member("ann@example.com", Role.ADMIN)
        membership, _ = await service.invite(admin, "bob@x.com")
        membership_id = membership.id
        bob = await _principal(session, "bob@x.com")

        await service.decline_invitation(bob, membership_id)

        assert await MembershipRepository(session).get(membership_id, refresh=True) is None
        titles = [a.title for a in await _activities(session, workspace.tenant_id)]
        assert "Invitation declined" in titles

    async def test_my_invitations_lists_pending_only(
        self, session: AsyncSession, workspace: Workspace, new_workspace, service: MembershipService
    ) -> None:
        admin = await workspace.member("ann@example.com", Role.ADMIN)
        other = await new_workspace("Globex")
        await other.member("bob@x.com", Role.USER)
        await service.invite(admin, "bob@x.com")
        bob = await _principal(session, "bob@x.com")

        invitations = await service.my_invitations(bob)

        assert len(invitations) == 1
        membership, tenant = invitations[0]
        assert membership.status == MembershipStatus.PENDING
        assert tenant.id == workspace.tenant_id


@pytest.mark.unit
class TestUpdateStatus:
    async def test_admin_fiat_activates_pending(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        admin = await workspace.member("ann@example.com", Role.ADMIN)
        pending = await workspace.member("bob@x.com", Role.USER, MembershipStatus.PENDING)

        membership, _ = await service.update_status(
            admin, pending.membership_id, MembershipStatus.ACTIVE
        )

        assert membership.status == MembershipStatus.ACTIVE

    async def test_suspend_and_reactivate(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)
        user = await workspace.member("uma@example.com", Role.USER)

        suspended, _ = await service.update_status(
            owner, user.membership_id, MembershipStatus.SUSPENDED
        )
        assert suspended.status == MembershipStatus.SUSPENDED
        active, _ = await service.update_status(owner, user.membership_id, MembershipStatus.ACTIVE)
        assert active.status == MembershipStatus.ACTIVE

    async def test_cannot_suspend_self(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        admin = await workspace.member("ann@example.com", Role.ADMIN)

        with pytest.raises(BadRequest, match="You cannot suspend your own membership"):
            await service.update_status(admin, admin.membership_id, MembershipStatus.SUSPENDED)

    async def test_last_owner_cannot_be_deactivated(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)

        with pytest.raises(BadRequest, match="last owner"):
            await service.update_status(owner, owner.membership_id, MembershipStatus.PENDING)

    async def test_user_cannot_update_status(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        user = await workspace.member("uma@example.com", Role.USER)
        other = await workspace.member("bob@x.com", Role.USER)

        with pytest.raises(Forbidden):
            await service.update_status(user, other.membership_id, MembershipStatus.SUSPENDED)

    async def test_admin_cannot_touch_owner(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)
        await workspace.member("carol@example.com", Role.OWNER)
        admin = await workspace.member("ann@example.com", Role.ADMIN)

        with pytest.raises(Forbidden, match="Only owners can modify"):
            await service.update_status(admin, owner.membership_id, MembershipStatus.SUSPENDED)

    async def test_admin_suspending_sole_owner_is_bad_request(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)
        admin = await workspace.member("ann@example.com", Role.ADMIN)

        with pytest.raises(BadRequest, match="last owner"):
            await service.update_status(admin, owner.membership_id, MembershipStatus.SUSPENDED)

    async def test_foreign_tenant_membership(
        self, workspace: Workspace, new_workspace, service: MembershipService
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)
        other = await new_workspace("Globex")
        outsider = await other.member("zed@example.com", Role.USER)

        with pytest.raises(Forbidden, match="another tenant"):
            await service.update_status(
                owner, outsider.membership_id, MembershipStatus.SUSPENDED
            )

    async def test_unknown_membership(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)

        with pytest.raises(NotFound, match="Membership not found"):
            await service.update_status(owner, "missing", MembershipStatus.ACTIVE)


@pytest.mark.unit
class TestUpdateRole:
    @pytest.mark.parametrize("target_role", list(Role))
    async def test_user_role_is_always_forbidden(
        self, workspace: Workspace, service: MembershipService, target_role: Role
    ) -> None:
        user = await workspace.member("uma@example.com", Role.USER)
        target = await workspace.member("t@example.com", target_role)

        with pytest.raises(Forbidden):
            await service.update_role(user, target.membership_id, Role.ADMIN)

    async def test_user_forbidden_even_for_unknown_target(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        user = await workspace.member("uma@example.com", Role.USER)

        with pytest.raises(Forbidden):
            await service.update_role(user, "missing", Role.USER)

    async def test_owner_cannot_demote_self(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)
        await workspace.member("carol@example.com", Role.OWNER)

        with pytest.raises(BadRequest, match="You cannot remove your own owner role"):
            await service.update_role(owner, owner.membership_id, Role.ADMIN)

    async def test_admin_cannot_promote_to_owner(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        admin = await workspace.member("ann@example.com", Role.ADMIN)
        user = await workspace.member("uma@example.com", Role.USER)

        with pytest.raises(Forbidden, match="Only owners can assign the owner role"):
            await service.update_role(admin, user.membership_id, Role.OWNER)

    async def test_admin_cannot_demote_owner(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        await workspace.member("alice@example.com", Role.OWNER)
        owner = await workspace.member("carol@example.com", Role.OWNER)
        admin = await workspace.member("ann@example.com", Role.ADMIN)

        with pytest.raises(Forbidden, match="Only owners can change"):
            await service.update_role(admin, owner.membership_id, Role.USER)

    async def test_admin_demoting_sole_owner_is_bad_request(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)
        admin = await workspace.member("ann@example.com", Role.ADMIN)

        with pytest.raises(BadRequest, match="last owner"):
            await service.update_role(admin, owner.membership_id, Role.USER)

    async def test_owner_promotes_and_demotes(
        self, session: AsyncSession, workspace: Workspace, service: MembershipService
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)
        user = await workspace.member("uma@example.com", Role.USER)

        promoted, _ = await service.update_role(owner, user.membership_id, Role.OWNER)
        assert promoted.role == Role.OWNER
        demoted, _ = await service.update_role(owner, user.membership_id, Role.ADMIN)
        assert demoted.role == Role.ADMIN

        titles = [a.title for a in await _activities(session, workspace.tenant_id)]
        assert titles.count("Role updated") == 2


@pytest.mark.unit
class TestRemove:
    async def test_sole_owner_cannot_remove_self(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        alice = await workspace.member("alice@example.com", Role.OWNER)

        with pytest.raises(BadRequest, match="You cannot remove your own membership"):
            await service.remove(alice, alice.membership_id)

    async def test_second_owner_removes_first(
        self,
        session: AsyncSession,
        workspace: Workspace,
        service: MembershipService,
        identity_provider: FakeIdentityProvider,
    ) -> None:
        alice = await workspace.member("alice@example.com", Role.OWNER, external_id="ext_alice")
        carol = await workspace.member("carol@example.com", Role.OWNER)

        await service.remove(carol, alice.membership_id)

        assert await MembershipRepository(session).get(alice.membership_id) is None
        # Alice held no other membership, so her user and her account go too.
        assert await UserRepository(session).get(alice.user_id) is None
        assert identity_provider.deleted == ["ext_alice"]
        titles = [a.title for a in await _activities(session, workspace.tenant_id)]
        assert titles == ["Member removed"]

    async def test_user_with_other_memberships_is_kept(
        self,
        session: AsyncSession,
        workspace: Workspace,
        new_workspace,
        service: MembershipService,
        identity_provider: FakeIdentityProvider,
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)
        bob = await workspace.member("bob@x.com", Role.USER, external_id="ext_bob")
        other = await new_workspace("Globex")
        await other.member("bob@x.com", Role.USER)

        await service.remove(owner, bob.membership_id)

        assert await UserRepository(session).get(bob.user_id) is not None
        assert identity_provider.deleted == []

    async def test_identity_cleanup_failure_keeps_removal(
        self,
        session: AsyncSession,
        workspace: Workspace,
        service: MembershipService,
        identity_provider: FakeIdentityProvider,
    ) -> None:
        identity_provider.fail_delete = True
        owner = await workspace.member("alice@example.com", Role.OWNER)
        bob = await workspace.member("bob@x.com", Role.USER, external_id="ext_bob")

        await service.remove(owner, bob.membership_id)

        assert await MembershipRepository(session).get(bob.membership_id, refresh=True) is None
        assert await UserRepository(session).get(bob.user_id) is None

    async def test_admin_cannot_remove_owner(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)
        await workspace.member("carol@example.com", Role.OWNER)
        admin = await workspace.member("ann@example.com", Role.ADMIN)

        with pytest.raises(Forbidden, match="Only owners can remove an owner"):
            await service.remove(admin, owner.membership_id)

    async def test_admin_removing_sole_owner_is_bad_request(
        self, session: AsyncSession, workspace: Workspace, service: MembershipService
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)
        admin = await workspace.member("ann@example.com", Role.ADMIN)

        with pytest.raises(BadRequest, match="Cannot remove the last owner"):
            await service.remove(admin, owner.membership_id)

        assert await MembershipRepository(session).get(owner.membership_id, refresh=True)

    async def test_user_cannot_remove(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        user = await workspace.member("uma@example.com", Role.USER)
        other = await workspace.member("bob@x.com", Role.USER)

        with pytest.raises(Forbidden):
            await service.remove(user, other.membership_id)

    async def test_removing_provisioned_owner_releases_workspace(
        self, session: AsyncSession, workspace: Workspace, service: MembershipService
    ) -> None:
        alice = await workspace.member("alice@example.com", Role.OWNER)
        carol = await workspace.member("carol@example.com", Role.OWNER)
        tenant = await session.get(Tenant, workspace.tenant_id)
        assert tenant is not None
        tenant.provisioned_for_id = alice.user_id
        await session.commit()

        await service.remove(carol, alice.membership_id)

        tenant = await session.get(Tenant, workspace.tenant_id, populate_existing=True)
        assert tenant is not None
        assert tenant.provisioned_for_id is None


@pytest.mark.unit
class TestCreateMember:
    async def test_owner_creates_active_member(
        self,
        workspace: Workspace,
        service: MembershipService,
        identity_provider: FakeIdentityProvider,
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)

        membership, user = await service.create_member(
            owner, email="New@Example.com", username="Newbie", password="s3cret-pass"
        )

        assert membership.status == MembershipStatus.ACTIVE
        assert membership.role == Role.USER
        assert user.email == "new@example.com"
        assert user.name == "Newbie"
        assert user.external_id == identity_provider.created[0].external_id

    async def test_admin_cannot_create(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        admin = await workspace.member("ann@example.com", Role.ADMIN)

        with pytest.raises(Forbidden, match="Only owners can create users"):
            await service.create_member(
                admin, email="new@example.com", username="New", password="s3cret-pass"
            )

    async def test_provider_error_is_bad_request(
        self,
        workspace: Workspace,
        service: MembershipService,
        identity_provider: FakeIdentityProvider,
    ) -> None:
        identity_provider.fail_create = True
        owner = await workspace.member("alice@example.com", Role.OWNER)

        with pytest.raises(BadRequest, match="email address is taken"):
            await service.create_member(
                owner, email="new@example.com", username="New", password="s3cret-pass"
            )

    async def test_existing_member_conflicts(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)
        await workspace.member("bob@x.com", Role.USER)

        with pytest.raises(Conflict):
            await service.create_member(
                owner, email="bob@x.com", username="Bob", password="s3cret-pass"
            )


@pytest.mark.unit
class TestListMembers:
    async def test_lists_every_status_with_user(
        self, workspace: Workspace, service: MembershipService
    ) -> None:
        owner = await workspace.member("alice@example.com", Role.OWNER)
        await workspace.member("bob@x.com", Role.USER, MembershipStatus.PENDING)

        members = await service.list_members(owner)

        emails = sorted(user.email for _, user in members)
        assert emails == ["alice@example.com", "bob@x.com"]
