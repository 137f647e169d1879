import pytest

from leadhub.tenancy.policy import (
    CAPABILITIES,
    MANAGER_ROLES,
    Action,
    can,
    can_act_on_resource,
    can_grant_role,
    can_manage_member,
    outranks_or_equals,
    sees_all_resources,
)
from leadhub.types import Role


@pytest.mark.unit
class TestCapabilities:
    def test_every_role_has_a_row(self) -> None:
        assert set(CAPABILITIES) == set(Role)

    def test_hierarchy_is_cumulative(self) -> None:
        assert CAPABILITIES[Role.USER] <= CAPABILITIES[Role.ADMIN] <= CAPABILITIES[Role.OWNER]

    @pytest.mark.parametrize(
        "action",
        [
            Action.INVITE_MEMBER,
            Action.CHANGE_MEMBER_ROLE,
            Action.CHANGE_MEMBER_STATUS,
            Action.REMOVE_MEMBER,
            Action.VIEW_ALL_RESOURCES,
        ],
    )
    def test_managers_only(self, action: Action) -> None:
        assert can(Role.OWNER, action)
        assert can(Role.ADMIN, action)
        assert not can(Role.USER, action)

    def test_create_member_is_owner_only(self) -> None:
        assert can(Role.OWNER, Action.CREATE_MEMBER)
        assert not can(Role.ADMIN, Action.CREATE_MEMBER)
        assert not can(Role.USER, Action.CREATE_MEMBER)

    def test_everyone_sees_own_resources(self) -> None:
        assert all(can(role, Action.VIEW_OWN_RESOURCES) for role in Role)

    def test_manager_roles(self) -> None:
        assert frozenset({Role.OWNER, Role.ADMIN}) == MANAGER_ROLES
        assert sees_all_resources(Role.ADMIN)
        assert not sees_all_resources(Role.USER)


@pytest.mark.unit
class TestRoleGrants:
    def test_rank_order(self) -> None:
        assert outranks_or_equals(Role.OWNER, Role.ADMIN)
        assert outranks_or_equals(Role.ADMIN, Role.ADMIN)
        assert not outranks_or_equals(Role.USER, Role.ADMIN)

    def test_only_owner_grants_owner(self) -> None:
        assert can_grant_role(Role.OWNER, Role.OWNER)
        assert not can_grant_role(Role.ADMIN, Role.OWNER)
        assert not can_grant_role(Role.USER, Role.OWNER)

    def test_admin_grants_admin_and_user(self) -> None:
        assert can_grant_role(Role.ADMIN, Role.ADMIN)
        assert can_grant_role(Role.ADMIN, Role.USER)

    def test_user_grants_nothing(self) -> None:
        assert not any(can_grant_role(Role.USER, role) for role in Role)

    def test_admin_cannot_manage_owner(self) -> None:
        assert not can_manage_member(Role.ADMIN, Role.OWNER)
        assert can_manage_member(Role.ADMIN, Role.ADMIN)
        assert can_manage_member(Role.ADMIN, Role.USER)

    def test_owner_manages_everyone(self) -> None:
        assert all(can_manage_member(Role.OWNER, role) for role in Role)

    def test_user_manages_nobody(self) -> None:
        assert not any(can_manage_member(Role.USER, role) for role in Role)


@pytest.mark.unit
class TestResourceOwnership:
    def test_manager_acts_on_anything(self) -> None:
        assert can_act_on_resource("u1", Role.ADMIN, "someone-else")
        assert can_act_on_resource("u1", Role.OWNER, None)

    def test_user_acts_on_own_only(self) -> None:
        assert can_act_on_resource("u1", Role.USER, "u1")
        assert not can_act_on_resource("u1", Role.USER, "u2")

    def test_user_denied_on_unowned(self) -> None:
        assert not can_act_on_resource("u1", Role.USER, None)
