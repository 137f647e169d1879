"""Role policy: pure capability checks for the OWNER > ADMIN > USER hierarchy."""

from __future__ import annotations

from enum import StrEnum

from leadhub.types import Role


class Action(StrEnum):
    VIEW_OWN_RESOURCES = "view_own_resources"
    VIEW_ALL_RESOURCES = "view_all_resources"
    INVITE_MEMBER = "invite_member"
    CREATE_MEMBER = "create_member"
    CHANGE_MEMBER_ROLE = "change_member_role"
    CHANGE_MEMBER_STATUS = "change_member_status"
    REMOVE_MEMBER = "remove_member"


_USER_ACTIONS = frozenset({Action.VIEW_OWN_RESOURCES})
_ADMIN_ACTIONS = _USER_ACTIONS | {
    Action.VIEW_ALL_RESOURCES,
    Action.INVITE_MEMBER,
    Action.CHANGE_MEMBER_ROLE,
    Action.CHANGE_MEMBER_STATUS,
    Action.REMOVE_MEMBER,
}
_OWNER_ACTIONS = _ADMIN_ACTIONS | {Action.CREATE_MEMBER}

CAPABILITIES: dict[Role, frozenset[Action]] = {
    Role.OWNER: _OWNER_ACTIONS,
    Role.ADMIN: _ADMIN_ACTIONS,
    Role.USER: _USER_ACTIONS,
}

# A new Role without a row fails at import.
if set(CAPABILITIES) != set(Role):
    _msg = f"capability table is missing roles: {set(Role) - set(CAPABILITIES)}"
    raise RuntimeError(_msg)

_RANK: dict[Role, int] = {Role.USER: 0, Role.ADMIN: 1, Role.OWNER: 2}

MANAGER_ROLES = frozenset({Role.OWNER, Role.ADMIN})


def can(role: Role, action: Action) -> bool:
    """Whether ``role`` may perform ``action`` at all."""
    return action in CAPABILITIES[role]


def outranks_or_equals(role: Role, other: Role) -> bool:
    return _RANK[role] >= _RANK[other]


def can_grant_role(actor_role: Role, role: Role) -> bool:
    """Whether the actor may hand out ``role`` by invite, creation or role change.

    Only an OWNER grants OWNER; managers grant roles at or below their own.
    """
    if role == Role.OWNER:
        return actor_role == Role.OWNER
    return actor_role in MANAGER_ROLES and outranks_or_equals(actor_role, role)


def can_manage_member(actor_role: Role, target_role: Role) -> bool:
    """Whether the actor may change or remove a membership holding ``target_role``.

    ADMIN manages ADMIN and USER memberships; OWNER memberships are managed
    by owners only.
    """
    if actor_role == Role.OWNER:
        return True
    if actor_role == Role.ADMIN:
        return target_role != Role.OWNER
    return False


def sees_all_resources(role: Role) -> bool:
    return can(role, Action.VIEW_ALL_RESOURCES)


def can_act_on_resource(actor_id: str, role: Role, owner_id: str | None) -> bool:
    """Ownership fallback: managers act on anything, users only on their own rows."""
    if sees_all_resources(role):
        return True
    return owner_id is not None and owner_id == actor_id
