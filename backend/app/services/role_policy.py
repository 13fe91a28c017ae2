"""
Role policy for actions one house member takes on another.

The rules live in a single table keyed by (actor role, target role) so they
can be audited and tested on their own:

- members may not act on other members
- admins may act on members and admins, never on owners
- owners may act on members only; admins are protected from owners
- nobody may grant the owner role through a role change
- anyone may leave (remove themself); the last-owner guard lives in the
  membership service because it needs the database
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple, Union

from app.core.errors import ConflictError
from app.models.house import HouseMember, MemberRole


class MemberAction(str, Enum):
    CHANGE_ROLE = "change_role"
    CHANGE_PERMISSIONS = "change_permissions"
    REMOVE = "remove"


_ALL_ACTIONS: FrozenSet[MemberAction] = frozenset(MemberAction)
_NONE: FrozenSet[MemberAction] = frozenset()

# (actor role, target role) -> allowed actions
POLICY: Dict[Tuple[MemberRole, MemberRole], FrozenSet[MemberAction]] = {
    (MemberRole.OWNER, MemberRole.OWNER): _NONE,
    (MemberRole.OWNER, MemberRole.ADMIN): _NONE,
    (MemberRole.OWNER, MemberRole.MEMBER): _ALL_ACTIONS,
    (MemberRole.ADMIN, MemberRole.OWNER): _NONE,
    (MemberRole.ADMIN, MemberRole.ADMIN): _ALL_ACTIONS,
    (MemberRole.ADMIN, MemberRole.MEMBER): _ALL_ACTIONS,
    (MemberRole.MEMBER, MemberRole.OWNER): _NONE,
    (MemberRole.MEMBER, MemberRole.ADMIN): _NONE,
    (MemberRole.MEMBER, MemberRole.MEMBER): _NONE,
}

GRANTABLE_ROLES: FrozenSet[MemberRole] = frozenset({MemberRole.ADMIN, MemberRole.MEMBER})

MANAGER_ROLES: FrozenSet[MemberRole] = frozenset({MemberRole.OWNER, MemberRole.ADMIN})

_ACTION_PHRASES = {
    MemberAction.CHANGE_ROLE: "change the role of",
    MemberAction.CHANGE_PERMISSIONS: "change the permissions of",
    MemberAction.REMOVE: "remove",
}


def is_allowed(
    actor_role: Union[MemberRole, str],
    target_role: Union[MemberRole, str],
    action: MemberAction,
) -> bool:
    """Look up (actor role, target role, action) in the policy table."""
    allowed = POLICY.get((MemberRole(actor_role), MemberRole(target_role)), _NONE)
    return action in allowed


def is_manager(role: Union[MemberRole, str]) -> bool:
    return MemberRole(role) in MANAGER_ROLES


def check_member_action(
    actor: HouseMember,
    target: HouseMember,
    action: MemberAction,
    new_role: Optional[MemberRole] = None,
) -> None:
    """
    Raise ConflictError unless ``actor`` may apply ``action`` to
    ``target``. Access to the house itself is checked by the caller.
    """
    if actor.user_id == target.user_id and action == MemberAction.REMOVE:
        return

    if new_role is not None and MemberRole(new_role) not in GRANTABLE_ROLES:
        raise ConflictError("The owner role cannot be granted")

    if not is_allowed(actor.role, target.role, action):
        raise ConflictError(
            f"A house {actor.role} cannot {_ACTION_PHRASES[action]} a house {target.role}"
        )
