"""
Role-based permission queries against a user's role in one household.

``user`` is anything exposing a ``household_roles`` mapping of household ID
(string) to role name: the ORM ``User`` or the ``UserResponse`` schema.

The boolean checks answer False when the user has no role in the household;
``get_user_permissions`` raises instead, because there is nothing to list.
"""
from typing import Any, Iterable, List, Optional

from homekeeper.core.exception import CorruptStateException
from homekeeper.core.permissions import ROLE_PERMISSIONS, Permission, Role


class MissingHouseholdRoleError(LookupError):
    """The user holds no role in the requested household."""


def get_household_role(user: Any, household_id: Any) -> Optional[Role]:
    raw = (user.household_roles or {}).get(str(household_id))
    if not raw:
        return None
    try:
        return Role(raw)
    except ValueError:
        raise CorruptStateException(
            f"Unknown role '{raw}' stored for household {household_id}."
        )


def has_permission(user: Any, household_id: Any, permission: Permission) -> bool:
    role = get_household_role(user, household_id)
    if role is None:
        return False
    return permission in ROLE_PERMISSIONS[role]


def has_any_permission(user: Any, household_id: Any, permissions: Iterable[Permission]) -> bool:
    role = get_household_role(user, household_id)
    if role is None:
        return False
    granted = ROLE_PERMISSIONS[role]
    return any(p in granted for p in permissions)


def has_all_permissions(user: Any, household_id: Any, permissions: Iterable[Permission]) -> bool:
    role = get_household_role(user, household_id)
    if role is None:
        return False
    granted = ROLE_PERMISSIONS[role]
    return all(p in granted for p in permissions)


def get_user_permissions(user: Any, household_id: Any) -> List[Permission]:
    role = get_household_role(user, household_id)
    if role is None:
        raise MissingHouseholdRoleError(
            f"User is not assigned a role for household {household_id}"
        )
    return sorted(ROLE_PERMISSIONS[role], key=lambda p: p.value)
