"""
Household roles and the permission set each role grants.

The tables are built once at import time and exposed read-only. Adding a
``Role`` without a matching entry in ``ROLE_PERMISSIONS`` fails at import.
"""
from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Mapping


class Role(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    GUEST = "guest"


class Permission(str, Enum):
    # Household
    HOUSEHOLD_VIEW = "household:view"
    HOUSEHOLD_UPDATE = "household:update"
    HOUSEHOLD_DELETE = "household:delete"
    HOUSEHOLD_VIEW_MEMBERS = "household:view_members"
    HOUSEHOLD_INVITE_MEMBERS = "household:invite_members"
    HOUSEHOLD_REMOVE_MEMBERS = "household:remove_members"
    HOUSEHOLD_UPDATE_MEMBER_ROLES = "household:update_member_roles"
    HOUSEHOLD_TRANSFER_OWNERSHIP = "household:transfer_ownership"

    # User
    USER_VIEW_PROFILE = "user:view_profile"
    USER_UPDATE_OWN_PROFILE = "user:update_own_profile"
    USER_UPDATE_ANY_PROFILE = "user:update_any_profile"
    USER_DELETE_OWN_ACCOUNT = "user:delete_own_account"
    USER_DELETE_ANY_ACCOUNT = "user:delete_any_account"

    # Assets
    ASSET_CREATE = "asset:create"
    ASSET_VIEW = "asset:view"
    ASSET_UPDATE = "asset:update"
    ASSET_DELETE = "asset:delete"
    ASSET_TRANSFER = "asset:transfer"  # move to a different household
    ASSET_ARCHIVE = "asset:archive"

    # Manuals
    MANUAL_UPLOAD = "manual:upload"
    MANUAL_VIEW = "manual:view"
    MANUAL_DOWNLOAD = "manual:download"
    MANUAL_UPDATE = "manual:update"  # metadata only
    MANUAL_DELETE = "manual:delete"
    MANUAL_VIEW_CONTENT = "manual:view_content"
    MANUAL_EDIT_EXTRACTED_TEXT = "manual:edit_extracted_text"
    MANUAL_BULK_UPLOAD = "manual:bulk_upload"
    MANUAL_EXPORT = "manual:export"

    # Tasks
    TASK_CREATE = "task:create"
    TASK_VIEW = "task:view"
    TASK_UPDATE = "task:update"
    TASK_DELETE = "task:delete"
    TASK_COMPLETE = "task:complete"
    TASK_ASSIGN = "task:assign"
    TASK_UNASSIGN = "task:unassign"
    TASK_UPDATE_SCHEDULE = "task:update_schedule"
    TASK_SKIP_OCCURRENCE = "task:skip_occurrence"
    TASK_VIEW_HISTORY = "task:view_history"
    TASK_VIEW_ANALYTICS = "task:view_analytics"

    # Documents
    DOCUMENT_CREATE = "document:create"
    DOCUMENT_VIEW = "document:view"
    DOCUMENT_UPDATE = "document:update"
    DOCUMENT_DELETE = "document:delete"
    DOCUMENT_EDIT_CONTENT = "document:edit_content"
    DOCUMENT_UPDATE_OWN = "document:update_own"
    DOCUMENT_DELETE_OWN = "document:delete_own"

    # Search
    SEARCH_MANUALS = "search:manuals"
    SEARCH_ASSETS = "search:assets"
    SEARCH_TASKS = "search:tasks"
    SEARCH_DOCUMENTS = "search:documents"
    SEARCH_GLOBAL = "search:global"
    SEARCH_EXPORT_RESULTS = "search:export_results"


def _group(prefix: str) -> FrozenSet[Permission]:
    return frozenset(p for p in Permission if p.value.startswith(f"{prefix}:"))


# Guests are read-only: they can look at content and search it, nothing more.
_GUEST = frozenset({
    Permission.HOUSEHOLD_VIEW,
    Permission.USER_VIEW_PROFILE,
    Permission.USER_UPDATE_OWN_PROFILE,
    Permission.ASSET_VIEW,
    Permission.MANUAL_VIEW,
    Permission.MANUAL_DOWNLOAD,
    Permission.MANUAL_VIEW_CONTENT,
    Permission.TASK_VIEW,
    Permission.DOCUMENT_VIEW,
    Permission.SEARCH_MANUALS,
    Permission.SEARCH_ASSETS,
    Permission.SEARCH_TASKS,
})

# Members work with manuals and documents and can be assigned tasks, but
# cannot remove or transfer assets or edit the task schedule.
_MEMBER = _GUEST | _group("manual") | frozenset({
    Permission.USER_DELETE_OWN_ACCOUNT,
    Permission.ASSET_CREATE,
    Permission.ASSET_UPDATE,
    Permission.TASK_COMPLETE,
    Permission.TASK_VIEW_HISTORY,
    Permission.DOCUMENT_CREATE,
    Permission.DOCUMENT_UPDATE_OWN,
    Permission.DOCUMENT_DELETE_OWN,
    Permission.SEARCH_DOCUMENTS,
})

# Admins see the member list, invite people and control every resource, but
# cannot change the membership of people already in the household.
_ADMIN = (
    _MEMBER
    | (_group("asset") - {Permission.ASSET_TRANSFER})
    | _group("task")
    | _group("document")
    | _group("search")
    | frozenset({
        Permission.HOUSEHOLD_UPDATE,
        Permission.HOUSEHOLD_INVITE_MEMBERS,
        Permission.HOUSEHOLD_VIEW_MEMBERS,
    })
)

# No limits on owners.
_OWNER = frozenset(Permission)

ROLE_PERMISSIONS: Mapping[Role, FrozenSet[Permission]] = MappingProxyType({
    Role.OWNER: _OWNER,
    Role.ADMIN: _ADMIN,
    Role.MEMBER: _MEMBER,
    Role.GUEST: _GUEST,
})

_missing = set(Role) - set(ROLE_PERMISSIONS)
if _missing:
    raise RuntimeError(f"Roles without a permission set: {sorted(r.value for r in _missing)}")
