from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from homekeeper.database import get_db
from homekeeper.dependencies import (
    get_current_user,
    get_member_household,
    require_all_permissions,
    require_any_permission,
    require_permission,
)
from homekeeper.core.permissions import Permission
from homekeeper.models.household import Household
from homekeeper.models.user import User
from homekeeper.schemas.household import (
    AddMemberRequest,
    HouseholdCreate,
    HouseholdMemberResponse,
    HouseholdResponse,
    HouseholdUpdate,
    MemberListResponse,
    PermissionsResponse,
    RoleChangeRequest,
    TransferOwnershipRequest,
)
from homekeeper.schemas.invitation import InvitationCreate, InvitationResponse
from homekeeper.schemas.result import Result
from homekeeper.services import permission_service
from homekeeper.services.household_service import HouseholdService
from homekeeper.services.invitation_service import InvitationService
from homekeeper.services.membership_service import MembershipService

router = APIRouter()


@router.post("", response_model=Result[HouseholdResponse], status_code=status.HTTP_201_CREATED)
async def create_household(
    household_data: HouseholdCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a new household owned by the current user."""
    household = MembershipService(db).create_household(
        household_data.name, current_user.id, household_data.description
    )
    db.refresh(current_user)
    return Result.successful(data=HouseholdService(db).to_response(household, current_user))


@router.get("", response_model=Result[List[HouseholdResponse]])
async def get_my_households(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get all households the current user belongs to."""
    households = HouseholdService(db).get_user_households(current_user)
    return Result.successful(data=households)


@router.get("/{household_id}", response_model=Result[HouseholdResponse])
async def get_household(
    household: Household = Depends(get_member_household),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get household details."""
    return Result.successful(data=HouseholdService(db).to_response(household, current_user))


@router.put("/{household_id}", response_model=Result[HouseholdResponse])
async def update_household(
    household_data: HouseholdUpdate,
    household: Household = Depends(require_permission(Permission.HOUSEHOLD_UPDATE)),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Update household name and description."""
    service = HouseholdService(db)
    household = service.update_household(household, household_data)
    return Result.successful(data=service.to_response(household, current_user))


@router.delete("/{household_id}", response_model=Result[dict])
async def delete_household(
    household: Household = Depends(require_permission(Permission.HOUSEHOLD_DELETE)),
    db: Session = Depends(get_db)
):
    """Delete a household with its memberships and invitations."""
    MembershipService(db).delete_household(household)
    return Result.successful(message="Household deleted")


@router.get("/{household_id}/members", response_model=Result[MemberListResponse])
async def get_members(
    household: Household = Depends(
        require_all_permissions(Permission.HOUSEHOLD_VIEW, Permission.HOUSEHOLD_VIEW_MEMBERS)
    ),
    db: Session = Depends(get_db)
):
    """Get all household members with their roles."""
    members = MembershipService(db).get_members(household)
    return Result.successful(data={"member_count": len(members), "members": members})


@router.put("/{household_id}/members", response_model=Result[MemberListResponse])
async def add_member(
    member_data: AddMemberRequest,
    household: Household = Depends(require_permission(Permission.HOUSEHOLD_INVITE_MEMBERS)),
    db: Session = Depends(get_db)
):
    """Add an existing user to the household with a non-owner role."""
    service = MembershipService(db)
    service.add_member(household, member_data.user_id, member_data.role)
    members = service.get_members(household)
    return Result.successful(data={"member_count": len(members), "members": members})


@router.get("/{household_id}/members/{user_id}", response_model=Result[HouseholdMemberResponse])
async def get_member(
    user_id: int,
    household: Household = Depends(require_permission(Permission.HOUSEHOLD_VIEW_MEMBERS)),
    db: Session = Depends(get_db)
):
    """Get one member of the household."""
    return Result.successful(data=MembershipService(db).get_member(household, user_id))


@router.put("/{household_id}/members/{user_id}/role", response_model=Result[HouseholdMemberResponse])
async def change_member_role(
    user_id: int,
    role_data: RoleChangeRequest,
    household: Household = Depends(require_permission(Permission.HOUSEHOLD_UPDATE_MEMBER_ROLES)),
    db: Session = Depends(get_db)
):
    """Change a member's role. The owner's role is fixed."""
    member = MembershipService(db).change_member_role(household, user_id, role_data.role)
    return Result.successful(data=member)


@router.delete("/{household_id}/members/{user_id}", response_model=Result[dict])
async def remove_member(
    user_id: int,
    household: Household = Depends(require_permission(Permission.HOUSEHOLD_REMOVE_MEMBERS)),
    db: Session = Depends(get_db)
):
    """Remove a member from the household. The owner cannot be removed."""
    MembershipService(db).remove_member(household, user_id)
    return Result.successful(message="Member removed")


@router.post("/{household_id}/transfer-ownership", response_model=Result[HouseholdResponse])
async def transfer_ownership(
    transfer_data: TransferOwnershipRequest,
    household: Household = Depends(require_permission(Permission.HOUSEHOLD_TRANSFER_OWNERSHIP)),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Make another member the owner; the current owner becomes an admin."""
    household = MembershipService(db).transfer_ownership(household, transfer_data.new_owner_id)
    db.refresh(current_user)
    return Result.successful(data=HouseholdService(db).to_response(household, current_user))


@router.get("/{household_id}/permissions", response_model=Result[PermissionsResponse])
async def get_my_permissions(
    household: Household = Depends(get_member_household),
    current_user: User = Depends(get_current_user),
):
    """The caller's role and effective permissions in this household."""
    role = permission_service.get_household_role(current_user, household.id)
    permissions = permission_service.get_user_permissions(current_user, household.id)
    return Result.successful(
        data={"household_id": household.id, "role": role, "permissions": permissions}
    )


@router.post(
    "/{household_id}/members/invite",
    response_model=Result[InvitationResponse],
    status_code=status.HTTP_201_CREATED,
)
async def invite_member(
    invitation_data: InvitationCreate,
    household: Household = Depends(require_permission(Permission.HOUSEHOLD_INVITE_MEMBERS)),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create an invitation code for this household."""
    invitation = InvitationService(db).create_invitation(
        invitation_data, household.id, current_user.id
    )
    return Result.successful(data=invitation)


@router.get("/{household_id}/invitations", response_model=Result[List[InvitationResponse]])
async def get_invitations(
    household: Household = Depends(
        require_any_permission(Permission.HOUSEHOLD_INVITE_MEMBERS, Permission.HOUSEHOLD_REMOVE_MEMBERS)
    ),
    db: Session = Depends(get_db)
):
    """List the household's invitations, newest first."""
    return Result.successful(data=InvitationService(db).list_for_household(household.id))


@router.delete("/{household_id}/invitations/{invitation_id}", response_model=Result[InvitationResponse])
async def cancel_invitation(
    invitation_id: int,
    household: Household = Depends(require_permission(Permission.HOUSEHOLD_INVITE_MEMBERS)),
    db: Session = Depends(get_db)
):
    """Cancel a pending invitation."""
    invitation = InvitationService(db).cancel_for_household(household.id, invitation_id)
    return Result.successful(data=invitation)
