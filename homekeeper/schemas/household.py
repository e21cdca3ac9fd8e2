from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from homekeeper.core.permissions import Permission, Role


class HouseholdBase(BaseModel):
    """Base household schema with common fields."""
    name: str = Field(..., min_length=1, max_length=100, description="Household name")
    description: Optional[str] = Field(None, max_length=500, description="Household description")


class HouseholdCreate(HouseholdBase):
    """Schema for creating a new household."""
    pass


class HouseholdUpdate(BaseModel):
    """Schema for updating household details."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class HouseholdResponse(HouseholdBase):
    """Household as seen by one of its members."""
    id: int
    uuid: str
    owner_id: int
    created_at: Optional[datetime] = None
    member_count: int
    user_role: Optional[Role] = None


class HouseholdMemberResponse(BaseModel):
    """Schema for household member information."""
    id: int
    name: str
    email: str
    role: Role


class MemberListResponse(BaseModel):
    member_count: int
    members: List[HouseholdMemberResponse]


class AddMemberRequest(BaseModel):
    """Add an existing user to the household."""
    user_id: int
    role: Role


class RoleChangeRequest(BaseModel):
    role: Role


class TransferOwnershipRequest(BaseModel):
    new_owner_id: int = Field(..., description="User ID of the member who becomes owner")


class PermissionsResponse(BaseModel):
    household_id: int
    role: Role
    permissions: List[Permission]


class MembershipDivergence(BaseModel):
    """One disagreement between household membership and a user's roles."""
    household_id: int
    user_id: int
    kind: str
    repaired: bool = False
