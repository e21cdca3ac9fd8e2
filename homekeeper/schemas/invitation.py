from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime

from homekeeper.core.permissions import Role
from homekeeper.models.invitation import (
    INVITATION_CODE_ALPHABET,
    INVITATION_CODE_LENGTH,
    InvitationStatus,
)


class InvitationCreate(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(None, max_length=100)
    role: Role = Role.GUEST


class InvitationResponse(BaseModel):
    id: int
    code: str
    email: str
    name: Optional[str] = None
    role: Role
    household_id: int
    invited_by_id: int
    status: InvitationStatus
    expires_at: datetime
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RedeemInvitationRequest(BaseModel):
    code: str = Field(
        ...,
        min_length=INVITATION_CODE_LENGTH,
        max_length=INVITATION_CODE_LENGTH,
        pattern=f"^[{INVITATION_CODE_ALPHABET}]+$",
    )

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class RedeemResponse(BaseModel):
    household_id: int
    household_name: str
    role: Role
