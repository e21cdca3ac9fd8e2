from pydantic import BaseModel, EmailStr, Field
from typing import Dict, Optional
from datetime import datetime

from homekeeper.core.permissions import Role


class UserBase(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=100)


class UserCreate(UserBase):
    password: str = Field(..., min_length=8, max_length=72)


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)


class PasswordChange(BaseModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=72)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    """Public view of a user; the password hash never leaves the service."""
    id: int
    uuid: str
    email: str
    name: str
    household_roles: Dict[str, Role] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
