from homekeeper.models.base import Base, BaseModel
from homekeeper.models.associations import household_members
from homekeeper.models.user import User
from homekeeper.models.household import Household
from homekeeper.models.invitation import (
    Invitation,
    InvitationStatus,
    INVITATION_CODE_ALPHABET,
    INVITATION_CODE_LENGTH,
)

__all__ = [
    # Base
    "Base",
    "BaseModel",
    # User
    "User",
    # Household
    "Household",
    "household_members",
    # Invitation
    "Invitation",
    "InvitationStatus",
    "INVITATION_CODE_ALPHABET",
    "INVITATION_CODE_LENGTH",
]
