from datetime import datetime
from enum import Enum

from sqlalchemy import String, ForeignKey, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from typing import Optional
from homekeeper.models.base import BaseModel

INVITATION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
INVITATION_CODE_LENGTH = 6


class InvitationStatus(str, Enum):
    PENDING = "pending"
    REDEEMED = "redeemed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class Invitation(BaseModel):
    """
    Single-use code that lets someone join a household.

    ``status`` moves from pending to exactly one terminal state and only
    through InvitationService; every other column is fixed at creation.
    """

    __tablename__ = "invitations"

    code: Mapped[str] = mapped_column(
        String(INVITATION_CODE_LENGTH), unique=True, index=True, nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, default=None)
    role: Mapped[str] = mapped_column(String(20), nullable=False)

    household_id: Mapped[int] = mapped_column(
        ForeignKey("households.id", ondelete="CASCADE"), nullable=False
    )
    invited_by_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InvitationStatus.PENDING.value
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_invitation_household_status", "household_id", "status"),
    )
