from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from typing import Optional
from homekeeper.models.base import BaseModel


class Household(BaseModel):
    """
    Household model for grouping users.
    A household has exactly one owner and any number of members.
    """

    __tablename__ = "households"

    # Basic info
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(
        String(500), nullable=True, default=None
    )

    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )
