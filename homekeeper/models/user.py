from sqlalchemy import String, JSON
from sqlalchemy.orm import Mapped, mapped_column
from typing import Dict
from homekeeper.models.base import BaseModel


class User(BaseModel):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    name: Mapped[str] = mapped_column(String(100))

    # household id (as string) -> role name. Written only by MembershipService;
    # always replace the whole dict so the change is tracked.
    household_roles: Mapped[Dict[str, str]] = mapped_column(JSON, default=dict, nullable=False)
