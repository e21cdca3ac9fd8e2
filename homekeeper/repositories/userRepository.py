from sqlalchemy.orm import Session
from typing import Dict, Optional
from homekeeper.models.user import User
from ..repositories.repository import BaseRepository


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserRepository(BaseRepository[User]):
    """
    Repository for User operations.

    The ``*_household_role`` methods only stage changes; MembershipService
    owns the commit so that role and membership land together.
    """

    def __init__(self, db: Session):
        super().__init__(User, db)

    def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email (case-insensitive)."""
        return self.db.query(User).filter(User.email == normalize_email(email)).first()

    def email_exists(self, email: str) -> bool:
        """Check if email already exists."""
        return self.db.query(User).filter(User.email == normalize_email(email)).count() > 0

    def get_users_with_roles(self):
        """Users holding at least one household role. Scans the whole table; reconciliation only."""
        return [user for user in self.db.query(User).all() if user.household_roles]

    def update_password(self, user_id: int, hashed_password: str) -> Optional[User]:
        """Update user password."""
        user = self.get(user_id)
        if user:
            user.hashed_password = hashed_password
            self.db.commit()
            self.db.refresh(user)
        return user

    def set_household_role(self, user: User, household_id: int, role: str) -> User:
        roles: Dict[str, str] = dict(user.household_roles or {})
        roles[str(household_id)] = role
        user.household_roles = roles
        self.db.flush()
        return user

    def remove_household_role(self, user: User, household_id: int) -> User:
        roles: Dict[str, str] = dict(user.household_roles or {})
        roles.pop(str(household_id), None)
        user.household_roles = roles
        self.db.flush()
        return user
