import logging
from sqlalchemy.orm import Session
from typing import Optional
from homekeeper.models.user import User
from ..repositories.userRepository import UserRepository, normalize_email
from ..schemas.user import UserCreate, UserUpdate
from ..security import get_password_hash, verify_password
from ..core.exception import (
    ResourceNotFoundException,
    DuplicateResourceException,
    BadRequestException,
)

logger = logging.getLogger(__name__)


class UserService:
    """Service layer for user operations."""

    def __init__(self, db: Session):
        self.db = db
        self.user_repo = UserRepository(db)

    def create_user(self, user_data: UserCreate) -> User:
        """
        Create a new user.

        Emails are unique regardless of case. The new user belongs to no
        household yet; the password is hashed before storing.
        """
        email = normalize_email(user_data.email)
        if self.user_repo.email_exists(email):
            raise DuplicateResourceException("User", email)

        user = User(
            email=email,
            name=user_data.name,
            hashed_password=get_password_hash(user_data.password),
            household_roles={},
        )

        user = self.user_repo.create(user)
        logger.info("User registered", extra={"user_id": user.id})
        return user

    def update_user(self, user_id: int, user_data: UserUpdate) -> User:
        """Update user profile."""
        user = self.user_repo.get(user_id)
        if not user:
            raise ResourceNotFoundException("User", user_id)

        # Only update provided fields
        update_data = user_data.model_dump(exclude_unset=True, exclude_none=True)

        updated_user = self.user_repo.update(user_id, update_data)

        if updated_user is None:
            raise ResourceNotFoundException("User", user_id)
        return updated_user

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """
        Authenticate a user by email and password.
        Returns User if credentials are valid, None otherwise.
        """
        user = self.user_repo.get_by_email(email)

        if not user:
            return None

        if not verify_password(password, user.hashed_password):
            return None

        return user

    def change_password(
        self, user_id: int, old_password: str, new_password: str
    ) -> User:
        """Change user password."""
        user = self.user_repo.get(user_id)

        if not user:
            raise ResourceNotFoundException("User", user_id)

        # Verify old password
        if not verify_password(old_password, user.hashed_password):
            raise BadRequestException("Old password is incorrect")

        hashed_password = get_password_hash(new_password)
        updated_user = self.user_repo.update_password(user_id, hashed_password)

        if updated_user is None:
            raise ResourceNotFoundException("User", user_id)
        logger.info("Password changed", extra={"user_id": user_id})
        return updated_user
