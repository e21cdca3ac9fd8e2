import logging
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from ..models.user import User
from ..services.userService import UserService
from ..services.token_service import SessionTokenManager
from ..schemas.user import UserCreate
from ..schemas.auth import TokenPair
from ..security import generate_csrf_token
from ..core.exception import AuthenticationException

logger = logging.getLogger(__name__)


class IssuedSession(NamedTuple):
    user: Optional[User]
    tokens: TokenPair
    csrf_token: str


class AuthService:
    """Service layer for authentication operations."""

    def __init__(self, db: Session, token_manager: SessionTokenManager):
        self.db = db
        self.user_service = UserService(db)
        self.token_manager = token_manager

    def _start_session(self, user: User) -> IssuedSession:
        return IssuedSession(
            user=user,
            tokens=self.token_manager.issue(user),
            csrf_token=generate_csrf_token(),
        )

    def register(self, user_data: UserCreate) -> IssuedSession:
        """
        Register a new user and sign them in.
        """
        user = self.user_service.create_user(user_data)
        return self._start_session(user)

    def login(self, email: str, password: str) -> IssuedSession:
        """
        Check credentials and issue a token pair plus anti-forgery token.
        """
        user = self.user_service.authenticate_user(email, password)

        if not user:
            logger.info("Login failed")
            raise AuthenticationException("Incorrect email or password", reason="bad credentials")

        logger.info("Login succeeded", extra={"user_id": user.id})
        return self._start_session(user)

    def refresh(self, access_token: Optional[str], refresh_token: Optional[str]) -> IssuedSession:
        """
        Rotate an expired access token. A new anti-forgery token goes out with the pair.
        """
        tokens = self.token_manager.refresh(access_token, refresh_token)
        return IssuedSession(user=None, tokens=tokens, csrf_token=generate_csrf_token())

    def verify_token(self, token: str) -> User:
        """
        Verify an access token and return its user.
        """
        return self.token_manager.verify(token, self.user_service.user_repo)
