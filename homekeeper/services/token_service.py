"""
Session credentials: the access/refresh JWT pair.

Payloads carry their own ``expiration`` (epoch milliseconds) instead of the
registered ``exp`` claim, so an expired access token still decodes and can be
exchanged for a new pair.
"""
import logging
import time
from typing import Any, Callable, Dict, Optional

import jwt
from pydantic import BaseModel, Field, ValidationError, model_validator

from homekeeper.core.exception import (
    AuthenticationException,
    BadRequestException,
    NotAcceptableException,
    SessionResetException,
)
from homekeeper.models.user import User
from homekeeper.repositories.userRepository import UserRepository
from homekeeper.schemas.auth import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    TokenPair,
    TokenPayload,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


class TokenSettings(BaseModel):
    """Signing material and lifetimes, loaded once at startup."""
    secret_key: str = Field(..., min_length=1)
    algorithm: str = "HS256"
    access_ttl_ms: int = Field(..., gt=0)
    refresh_ttl_ms: int = Field(..., gt=0)

    @model_validator(mode="after")
    def refresh_outlives_access(self):
        if self.refresh_ttl_ms <= self.access_ttl_ms:
            raise ValueError("refresh_ttl_ms must be greater than access_ttl_ms")
        return self

    @classmethod
    def from_settings(cls, settings: Any) -> "TokenSettings":
        return cls(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            access_ttl_ms=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60 * 1000,
            refresh_ttl_ms=settings.REFRESH_TOKEN_EXPIRE_MINUTES * 60 * 1000,
        )


class SessionTokenManager:
    """Issues, verifies and rotates access/refresh token pairs."""

    def __init__(self, config: TokenSettings, clock: Clock = now_ms):
        self.config = config
        self.clock = clock

    def _encode(self, payload: TokenPayload) -> str:
        return jwt.encode(
            payload.model_dump(exclude_none=True),
            self.config.secret_key,
            algorithm=self.config.algorithm,
        )

    def decode(self, token: str) -> TokenPayload:
        """
        Check the signature and parse the payload. Expiration is not checked.

        Raises:
            AuthenticationException: reason "invalid signature" or "no payload"
        """
        try:
            claims: Dict[str, Any] = jwt.decode(
                token, self.config.secret_key, algorithms=[self.config.algorithm]
            )
        except jwt.InvalidTokenError:
            raise AuthenticationException(reason="invalid signature")

        if not claims:
            raise AuthenticationException(reason="no payload")
        try:
            return TokenPayload.model_validate(claims)
        except ValidationError:
            raise AuthenticationException(reason="no payload")

    def is_expired(self, payload: TokenPayload) -> bool:
        return self.clock() > payload.expiration

    def _mint(self, subject: str, email: Optional[str]) -> TokenPair:
        now = self.clock()
        access = TokenPayload(
            id=subject,
            email=email,
            expiration=now + self.config.access_ttl_ms,
            type=ACCESS_TOKEN_TYPE,
        )
        refresh = TokenPayload(
            id=subject,
            expiration=now + self.config.refresh_ttl_ms,
            type=REFRESH_TOKEN_TYPE,
        )
        return TokenPair(access_token=self._encode(access), refresh_token=self._encode(refresh))

    def issue(self, user: User) -> TokenPair:
        """Sign a fresh pair for ``user``. Only the access token carries the email."""
        return self._mint(str(user.id), user.email)

    def verify(self, token: str, users: UserRepository) -> User:
        """
        Resolve the user behind an access token.

        Every failure raises the same generic AuthenticationException; the
        cause is kept in ``reason`` and logged.
        """
        try:
            payload = self.decode(token)
            if payload.type != ACCESS_TOKEN_TYPE:
                raise AuthenticationException(reason="wrong token type")
            if self.is_expired(payload):
                raise AuthenticationException(reason="expired")

            try:
                user_id = int(payload.id)
            except ValueError:
                raise AuthenticationException(reason="user not found")
            user = users.get(user_id)
            if user is None:
                raise AuthenticationException(reason="user not found")
            return user
        except AuthenticationException as e:
            logger.info("Token rejected", extra={"reason": e.reason})
            raise

    def refresh(self, access_token: Optional[str], refresh_token: Optional[str]) -> TokenPair:
        """
        Exchange an expired access token plus a live refresh token for a new pair.

        Raises:
            BadRequestException: either token is missing
            SessionResetException: the pair can no longer be trusted
            NotAcceptableException: the access token has not expired yet
        """
        if not access_token or not refresh_token:
            raise BadRequestException("Both access and refresh tokens are required")

        try:
            access = self.decode(access_token)
            refresh = self.decode(refresh_token)
        except AuthenticationException as e:
            logger.warning("Session reset", extra={"reason": e.reason})
            raise SessionResetException(reason=e.reason)

        if access.type != ACCESS_TOKEN_TYPE or refresh.type != REFRESH_TOKEN_TYPE:
            logger.warning("Session reset", extra={"reason": "wrong token type"})
            raise SessionResetException(reason="wrong token type")
        if access.id != refresh.id:
            logger.warning("Session reset", extra={"reason": "subject mismatch"})
            raise SessionResetException(reason="subject mismatch")

        if not self.is_expired(access):
            raise NotAcceptableException()

        if self.is_expired(refresh):
            logger.info("Session reset", extra={"reason": "refresh expired", "user_id": refresh.id})
            raise SessionResetException(reason="refresh expired")

        logger.info("Session refreshed", extra={"user_id": access.id})
        return self._mint(access.id, access.email)
