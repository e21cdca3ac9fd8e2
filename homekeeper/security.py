import secrets
from typing import Optional

from passlib.context import CryptContext

from homekeeper.config import settings
from homekeeper.models.invitation import INVITATION_CODE_ALPHABET, INVITATION_CODE_LENGTH

# Password hashing
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def generate_csrf_token(num_bytes: Optional[int] = None) -> str:
    """Random anti-forgery token, hex encoded."""
    return secrets.token_hex(num_bytes or settings.CSRF_TOKEN_BYTES)


def csrf_tokens_match(cookie_token: Optional[str], header_token: Optional[str]) -> bool:
    """Both copies present and equal (constant-time compare)."""
    if not cookie_token or not header_token:
        return False
    return secrets.compare_digest(cookie_token.encode(), header_token.encode())


def generate_invitation_code() -> str:
    """
    Generate an invitation code.

    Returns:
        A 6-character code over 32 symbols with 0/1/O/I left out
    """
    return "".join(
        secrets.choice(INVITATION_CODE_ALPHABET) for _ in range(INVITATION_CODE_LENGTH)
    )
