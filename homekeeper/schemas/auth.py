from typing import Literal, Optional
from pydantic import BaseModel

ACCESS_TOKEN_TYPE = "user"
REFRESH_TOKEN_TYPE = "refresh"


class TokenPayload(BaseModel):
    """Signed session payload. ``expiration`` is epoch milliseconds."""
    id: str
    expiration: int
    type: Literal["user", "refresh"]
    email: Optional[str] = None


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str


class CsrfTokenResponse(BaseModel):
    csrfToken: str


class TokenValidity(BaseModel):
    valid: bool
