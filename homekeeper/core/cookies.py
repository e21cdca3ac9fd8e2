from typing import Optional

from starlette.responses import Response

from homekeeper.config import settings
from homekeeper.schemas.auth import TokenPair


def _cookie_options(httponly: bool) -> dict:
    return {
        "httponly": httponly,
        "secure": settings.is_production,
        "samesite": "strict",
        "path": "/",
    }


def set_csrf_cookie(response: Response, csrf_token: str) -> None:
    # Readable by the browser app so it can echo it back in the header.
    response.set_cookie(settings.CSRF_COOKIE_NAME, csrf_token, **_cookie_options(httponly=False))


def set_session_cookies(
    response: Response, tokens: TokenPair, csrf_token: Optional[str] = None
) -> None:
    response.set_cookie(settings.JWT_COOKIE_NAME, tokens.access_token, **_cookie_options(httponly=True))
    response.set_cookie(settings.REFRESH_COOKIE_NAME, tokens.refresh_token, **_cookie_options(httponly=True))
    if csrf_token:
        set_csrf_cookie(response, csrf_token)


def clear_session_cookies(response: Response) -> None:
    """Drop the access, refresh and anti-forgery cookies."""
    for name, httponly in (
        (settings.JWT_COOKIE_NAME, True),
        (settings.REFRESH_COOKIE_NAME, True),
        (settings.CSRF_COOKIE_NAME, False),
    ):
        response.delete_cookie(name, **_cookie_options(httponly=httponly))
