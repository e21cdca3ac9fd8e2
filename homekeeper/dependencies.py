from functools import lru_cache
from typing import Callable, Optional

from fastapi import Cookie, Depends
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .core.exception import AuthenticationException, AuthorizationException, ResourceNotFoundException
from .core.permissions import Permission
from .models.household import Household
from .models.user import User
from .repositories.household_repository import HouseholdRepository
from .repositories.userRepository import UserRepository
from .services import permission_service
from .services.token_service import SessionTokenManager, TokenSettings


@lru_cache
def get_token_manager() -> SessionTokenManager:
    """One manager per process; the signing secret is read once."""
    return SessionTokenManager(TokenSettings.from_settings(settings))


async def get_current_user(
    token: Optional[str] = Cookie(None, alias=settings.JWT_COOKIE_NAME),
    db: Session = Depends(get_db),
    token_manager: SessionTokenManager = Depends(get_token_manager),
) -> User:
    """
    Dependency to get the user behind the access-token cookie.

    Every failure is the same 401; the reason is only logged.

    Example:
        @router.get("/protected")
        async def protected_route(current_user: User = Depends(get_current_user)):
            return {"user_id": current_user.id}
    """
    if not token:
        raise AuthenticationException(reason="missing token")
    return token_manager.verify(token, UserRepository(db))


async def get_optional_user(
    token: Optional[str] = Cookie(None, alias=settings.JWT_COOKIE_NAME),
    db: Session = Depends(get_db),
    token_manager: SessionTokenManager = Depends(get_token_manager),
) -> Optional[User]:
    """Like get_current_user, but anonymous callers get None instead of a 401."""
    if not token:
        return None
    try:
        return token_manager.verify(token, UserRepository(db))
    except AuthenticationException:
        return None


async def get_member_household(
    household_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Household:
    """
    The household from the path, if the caller belongs to it.

    Non-members get the same 404 as for a missing household.
    """
    repo = HouseholdRepository(db)
    household = repo.get(household_id)
    if household is None or not repo.is_member(household_id, current_user.id):
        raise ResourceNotFoundException("Household", message="Household not found")
    return household


def require_permission(permission: Permission) -> Callable:
    async def checker(
        household: Household = Depends(get_member_household),
        current_user: User = Depends(get_current_user),
    ) -> Household:
        if not permission_service.has_permission(current_user, household.id, permission):
            raise AuthorizationException()
        return household

    return checker


def require_any_permission(*permissions: Permission) -> Callable:
    async def checker(
        household: Household = Depends(get_member_household),
        current_user: User = Depends(get_current_user),
    ) -> Household:
        if not permission_service.has_any_permission(current_user, household.id, permissions):
            raise AuthorizationException()
        return household

    return checker


def require_all_permissions(*permissions: Permission) -> Callable:
    async def checker(
        household: Household = Depends(get_member_household),
        current_user: User = Depends(get_current_user),
    ) -> Household:
        if not permission_service.has_all_permissions(current_user, household.id, permissions):
            raise AuthorizationException()
        return household

    return checker
