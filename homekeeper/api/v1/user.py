from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...dependencies import get_current_user
from ...models.user import User
from ...schemas.user import UserResponse, UserUpdate, PasswordChange
from ...schemas.result import Result
from ...services.userService import UserService

router = APIRouter()


@router.get("/me", response_model=Result[UserResponse])
async def get_my_profile(current_user: User = Depends(get_current_user)):
    """
    Get current user's profile, including a role per household.

    Returns:
        Result[UserResponse]: Success result with user profile data
    """
    return Result.successful(data=current_user)


@router.put("/me", response_model=Result[UserResponse])
async def update_my_profile(
    user_update: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Update current user's profile.

    Only provided fields will be updated.
    """
    user_service = UserService(db)
    updated_user = user_service.update_user(current_user.id, user_update)
    return Result.successful(data=updated_user)


@router.post("/me/change-password", response_model=Result[UserResponse])
async def change_my_password(
    password_data: PasswordChange,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Change current user's password.

    Requires old password for verification.
    """
    user_service = UserService(db)
    updated_user = user_service.change_password(
        current_user.id, password_data.old_password, password_data.new_password
    )
    return Result.successful(data=updated_user, message="Password changed")
