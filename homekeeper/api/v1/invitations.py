from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from homekeeper.database import get_db
from homekeeper.dependencies import get_current_user
from homekeeper.models.user import User
from homekeeper.schemas.invitation import RedeemInvitationRequest, RedeemResponse
from homekeeper.schemas.result import Result
from homekeeper.services.invitation_service import InvitationService

router = APIRouter()


@router.post("/redeem", response_model=Result[RedeemResponse])
async def redeem_invitation(
    redeem_data: RedeemInvitationRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Join a household with an invitation code."""
    joined = InvitationService(db).redeem_by_code(redeem_data.code, current_user.id)
    return Result.successful(data=joined, message="Successfully joined household")
