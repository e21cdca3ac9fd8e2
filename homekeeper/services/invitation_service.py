import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from homekeeper.config import settings
from homekeeper.core.exception import (
    BadRequestException,
    ConflictException,
    ResourceNotFoundException,
)
from homekeeper.core.permissions import Role
from homekeeper.models.base import as_utc, utcnow
from homekeeper.models.invitation import Invitation, InvitationStatus
from homekeeper.repositories.household_repository import HouseholdRepository
from homekeeper.repositories.invitation_repository import InvitationRepository
from homekeeper.repositories.userRepository import UserRepository, normalize_email
from homekeeper.schemas.invitation import InvitationCreate
from homekeeper.security import generate_invitation_code
from homekeeper.services.membership_service import MembershipService

logger = logging.getLogger(__name__)

# Every invitation joins as guest; admins promote afterwards.
INVITED_ROLE = Role.GUEST
MAX_CODE_ATTEMPTS = 10


class InvitationService:
    """
    Invitation codes and their lifecycle.

    An invitation is ``pending`` until it moves to exactly one of
    ``redeemed``, ``cancelled`` or ``expired``. Those states are final: the
    transition methods are no-ops on anything that is not pending.
    """

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        ttl: Optional[timedelta] = None,
    ):
        self.db = db
        self.clock = clock
        self.ttl = ttl or timedelta(hours=settings.INVITATION_EXPIRE_HOURS)
        self.invitation_repo = InvitationRepository(db)
        self.household_repo = HouseholdRepository(db)
        self.user_repo = UserRepository(db)
        self.membership = MembershipService(db)

    def create_invitation(
        self, details: InvitationCreate, household_id: int, invited_by: int
    ) -> Invitation:
        """
        Issue a new pending invitation for a household.

        The requested role is not applied: invitations always join as guest.
        Asking for owner is rejected outright.
        """
        requested = Role(details.role)
        if requested == Role.OWNER:
            raise BadRequestException("Role not allowed")
        if requested != INVITED_ROLE:
            logger.info(
                "Requested invitation role ignored",
                extra={"household_id": household_id, "requested_role": requested.value},
            )
        if not self.household_repo.exists(household_id):
            raise ResourceNotFoundException("Household", household_id)

        for attempt in range(MAX_CODE_ATTEMPTS):
            code = generate_invitation_code()
            if self.invitation_repo.code_exists(code):
                continue

            invitation = Invitation(
                code=code,
                email=normalize_email(details.email),
                name=details.name,
                role=INVITED_ROLE.value,
                household_id=household_id,
                invited_by_id=invited_by,
                status=InvitationStatus.PENDING.value,
                expires_at=self.clock() + self.ttl,
            )
            try:
                invitation = self.invitation_repo.create(invitation)
            except IntegrityError:
                # Lost a race for the same code.
                self.db.rollback()
                logger.warning("Invitation code collision", extra={"attempt": attempt})
                continue

            logger.info(
                "Invitation created",
                extra={"invitation_id": invitation.id, "household_id": household_id},
            )
            return invitation

        raise ConflictException("Could not allocate a unique invitation code")

    def is_valid(self, invitation: Invitation) -> bool:
        """Pending and not past ``expires_at``. The one expiry check used everywhere."""
        return (
            invitation.status == InvitationStatus.PENDING.value
            and self.clock() <= as_utc(invitation.expires_at)
        )

    def _transition(self, invitation: Invitation, status: InvitationStatus) -> Invitation:
        if invitation.status != InvitationStatus.PENDING.value:
            return invitation

        swapped = self.invitation_repo.transition_from_pending(invitation.id, status)
        self.db.commit()
        self.db.refresh(invitation)
        if swapped:
            logger.info(
                "Invitation transitioned",
                extra={"invitation_id": invitation.id, "status": status.value},
            )
        return invitation

    def redeem(self, invitation: Invitation) -> Invitation:
        """Mark as redeemed. Does not add the membership; see ``redeem_by_code``."""
        return self._transition(invitation, InvitationStatus.REDEEMED)

    def cancel(self, invitation: Invitation) -> Invitation:
        return self._transition(invitation, InvitationStatus.CANCELLED)

    def expire(self, invitation: Invitation) -> Invitation:
        return self._transition(invitation, InvitationStatus.EXPIRED)

    def redeem_by_code(self, code: str, redeeming_user_id: int) -> Dict[str, Any]:
        """
        Join the invitation's household.

        The status change and the new membership are committed together; of
        two users racing for one code exactly one gets in.

        Raises:
            ResourceNotFoundException: unknown code, or invitation not valid
            ConflictException: household gone, already a member, or code
                redeemed concurrently
        """
        code = code.strip().upper()
        invitation = self.invitation_repo.get_by_code(code)
        if invitation is None:
            raise ResourceNotFoundException("Invitation", message="Invitation not found or no longer valid")
        if not self.is_valid(invitation):
            if invitation.status == InvitationStatus.PENDING.value:
                self.expire(invitation)
            raise ResourceNotFoundException("Invitation", message="Invitation not found or no longer valid")

        household = self.household_repo.get(invitation.household_id)
        if household is None:
            logger.warning("Invitation for missing household", extra={"invitation_id": invitation.id})
            raise ConflictException("The household for this invitation no longer exists")
        if self.household_repo.is_member(household.id, redeeming_user_id):
            raise ConflictException("You are already a member of this household")
        user = self.user_repo.get(redeeming_user_id)
        if user is None:
            raise ResourceNotFoundException("User", redeeming_user_id)

        role = Role(invitation.role)
        with self.membership.paired_write(
            "redeem_invitation",
            conflict_message="You are already a member of this household",
            invitation_id=invitation.id,
            household_id=household.id,
            user_id=user.id,
        ):
            if not self.invitation_repo.transition_from_pending(
                invitation.id, InvitationStatus.REDEEMED
            ):
                raise ConflictException("Invitation has already been used")
            self.membership.stage_member(household, user, role)

        self.db.refresh(invitation)
        return {"household_id": household.id, "household_name": household.name, "role": role}

    def list_for_household(self, household_id: int) -> List[Invitation]:
        """All invitations of a household, newest first. Stale pending ones are expired first."""
        stale = [
            invitation
            for invitation in self.invitation_repo.get_pending_for_household(household_id)
            if not self.is_valid(invitation)
        ]
        if stale:
            for invitation in stale:
                self.invitation_repo.transition_from_pending(invitation.id, InvitationStatus.EXPIRED)
            self.db.commit()
            logger.info(
                "Expired stale invitations",
                extra={"household_id": household_id, "count": len(stale)},
            )
        return self.invitation_repo.get_for_household(household_id)

    def cancel_for_household(self, household_id: int, invitation_id: int) -> Invitation:
        invitation = self.invitation_repo.get(invitation_id)
        if invitation is None or invitation.household_id != household_id:
            raise ResourceNotFoundException("Invitation", invitation_id)
        if invitation.status != InvitationStatus.PENDING.value:
            raise ConflictException("Invitation is no longer pending")

        invitation = self.cancel(invitation)
        if invitation.status != InvitationStatus.CANCELLED.value:
            raise ConflictException("Invitation is no longer pending")
        return invitation
