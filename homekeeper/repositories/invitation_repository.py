from sqlalchemy.orm import Session
from sqlalchemy import update, delete
from typing import List, Optional
from homekeeper.models.invitation import Invitation, InvitationStatus
from homekeeper.repositories.repository import BaseRepository


class InvitationRepository(BaseRepository[Invitation]):
    """Repository for invitation operations."""

    def __init__(self, db: Session):
        super().__init__(Invitation, db)

    def get_by_code(self, code: str) -> Optional[Invitation]:
        """Find an invitation by its redemption code."""
        return self.db.query(Invitation).filter(Invitation.code == code).first()

    def code_exists(self, code: str) -> bool:
        return self.db.query(Invitation).filter(Invitation.code == code).count() > 0

    def get_for_household(self, household_id: int) -> List[Invitation]:
        """All invitations of a household, newest first."""
        return (
            self.db.query(Invitation)
            .filter(Invitation.household_id == household_id)
            .order_by(Invitation.id.desc())
            .all()
        )

    def get_pending_for_household(self, household_id: int) -> List[Invitation]:
        return (
            self.db.query(Invitation)
            .filter(
                Invitation.household_id == household_id,
                Invitation.status == InvitationStatus.PENDING.value,
            )
            .all()
        )

    def transition_from_pending(self, invitation_id: int, status: InvitationStatus) -> bool:
        """
        Compare-and-swap ``pending -> status``. Staged, not committed.

        Returns False when the invitation was no longer pending, so of two
        racing callers exactly one sees True.
        """
        result = self.db.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation_id,
                Invitation.status == InvitationStatus.PENDING.value,
            )
            .values(status=status.value)
            .execution_options(synchronize_session=False)
        )
        self.db.flush()
        return result.rowcount == 1

    def delete_for_household(self, household_id: int) -> None:
        self.db.execute(delete(Invitation).where(Invitation.household_id == household_id))
        self.db.flush()
