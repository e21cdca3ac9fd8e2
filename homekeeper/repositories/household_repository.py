from sqlalchemy.orm import Session
from sqlalchemy import select, and_, insert, delete, func
from typing import Dict, List
from homekeeper.models.household import Household
from homekeeper.models.associations import household_members
from homekeeper.repositories.repository import BaseRepository


class HouseholdRepository(BaseRepository[Household]):
    """
    Repository for household operations.

    Membership writes only stage rows (flush); MembershipService commits them
    together with the paired role change on the user.
    """

    def __init__(self, db: Session):
        super().__init__(Household, db)

    def get_user_households(self, user_id: int) -> List[Household]:
        """Get all households a user belongs to."""
        stmt = (
            select(Household)
            .join(household_members, Household.id == household_members.c.household_id)
            .where(household_members.c.user_id == user_id)
            .order_by(Household.created_at.desc(), Household.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_member_ids(self, household_id: int) -> List[int]:
        """User IDs of every member, in join order."""
        stmt = (
            select(household_members.c.user_id)
            .where(household_members.c.household_id == household_id)
            .order_by(household_members.c.joined_at, household_members.c.user_id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def is_member(self, household_id: int, user_id: int) -> bool:
        """Check if a user is a member of a household."""
        stmt = select(household_members).where(
            and_(
                household_members.c.household_id == household_id,
                household_members.c.user_id == user_id
            )
        )
        return self.db.execute(stmt).first() is not None

    def get_member_count(self, household_id: int) -> int:
        """Get the number of members in a household."""
        stmt = select(func.count()).select_from(household_members).where(
            household_members.c.household_id == household_id
        )
        return self.db.execute(stmt).scalar_one()

    def add_member_row(self, household_id: int, user_id: int) -> None:
        """Stage a membership row. Duplicates fail on the primary key."""
        self.db.execute(
            insert(household_members).values(household_id=household_id, user_id=user_id)
        )
        self.db.flush()

    def remove_member_row(self, household_id: int, user_id: int) -> bool:
        """Stage removal of a membership row. Returns False if there was none."""
        result = self.db.execute(
            delete(household_members).where(
                and_(
                    household_members.c.household_id == household_id,
                    household_members.c.user_id == user_id
                )
            )
        )
        self.db.flush()
        return result.rowcount > 0

    def remove_all_member_rows(self, household_id: int) -> None:
        self.db.execute(
            delete(household_members).where(household_members.c.household_id == household_id)
        )
        self.db.flush()

    def get_all_memberships(self) -> Dict[int, List[int]]:
        """Map of household ID -> member user IDs, for consistency checks."""
        memberships: Dict[int, List[int]] = {
            household_id: [] for household_id in self.db.execute(select(Household.id)).scalars()
        }
        rows = self.db.execute(
            select(household_members.c.household_id, household_members.c.user_id)
        ).all()
        for household_id, user_id in rows:
            memberships.setdefault(household_id, []).append(user_id)
        return memberships
