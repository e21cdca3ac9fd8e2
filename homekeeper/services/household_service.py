from sqlalchemy.orm import Session
from typing import Any, Dict, List
from homekeeper.models.household import Household
from homekeeper.models.user import User
from homekeeper.repositories.household_repository import HouseholdRepository
from homekeeper.schemas.household import HouseholdUpdate
from homekeeper.core.exception import ResourceNotFoundException


class HouseholdService:
    """
    Read side of households plus plain detail edits.

    Anything touching membership or ownership goes through MembershipService.
    """

    def __init__(self, db: Session):
        self.db = db
        self.household_repo = HouseholdRepository(db)

    def to_response(self, household: Household, user: User) -> Dict[str, Any]:
        """Household fields plus the member count and the caller's role."""
        return {
            "id": household.id,
            "uuid": household.uuid,
            "name": household.name,
            "description": household.description,
            "owner_id": household.owner_id,
            "created_at": household.created_at,
            "member_count": self.household_repo.get_member_count(household.id),
            "user_role": (user.household_roles or {}).get(str(household.id)),
        }

    def get_user_households(self, user: User) -> List[Dict[str, Any]]:
        """All households the user belongs to, newest first."""
        return [
            self.to_response(household, user)
            for household in self.household_repo.get_user_households(user.id)
        ]

    def update_household(self, household: Household, data: HouseholdUpdate) -> Household:
        """
        Update name and/or description. Only provided fields are changed.
        """
        update_data = data.model_dump(exclude_unset=True)
        # name is required; an explicit null only makes sense for description
        if update_data.get("name") is None:
            update_data.pop("name", None)
        updated_household = self.household_repo.update(household.id, update_data)

        if not updated_household:
            raise ResourceNotFoundException("Household", household.id)

        return updated_household
