import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from homekeeper.core.exception import (
    BadRequestException,
    ConflictException,
    CorruptStateException,
    CustomException,
    OwnerProtectedException,
    ResourceNotFoundException,
)
from homekeeper.core.permissions import Role
from homekeeper.models.household import Household
from homekeeper.models.user import User
from homekeeper.repositories.household_repository import HouseholdRepository
from homekeeper.repositories.invitation_repository import InvitationRepository
from homekeeper.repositories.userRepository import UserRepository
from homekeeper.schemas.household import MembershipDivergence

logger = logging.getLogger(__name__)

MISSING_USER = "missing_user"
MISSING_ROLE = "missing_role"
ORPHANED_ROLE = "orphaned_role"
OWNER_MISMATCH = "owner_mismatch"


class MembershipService:
    """
    Only writer of household membership rows and ``User.household_roles``.

    Both views of a membership change are staged in the same session and
    committed together, so a failure leaves neither side written.
    """

    def __init__(self, db: Session):
        self.db = db
        self.household_repo = HouseholdRepository(db)
        self.user_repo = UserRepository(db)
        self.invitation_repo = InvitationRepository(db)

    @contextmanager
    def paired_write(
        self, action: str, conflict_message: Optional[str] = None, **context: Any
    ) -> Iterator[None]:
        """
        Commit everything staged inside the block, or roll all of it back.

        Any failure rolls back the whole block and is re-raised. A unique-key
        violation becomes a ConflictException when ``conflict_message`` is
        given (two requests adding the same member).
        """
        try:
            yield
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            if conflict_message is None:
                logger.exception(f"{action} failed; changes rolled back", extra=context)
                raise
            logger.warning(f"{action} rejected by store constraint", extra=context)
            raise ConflictException(conflict_message)
        except CustomException:
            self.db.rollback()
            raise
        except Exception:
            self.db.rollback()
            logger.exception(f"{action} failed; changes rolled back", extra=context)
            raise
        logger.info(f"{action} committed", extra=context)

    # ---- validation helpers ----

    def _require_user(self, user_id: int) -> User:
        user = self.user_repo.get(user_id)
        if user is None:
            raise ResourceNotFoundException("User", user_id)
        return user

    def _require_member(self, household: Household, user_id: int) -> None:
        if not self.household_repo.is_member(household.id, user_id):
            raise ConflictException("User is not a member of this household")

    @staticmethod
    def _grantable_role(role: Any) -> Role:
        role = Role(role)
        if role == Role.OWNER:
            raise BadRequestException("Role not allowed")
        return role

    def stage_member(self, household: Household, user: User, role: Role) -> None:
        """Stage both halves of a new membership. The caller commits."""
        self.household_repo.add_member_row(household.id, user.id)
        self.user_repo.set_household_role(user, household.id, role.value)

    # ---- coordinator operations ----

    def create_household(
        self, name: str, owner_id: int, description: Optional[str] = None
    ) -> Household:
        """Create a household whose only member is its owner."""
        owner = self._require_user(owner_id)

        with self.paired_write("create_household", owner_id=owner_id):
            household = self.household_repo.add(
                Household(name=name, description=description, owner_id=owner.id)
            )
            self.household_repo.add_member_row(household.id, owner.id)
            self.user_repo.set_household_role(owner, household.id, Role.OWNER.value)

        self.db.refresh(household)
        return household

    def add_member(self, household: Household, user_id: int, role: Any) -> Dict[str, Any]:
        """
        Add an existing user to the household.

        Raises:
            BadRequestException: role is owner
            ConflictException: user is already a member
            ResourceNotFoundException: user does not exist
        """
        role = self._grantable_role(role)
        if self.household_repo.is_member(household.id, user_id):
            raise ConflictException("User is already a member of this household")
        user = self._require_user(user_id)

        with self.paired_write(
            "add_member",
            conflict_message="User is already a member of this household",
            household_id=household.id,
            user_id=user_id,
            role=role.value,
        ):
            self.stage_member(household, user, role)

        return {"id": user.id, "name": user.name, "email": user.email, "role": role}

    def remove_member(self, household: Household, user_id: int) -> None:
        """
        Remove a member. The owner can never be removed; ownership moves only
        through ``transfer_ownership``.
        """
        self._require_member(household, user_id)
        if user_id == household.owner_id:
            raise OwnerProtectedException()
        user = self._require_user(user_id)

        with self.paired_write("remove_member", household_id=household.id, user_id=user_id):
            self.household_repo.remove_member_row(household.id, user_id)
            self.user_repo.remove_household_role(user, household.id)

    def get_members(self, household: Household) -> List[Dict[str, Any]]:
        """
        Members with their roles, in join order.

        Raises:
            CorruptStateException: a member has no user record or no role
        """
        member_ids = self.household_repo.get_member_ids(household.id)
        users = {user.id: user for user in self.user_repo.get_many(member_ids)}
        key = str(household.id)

        members = []
        for user_id in member_ids:
            user = users.get(user_id)
            if user is None:
                logger.error(
                    "Member without user record",
                    extra={"household_id": household.id, "user_id": user_id},
                )
                raise CorruptStateException(
                    f"Member {user_id} of household {household.id} has no user record."
                )
            raw = (user.household_roles or {}).get(key)
            if raw is None:
                logger.error(
                    "Member without role",
                    extra={"household_id": household.id, "user_id": user_id},
                )
                raise CorruptStateException(
                    f"Member {user_id} of household {household.id} has no role."
                )
            try:
                role = Role(raw)
            except ValueError:
                raise CorruptStateException(
                    f"Member {user_id} of household {household.id} has unknown role '{raw}'."
                )
            members.append({"id": user.id, "name": user.name, "email": user.email, "role": role})
        return members

    def get_member(self, household: Household, user_id: int) -> Dict[str, Any]:
        for member in self.get_members(household):
            if member["id"] == user_id:
                return member
        raise ResourceNotFoundException("Member", user_id)

    def has_member(self, household: Household, user_id: int) -> bool:
        return self.household_repo.is_member(household.id, user_id)

    def change_member_role(self, household: Household, user_id: int, role: Any) -> Dict[str, Any]:
        role = self._grantable_role(role)
        if user_id == household.owner_id:
            raise OwnerProtectedException("The household owner's role cannot be changed.")
        self._require_member(household, user_id)
        user = self._require_user(user_id)

        with self.paired_write(
            "change_member_role", household_id=household.id, user_id=user_id, role=role.value
        ):
            self.user_repo.set_household_role(user, household.id, role.value)

        return {"id": user.id, "name": user.name, "email": user.email, "role": role}

    def transfer_ownership(self, household: Household, new_owner_id: int) -> Household:
        """
        Hand the household to another member. The previous owner stays on as admin.
        """
        if new_owner_id == household.owner_id:
            raise ConflictException("User already owns this household")
        if not self.household_repo.is_member(household.id, new_owner_id):
            raise ConflictException("New owner must be a member of the household")
        new_owner = self._require_user(new_owner_id)
        previous_owner = self.user_repo.get(household.owner_id)
        if previous_owner is None:
            raise CorruptStateException(
                f"Owner of household {household.id} has no user record."
            )

        with self.paired_write(
            "transfer_ownership",
            household_id=household.id,
            from_user_id=previous_owner.id,
            to_user_id=new_owner.id,
        ):
            household.owner_id = new_owner.id
            self.db.flush()
            self.user_repo.set_household_role(new_owner, household.id, Role.OWNER.value)
            self.user_repo.set_household_role(previous_owner, household.id, Role.ADMIN.value)

        self.db.refresh(household)
        return household

    def delete_household(self, household: Household) -> None:
        """Delete the household along with every role entry, membership and invitation."""
        key = str(household.id)
        household_id = household.id

        user_ids = set(self.household_repo.get_member_ids(household_id)) | {household.owner_id}

        with self.paired_write("delete_household", household_id=household_id):
            for user in self.user_repo.get_many(list(user_ids)):
                if key in user.household_roles:
                    self.user_repo.remove_household_role(user, household_id)
            self.household_repo.remove_all_member_rows(household_id)
            self.invitation_repo.delete_for_household(household_id)
            self.household_repo.remove(household)

    # ---- reconciliation ----

    def find_divergences(self) -> List[MembershipDivergence]:
        """
        Compare membership rows with users' role maps.

        Kinds:
            missing_user: membership row whose user record is gone
            missing_role: member without a role entry
            orphaned_role: role entry without a membership row
            owner_mismatch: owner_id and the owner role disagree
        """
        memberships = self.household_repo.get_all_memberships()
        households = {h.id: h for h in self.household_repo.get_many(list(memberships))}
        pairs: Set[Tuple[int, int]] = {
            (household_id, user_id)
            for household_id, user_ids in memberships.items()
            for user_id in user_ids
        }

        wanted_ids = {user_id for _, user_id in pairs} | {h.owner_id for h in households.values()}
        users = {user.id: user for user in self.user_repo.get_many(list(wanted_ids))}
        for user in self.user_repo.get_users_with_roles():
            users.setdefault(user.id, user)

        divergences: List[MembershipDivergence] = []

        for household_id, user_ids in memberships.items():
            household = households[household_id]
            key = str(household_id)
            for user_id in user_ids:
                user = users.get(user_id)
                if user is None:
                    divergences.append(
                        MembershipDivergence(household_id=household_id, user_id=user_id, kind=MISSING_USER)
                    )
                    continue
                role = (user.household_roles or {}).get(key)
                if role is None:
                    divergences.append(
                        MembershipDivergence(household_id=household_id, user_id=user_id, kind=MISSING_ROLE)
                    )
                elif user_id == household.owner_id and role != Role.OWNER.value:
                    divergences.append(
                        MembershipDivergence(household_id=household_id, user_id=user_id, kind=OWNER_MISMATCH)
                    )
                elif user_id != household.owner_id and role == Role.OWNER.value:
                    divergences.append(
                        MembershipDivergence(household_id=household_id, user_id=user_id, kind=OWNER_MISMATCH)
                    )

            owner = users.get(household.owner_id)
            if (
                household.owner_id not in user_ids
                and owner is not None
                and key not in (owner.household_roles or {})
            ):
                divergences.append(
                    MembershipDivergence(
                        household_id=household_id, user_id=household.owner_id, kind=OWNER_MISMATCH
                    )
                )

        for user in users.values():
            for key in (user.household_roles or {}):
                household_id = int(key)
                if (household_id, user.id) not in pairs:
                    divergences.append(
                        MembershipDivergence(household_id=household_id, user_id=user.id, kind=ORPHANED_ROLE)
                    )

        if divergences:
            logger.warning("Membership divergences found", extra={"count": len(divergences)})
        return divergences

    def reconcile(self) -> List[MembershipDivergence]:
        """
        Repair every divergence in one transaction.

        Membership rows are treated as the source of truth: a member with no
        role gets the least privileged one (the owner gets owner back), and a
        role with no membership row is dropped unless it belongs to the owner.
        """
        divergences = self.find_divergences()
        if not divergences:
            return []

        with self.paired_write("reconcile", count=len(divergences)):
            for divergence in divergences:
                self._repair(divergence)
                divergence.repaired = True

        return divergences

    def _repair(self, divergence: MembershipDivergence) -> None:
        household_id = divergence.household_id
        user_id = divergence.user_id
        household = self.household_repo.get(household_id)
        user = self.user_repo.get(user_id)
        is_owner = household is not None and household.owner_id == user_id

        if divergence.kind == MISSING_USER:
            if is_owner:
                logger.warning("Household owner record is gone", extra={"household_id": household_id})
            self.household_repo.remove_member_row(household_id, user_id)
        elif divergence.kind == MISSING_ROLE:
            role = Role.OWNER if is_owner else Role.GUEST
            self.user_repo.set_household_role(user, household_id, role.value)
        elif divergence.kind == ORPHANED_ROLE:
            if is_owner:
                self.household_repo.add_member_row(household_id, user_id)
                self.user_repo.set_household_role(user, household_id, Role.OWNER.value)
            else:
                self.user_repo.remove_household_role(user, household_id)
        elif divergence.kind == OWNER_MISMATCH:
            if is_owner:
                if not self.household_repo.is_member(household_id, user_id):
                    self.household_repo.add_member_row(household_id, user_id)
                self.user_repo.set_household_role(user, household_id, Role.OWNER.value)
            else:
                self.user_repo.set_household_role(user, household_id, Role.ADMIN.value)


def reconcile_memberships(db: Session) -> List[MembershipDivergence]:
    """Find and repair membership drift. Run once at startup."""
    repaired = MembershipService(db).reconcile()
    if repaired:
        logger.warning(
            "Membership divergences repaired",
            extra={"kinds": sorted({d.kind for d in repaired}), "count": len(repaired)},
        )
    return repaired
