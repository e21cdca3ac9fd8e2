import pytest

from homekeeper.core.permissions import ROLE_PERMISSIONS, Role
from homekeeper.services.membership_service import MembershipService


@pytest.fixture
def household_with_member(db_session, household, member_user):
    MembershipService(db_session).add_member(household, member_user.id, Role.MEMBER)
    return household


@pytest.mark.integration
class TestHouseholdCrud:

    def test_create_and_list(self, api, owner):
        api.login("owner@example.com")

        created = api.post("/households", json={"name": "Cedar Flat", "description": "Upstairs"})

        assert created.status_code == 201
        data = created.json()["data"]
        assert data["name"] == "Cedar Flat"
        assert data["owner_id"] == owner.id
        assert data["member_count"] == 1
        assert data["user_role"] == "owner"

        listed = api.get("/households").json()["data"]
        assert [h["id"] for h in listed] == [data["id"]]

        me = api.get("/users/me").json()["data"]
        assert me["household_roles"] == {str(data["id"]): "owner"}

    def test_requires_login(self, api):
        api.get("/auth/csrf-token")

        response = api.post("/households", json={"name": "Nope"})

        assert response.status_code == 401

    def test_non_member_gets_not_found(self, api, household, outsider):
        api.login("outsider@example.com")

        response = api.get(f"/households/{household.id}")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Household not found"

    def test_missing_household_looks_the_same(self, api, outsider):
        api.login("outsider@example.com")

        response = api.get("/households/9999")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Household not found"

    def test_update_requires_permission(self, api, household_with_member):
        api.login("member@example.com")

        response = api.put(f"/households/{household_with_member.id}", json={"name": "Renamed"})

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Forbidden"

    def test_owner_updates(self, api, household):
        api.login("owner@example.com")

        response = api.put(f"/households/{household.id}", json={"name": "Renamed"})

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Renamed"
        assert response.json()["data"]["description"] == "Our home"

    def test_owner_deletes(self, api, household_with_member):
        api.login("owner@example.com")
        household_id = household_with_member.id

        response = api.delete(f"/households/{household_id}")

        assert response.status_code == 200
        assert api.get(f"/households/{household_id}").status_code == 404
        api.login("member@example.com")
        assert api.get("/users/me").json()["data"]["household_roles"] == {}


@pytest.mark.integration
class TestMembers:

    def test_list_members(self, api, owner, member_user, household_with_member):
        api.login("owner@example.com")

        response = api.get(f"/households/{household_with_member.id}/members")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["member_count"] == 2
        assert [(m["id"], m["role"]) for m in data["members"]] == [
            (owner.id, "owner"),
            (member_user.id, "member"),
        ]

    def test_add_member(self, api, household, member_user):
        api.login("owner@example.com")

        response = api.put(
            f"/households/{household.id}/members",
            json={"user_id": member_user.id, "role": "admin"},
        )

        assert response.status_code == 200
        roles = {m["id"]: m["role"] for m in response.json()["data"]["members"]}
        assert roles[member_user.id] == "admin"

    def test_add_member_as_owner_rejected(self, api, household, member_user):
        api.login("owner@example.com")

        response = api.put(
            f"/households/{household.id}/members",
            json={"user_id": member_user.id, "role": "owner"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Role not allowed"

    def test_add_existing_member_conflicts(self, api, household_with_member, member_user):
        api.login("owner@example.com")

        response = api.put(
            f"/households/{household_with_member.id}/members",
            json={"user_id": member_user.id, "role": "guest"},
        )

        assert response.status_code == 409

    def test_get_member(self, api, household_with_member, member_user):
        api.login("owner@example.com")

        response = api.get(f"/households/{household_with_member.id}/members/{member_user.id}")

        assert response.status_code == 200
        assert response.json()["data"] == {
            "id": member_user.id,
            "name": "Max Member",
            "email": "member@example.com",
            "role": "member",
        }

    def test_change_role(self, api, household_with_member, member_user):
        api.login("owner@example.com")

        response = api.put(
            f"/households/{household_with_member.id}/members/{member_user.id}/role",
            json={"role": "admin"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["role"] == "admin"

    def test_remove_owner_forbidden(self, api, household_with_member, owner):
        api.login("owner@example.com")

        response = api.delete(f"/households/{household_with_member.id}/members/{owner.id}")

        assert response.status_code == 403

    def test_remove_member(self, api, household_with_member, member_user):
        api.login("owner@example.com")

        response = api.delete(f"/households/{household_with_member.id}/members/{member_user.id}")

        assert response.status_code == 200
        members = api.get(f"/households/{household_with_member.id}/members").json()["data"]
        assert members["member_count"] == 1

    def test_member_cannot_remove_others(self, api, db_session, household_with_member, outsider):
        MembershipService(db_session).add_member(household_with_member, outsider.id, Role.GUEST)
        api.login("member@example.com")

        response = api.delete(f"/households/{household_with_member.id}/members/{outsider.id}")

        assert response.status_code == 403

    def test_transfer_ownership(self, api, household_with_member, owner, member_user):
        api.login("owner@example.com")

        response = api.post(
            f"/households/{household_with_member.id}/transfer-ownership",
            json={"new_owner_id": member_user.id},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["owner_id"] == member_user.id
        assert data["user_role"] == "admin"


@pytest.mark.integration
class TestPermissionsEndpoint:

    def test_my_permissions(self, api, household_with_member):
        api.login("member@example.com")

        response = api.get(f"/households/{household_with_member.id}/permissions")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["role"] == "member"
        assert set(data["permissions"]) == {p.value for p in ROLE_PERMISSIONS[Role.MEMBER]}

    def test_guest_cannot_list_members(self, api, db_session, household, outsider):
        MembershipService(db_session).add_member(household, outsider.id, Role.GUEST)
        api.login("outsider@example.com")

        response = api.get(f"/households/{household.id}/members")

        assert response.status_code == 403

    def test_member_cannot_list_invitations(self, api, household_with_member):
        api.login("member@example.com")

        response = api.get(f"/households/{household_with_member.id}/invitations")

        assert response.status_code == 403

    def test_member_cannot_list_members(self, api, household_with_member, member_user):
        api.login("member@example.com")
        household_id = household_with_member.id

        assert api.get(f"/households/{household_id}/members").status_code == 403
        assert api.get(f"/households/{household_id}/members/{member_user.id}").status_code == 403
