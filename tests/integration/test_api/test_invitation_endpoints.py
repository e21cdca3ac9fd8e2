import pytest

from homekeeper.core.permissions import Role
from homekeeper.services.membership_service import MembershipService


def invite(api, household_id, email="member@example.com", **extra):
    return api.post(
        f"/households/{household_id}/members/invite",
        json={"email": email, **extra},
    )


@pytest.mark.integration
class TestInviteAndRedeem:

    def test_invite_then_redeem(self, api, household, member_user):
        api.login("owner@example.com")
        created = invite(api, household.id, email="Member@Example.com", name="Max")

        assert created.status_code == 201
        invitation = created.json()["data"]
        assert invitation["status"] == "pending"
        assert invitation["role"] == "guest"
        assert invitation["email"] == "member@example.com"
        assert len(invitation["code"]) == 6

        api.login("member@example.com")
        redeemed = api.post("/invitations/redeem", json={"code": invitation["code"].lower()})

        assert redeemed.status_code == 200
        assert redeemed.json()["data"] == {
            "household_id": household.id,
            "household_name": "Maple House",
            "role": "guest",
        }
        permissions = api.get(f"/households/{household.id}/permissions").json()["data"]
        assert permissions["role"] == "guest"

    def test_requested_role_is_not_applied(self, api, household):
        api.login("owner@example.com")

        response = invite(api, household.id, role="admin")

        assert response.status_code == 201
        assert response.json()["data"]["role"] == "guest"

    def test_owner_role_rejected(self, api, household):
        api.login("owner@example.com")

        response = invite(api, household.id, role="owner")

        assert response.status_code == 400

    def test_member_cannot_invite(self, api, db_session, household, member_user):
        MembershipService(db_session).add_member(household, member_user.id, Role.MEMBER)
        api.login("member@example.com")

        response = invite(api, household.id, email="friend@example.com")

        assert response.status_code == 403

    def test_code_is_single_use(self, api, household, member_user, outsider):
        api.login("owner@example.com")
        code = invite(api, household.id).json()["data"]["code"]

        api.login("member@example.com")
        assert api.post("/invitations/redeem", json={"code": code}).status_code == 200

        api.login("outsider@example.com")
        response = api.post("/invitations/redeem", json={"code": code})

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Invitation not found or no longer valid"

    def test_existing_member_cannot_redeem(self, api, household):
        api.login("owner@example.com")
        code = invite(api, household.id).json()["data"]["code"]

        response = api.post("/invitations/redeem", json={"code": code})

        assert response.status_code == 409

    def test_unknown_code(self, api, outsider):
        api.login("outsider@example.com")

        response = api.post("/invitations/redeem", json={"code": "ZZZZZZ"})

        assert response.status_code == 404

    def test_malformed_code(self, api, outsider):
        api.login("outsider@example.com")

        response = api.post("/invitations/redeem", json={"code": "abc"})

        assert response.status_code == 422
        assert response.json()["error"]["category"] == "Validation"

    def test_redeem_requires_login(self, api):
        api.get("/auth/csrf-token")

        response = api.post("/invitations/redeem", json={"code": "ABCDEF"})

        assert response.status_code == 401


@pytest.mark.integration
class TestInvitationManagement:

    def test_list_newest_first(self, api, household):
        api.login("owner@example.com")
        first = invite(api, household.id, email="a@example.com").json()["data"]
        second = invite(api, household.id, email="b@example.com").json()["data"]

        response = api.get(f"/households/{household.id}/invitations")

        assert response.status_code == 200
        assert [i["id"] for i in response.json()["data"]] == [second["id"], first["id"]]

    def test_cancel(self, api, household, member_user):
        api.login("owner@example.com")
        invitation = invite(api, household.id).json()["data"]

        response = api.delete(f"/households/{household.id}/invitations/{invitation['id']}")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"

        again = api.delete(f"/households/{household.id}/invitations/{invitation['id']}")
        assert again.status_code == 409

        api.login("member@example.com")
        redeemed = api.post("/invitations/redeem", json={"code": invitation["code"]})
        assert redeemed.status_code == 404

    def test_cancel_other_households_invitation(self, api, db_session, household, member_user):
        other = MembershipService(db_session).create_household("Birch Cottage", member_user.id)
        api.login("member@example.com")
        foreign = invite(api, other.id, email="x@example.com").json()["data"]

        api.login("owner@example.com")
        response = api.delete(f"/households/{household.id}/invitations/{foreign['id']}")

        assert response.status_code == 404
