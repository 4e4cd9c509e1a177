"""Tests for the primary member's contact information."""

from conftest import USER_ID


class TestUpdateContactInfo:
    def test_update(self, client, fake_db, member):
        response = client.patch("/api/account/contact", json={
            "phone": "801.555.0142",
            "address_line1": " 12 Main St ",
            "address_line2": "",
            "city": "Provo",
            "state": "ut",
            "postal_code": "84601",
        })
        assert response.status_code == 200
        person = fake_db.rows("people")[0]
        assert person["phone"] == "(801) 555-0142"
        assert person["address_line1"] == "12 Main St"
        assert person["address_line2"] is None
        assert person["state"] == "UT"
        assert fake_db.rpc_calls[-1][1]["p_action"] == "UPDATE_CONTACT_INFO"

    def test_omitted_address_fields_are_kept(self, client, fake_db, member):
        fake_db.rows("people")[0].update({"address_line1": "12 Main St", "city": "Provo"})
        response = client.patch("/api/account/contact", json={"phone": "8015550142", "city": "Orem"})
        assert response.status_code == 200
        person = fake_db.rows("people")[0]
        assert person["address_line1"] == "12 Main St"
        assert person["city"] == "Orem"

    def test_phone_required(self, client, fake_db, member):
        response = client.patch("/api/account/contact", json={"phone": " "})
        assert response.status_code == 400
        assert fake_db.rows("people")[0]["phone"] == "(801) 555-0100"

    def test_bad_state(self, client, member):
        response = client.patch("/api/account/contact", json={"phone": "8015550142", "state": "Utah"})
        assert response.status_code == 400
        assert "two-letter" in response.json()["detail"]

    def test_no_membership(self, client):
        response = client.patch("/api/account/contact", json={"phone": "8015550142"})
        assert response.status_code == 404
        assert response.json()["redirect_to"] == "/request"

    def test_staff_cannot_edit(self, client, fake_db, member):
        fake_db.add_row("user_roles", {"user_id": USER_ID, "role": "admin"})
        assert client.patch("/api/account/contact", json={"phone": "8015550142"}).status_code == 401


class TestMembershipSummary:
    def test_summary(self, client, fake_db, member):
        membership_id = member["membership"]["id"]
        fake_db.rows("memberships")[0].update({
            "onboarding_step": "onboarding_complete",
            "vitals_kit_status": "kit_requested",
        })
        fake_db.add_row("emergency_contacts", {
            "membership_id": membership_id,
            "person_id": member["person"]["id"],
            "name": "Sam Reyes",
            "relationship": "spouse",
            "phone": "8015550199",
        })

        body = client.get("/api/account/summary").json()
        assert body["redirect_to"] == "/dashboard"
        assert body["vitals_kit_label"] == "Kit requested"
        assert body["primary_member"]["date_of_birth"] == "04/12/1985"
        assert body["primary_member"]["name"] == "Dana Reyes"
        assert body["emergency_contacts"] == [
            {"name": "Sam Reyes", "relationship": "spouse", "phone": "(801) 555-0199"},
        ]

    def test_summary_before_vitals_kit(self, client, member):
        body = client.get("/api/account/summary").json()
        assert body["vitals_kit_label"] == "Not specified"
        assert body["emergency_contacts"] == []
        assert body["redirect_to"] == "/membership/intake/form"
