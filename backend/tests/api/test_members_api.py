"""
Tests for member registry and cooperative settings endpoints.
"""
import pytest

from tests.factories import (
    OTHER_TENANT_ID,
    create_test_member,
    create_test_proposal,
    create_test_vote,
)

MEMBERS_URL = "/api/v1/cooperative/members"
SETTINGS_URL = "/api/v1/cooperative/settings"


class TestMemberEndpoints:

    @pytest.mark.api
    def test_enroll_and_get(self, client, tenant_headers):
        created = client.post(
            MEMBERS_URL,
            json={"member_type": "driver", "display_name": "Dana", "ownership_shares": 30, "joined_date": "2025-01-01"},
            headers=tenant_headers,
        )
        member_id = created.json()["id"]
        fetched = client.get(f"{MEMBERS_URL}/{member_id}", headers=tenant_headers)

        assert created.status_code == 201
        assert fetched.json()["display_name"] == "Dana"
        assert fetched.json()["ownership_shares"] == 30
        assert fetched.json()["is_active"] is True

    @pytest.mark.api
    def test_duplicate_host_record(self, client, tenant_headers):
        payload = {"member_type": "driver", "member_reference_id": 501}

        first = client.post(MEMBERS_URL, json=payload, headers=tenant_headers)
        second = client.post(MEMBERS_URL, json=payload, headers=tenant_headers)

        assert first.status_code == 201
        assert second.status_code == 400
        assert second.json()["error"] == "DUPLICATE_ERROR"
        assert second.json()["details"]["field"] == "member_reference_id"

    @pytest.mark.api
    def test_negative_shares_rejected(self, client, tenant_headers):
        response = client.post(MEMBERS_URL, json={"ownership_shares": -1}, headers=tenant_headers)

        assert response.status_code == 422

    @pytest.mark.api
    def test_other_tenant_member_is_404(self, client, db_session, other_tenant_headers):
        member = create_test_member(db_session)
        db_session.commit()

        response = client.get(f"{MEMBERS_URL}/{member.id}", headers=other_tenant_headers)

        assert response.status_code == 404

    @pytest.mark.api
    def test_deactivate(self, client, db_session, tenant_headers):
        member = create_test_member(db_session)
        db_session.commit()

        response = client.post(
            f"{MEMBERS_URL}/{member.id}/deactivate", json={"left_date": "2025-06-30"}, headers=tenant_headers,
        )
        count = client.get(f"{MEMBERS_URL}/eligible/count", headers=tenant_headers)

        assert response.json()["is_active"] is False
        assert response.json()["left_date"] == "2025-06-30"
        assert count.json() == {"eligible_voters": 0}

    @pytest.mark.api
    def test_eligible_listing(self, client, db_session, tenant_headers):
        create_test_member(db_session, ownership_shares=3)
        create_test_member(db_session, voting_rights=False)
        create_test_member(db_session, is_active=False)
        create_test_member(db_session, tenant_id=OTHER_TENANT_ID)
        db_session.commit()

        eligible = client.get(f"{MEMBERS_URL}/eligible", headers=tenant_headers)
        count = client.get(f"{MEMBERS_URL}/eligible/count", headers=tenant_headers)

        assert len(eligible.json()) == 2
        assert count.json()["eligible_voters"] == 1

    @pytest.mark.api
    def test_voting_history(self, client, db_session, tenant_headers):
        member = create_test_member(db_session)
        first = create_test_proposal(db_session)
        second = create_test_proposal(db_session)
        create_test_vote(db_session, first, member, "yes")
        create_test_vote(db_session, second, member, "no")
        db_session.commit()

        response = client.get(f"{MEMBERS_URL}/{member.id}/votes", headers=tenant_headers)

        assert response.status_code == 200
        assert {v["proposal_id"] for v in response.json()} == {first.id, second.id}

    @pytest.mark.api
    def test_investments(self, client, db_session, tenant_headers):
        member = create_test_member(db_session, member_type="customer")
        db_session.commit()

        created = client.post(
            f"{MEMBERS_URL}/{member.id}/investments",
            json={"investment_amount": "1500.00", "investment_date": "2025-02-01"},
            headers=tenant_headers,
        )
        returned = client.post(
            f"{MEMBERS_URL}/investments/{created.json()['id']}/return",
            json={"returned_amount": "500.00"},
            headers=tenant_headers,
        )
        listed = client.get(f"{MEMBERS_URL}/{member.id}/investments", headers=tenant_headers)

        assert created.status_code == 201
        assert created.json()["investment_amount"] == "1500.00"
        assert returned.json()["returned_amount"] == "500.00"
        assert returned.json()["status"] == "active"
        assert len(listed.json()) == 1

    @pytest.mark.api
    def test_eligibility_rules(self, client, db_session, tenant_headers):
        member = create_test_member(db_session)
        proposal = create_test_proposal(db_session)
        db_session.commit()

        rule = client.post(
            f"{MEMBERS_URL}/{member.id}/eligibility-rules",
            json={"eligible": False, "reason": "suspended"},
            headers=tenant_headers,
        )
        blocked = client.post(
            f"/api/v1/cooperative/proposals/{proposal.id}/votes",
            json={"member_id": member.id, "vote_choice": "yes"},
            headers=tenant_headers,
        )
        removed = client.delete(f"{MEMBERS_URL}/eligibility-rules/{rule.json()['id']}", headers=tenant_headers)
        allowed = client.post(
            f"/api/v1/cooperative/proposals/{proposal.id}/votes",
            json={"member_id": member.id, "vote_choice": "yes"},
            headers=tenant_headers,
        )

        assert rule.status_code == 201
        assert blocked.status_code == 403
        assert blocked.json()["details"]["reason"] == "suspended"
        assert removed.status_code == 200
        assert allowed.status_code == 200


class TestSettingsEndpoints:

    @pytest.mark.api
    def test_defaults_created_on_read(self, client, tenant_headers):
        response = client.get(SETTINGS_URL, headers=tenant_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["tenant_id"] == 1
        assert data["profit_share_member_types"] == ["driver", "staff"]
        assert data["dividend_member_types"] == ["customer", "other"]
        assert data["dividend_basis"] == "shares"
        assert data["cooperative_model"] == "hybrid"
        assert data["default_quorum_required"] is None

    @pytest.mark.api
    def test_update(self, client, tenant_headers):
        response = client.put(
            SETTINGS_URL,
            json={"dividend_basis": "investment", "dividend_pool_percentage": "30", "default_quorum_required": "40"},
            headers=tenant_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["dividend_basis"] == "investment"
        assert data["dividend_pool_percentage"] == "30.00"
        assert data["default_quorum_required"] == "40.00"

    @pytest.mark.api
    def test_overlapping_member_types_rejected(self, client, tenant_headers):
        response = client.put(
            SETTINGS_URL,
            json={"profit_share_member_types": ["driver", "customer"]},
            headers=tenant_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    @pytest.mark.api
    def test_settings_are_per_tenant(self, client, tenant_headers, other_tenant_headers):
        client.put(SETTINGS_URL, json={"dividend_basis": "investment"}, headers=tenant_headers)

        response = client.get(SETTINGS_URL, headers=other_tenant_headers)

        assert response.json()["dividend_basis"] == "shares"
