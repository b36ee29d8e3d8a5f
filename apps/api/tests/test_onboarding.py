"""
Tests for the onboarding lifecycle: email verification, role-specific
completion and the incomplete-player surface.
"""
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from conftest import BASE_TIME, TEST_PASSWORD
from core.security import verify_password
from models import Company, Player, User
from services.email_service import email_service
from services.onboarding import (
    NextStep,
    OnboardingStage,
    derive_stage,
    needs_onboarding,
    needs_parent_onboarding,
    needs_player_onboarding,
)


@pytest.fixture
def new_owner(client, db_session):
    """An owner fresh from signup: unverified, not onboarded."""
    resp = client.post(
        "/v1/auth/signup",
        json={"name": "New Owner", "email": "new-owner@example.com", "password": "Password123"},
    )
    assert resp.status_code == 201
    return db_session.query(User).filter(User.email == "new-owner@example.com").one()


def _verify(client, db_session, user, headers):
    db_session.expire_all()
    code = db_session.get(User, user.id).email_code
    return client.post("/v1/onboarding/verify-email", json={"code": code}, headers=headers)


class TestStageDerivation:
    def test_stages_in_order(self, factory):
        user = factory.user("s@example.com", "coach", verified=False, onboarded=False)
        assert derive_stage(user) is OnboardingStage.unverified
        assert not needs_onboarding(user)

        user.email_verified = True
        assert derive_stage(user) is OnboardingStage.verified_pending_onboarding
        assert needs_onboarding(user)

        user.onboarded = True
        assert derive_stage(user) is OnboardingStage.onboarded
        assert not needs_onboarding(user)

    def test_role_specific_predicates(self, factory):
        parent = factory.user("p@example.com", "parent", onboarded=False)
        player = factory.user("pl@example.com", "player", onboarded=False)
        assert needs_parent_onboarding(parent) and not needs_onboarding(parent)
        assert needs_player_onboarding(player) and not needs_parent_onboarding(player)


class TestEmailVerification:
    def test_status_after_signup(self, client, new_owner, auth_headers):
        resp = client.get("/v1/onboarding/status", headers=auth_headers(new_owner))
        assert resp.status_code == 200
        body = resp.json()
        assert body["stage"] == "UNVERIFIED"
        assert body["nextStep"] == NextStep.verify_email.value
        assert body["needsOnboarding"] is False

    def test_wrong_code(self, client, new_owner, auth_headers):
        code = "000000" if new_owner.email_code != "000000" else "111111"
        resp = client.post("/v1/onboarding/verify-email", json={"code": code}, headers=auth_headers(new_owner))
        assert resp.status_code == 400
        assert resp.json()["error"] == "INVALID_CODE"

    def test_verify_twice(self, client, db_session, new_owner, auth_headers):
        headers = auth_headers(new_owner)
        code = new_owner.email_code

        first = client.post("/v1/onboarding/verify-email", json={"code": code}, headers=headers)
        assert first.status_code == 200
        assert first.json()["emailVerified"] is True

        second = client.post("/v1/onboarding/verify-email", json={"code": code}, headers=headers)
        assert second.status_code == 400
        assert second.json()["error"] == "ALREADY_VERIFIED"

        status = client.get("/v1/onboarding/status", headers=headers).json()
        assert status["stage"] == "VERIFIED_PENDING_ONBOARDING"
        assert status["nextStep"] == "onboarding"
        assert status["needsOnboarding"] is True

    def test_resend_rotates_code(self, client, db_session, new_owner, auth_headers):
        old_code = new_owner.email_code
        with patch("services.onboarding.generate_verification_code", return_value="654321"):
            resp = client.post("/v1/onboarding/verification-code", headers=auth_headers(new_owner))
        assert resp.status_code == 200
        db_session.expire_all()
        assert db_session.get(User, new_owner.id).email_code == "654321" != old_code

    def test_resend_failure_is_500(self, client, new_owner, auth_headers):
        with patch.object(email_service, "send_verification_email", return_value=False):
            resp = client.post("/v1/onboarding/verification-code", headers=auth_headers(new_owner))
        assert resp.status_code == 500
        assert resp.json()["error"] == "EMAIL_SEND_FAILED"

    def test_resend_after_verification(self, client, tenant, auth_headers):
        resp = client.post("/v1/onboarding/verification-code", headers=auth_headers(tenant.coach))
        assert resp.status_code == 400
        assert resp.json()["error"] == "ALREADY_VERIFIED"


class TestOwnerOnboarding:
    def test_requires_verified_email(self, client, new_owner, auth_headers):
        resp = client.post(
            "/v1/onboarding/owner",
            json={"companyName": "Riverside FC"},
            headers=auth_headers(new_owner),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "EMAIL_NOT_VERIFIED"

    def test_completes_with_admin_invites(self, client, db_session, new_owner, auth_headers):
        headers = auth_headers(new_owner)
        assert _verify(client, db_session, new_owner, headers).status_code == 200

        resp = client.post(
            "/v1/onboarding/owner",
            json={
                "companyName": "Riverside FC",
                "companyUrl": "https://riverside.example.com",
                "phoneNumber": "555-0101",
                "adminInvites": [{"email": "Helper@example.com", "name": "Helper"}],
            },
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["onboarded"] is True

        db_session.expire_all()
        company = db_session.query(Company).filter(Company.owner_id == new_owner.id).one()
        assert company.name == "Riverside FC"
        assert company.website_url == "https://riverside.example.com"
        invited = db_session.query(User).filter(User.email == "helper@example.com").one()
        assert invited.role == "admin"
        assert invited.company_id == company.id
        assert invited.email_verified is True
        assert invited.onboarded is False

        status = client.get("/v1/onboarding/status", headers=headers).json()
        assert status["stage"] == "ONBOARDED"
        assert status["nextStep"] == "dashboard"

    def test_second_completion_is_rejected(self, client, db_session, new_owner, auth_headers):
        headers = auth_headers(new_owner)
        _verify(client, db_session, new_owner, headers)
        assert client.post("/v1/onboarding/owner", json={"companyName": "One"}, headers=headers).status_code == 200

        resp = client.post("/v1/onboarding/owner", json={"companyName": "Two"}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"] == "ALREADY_ONBOARDED"

    def test_invite_of_foreign_account_rolls_back(self, client, db_session, other_tenant, new_owner, auth_headers):
        headers = auth_headers(new_owner)
        _verify(client, db_session, new_owner, headers)

        resp = client.post(
            "/v1/onboarding/owner",
            json={
                "companyName": "Renamed FC",
                "adminInvites": [{"email": "b-coach@example.com", "name": "Poached"}],
            },
            headers=headers,
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "EMAIL_IN_USE"

        db_session.expire_all()
        owner = db_session.get(User, new_owner.id)
        assert owner.onboarded is False
        company = db_session.query(Company).filter(Company.owner_id == new_owner.id).one()
        assert company.name == "New Owner's Club"
        assert db_session.query(User).filter(User.email == "b-coach@example.com").one().company_id == other_tenant.company.id

    def test_wrong_role_endpoint(self, client, db_session, new_owner, auth_headers):
        headers = auth_headers(new_owner)
        _verify(client, db_session, new_owner, headers)
        resp = client.post("/v1/onboarding/staff", json={"newPassword": "Password456"}, headers=headers)
        assert resp.status_code == 400
        assert resp.json()["error"] == "WRONG_ROLE_ENDPOINT"


class TestStaffAndParentOnboarding:
    def test_staff_sets_password(self, client, db_session, tenant, factory, auth_headers):
        coach = factory.user("invited-coach@example.com", "coach", tenant.company.id, onboarded=False)
        db_session.commit()

        resp = client.post(
            "/v1/onboarding/staff",
            json={"newPassword": "MyOwnPassword1", "phoneNumber": "555-0199"},
            headers=auth_headers(coach),
        )
        assert resp.status_code == 200
        assert resp.json()["onboarded"] is True

        login = client.post(
            "/v1/auth/login",
            json={"email": "invited-coach@example.com", "password": "MyOwnPassword1"},
        )
        assert login.status_code == 200

    def test_parent_routing_and_profile_completion(self, client, db_session, tenant, factory, auth_headers):
        parent = factory.user("new-parent@example.com", "parent", tenant.company.id, onboarded=False)
        older = factory.player(tenant.team, parent, "Old", "Est", created_at=BASE_TIME)
        newer = factory.player(tenant.team, parent, "New", "Est", created_at=BASE_TIME + timedelta(hours=1))
        db_session.commit()
        headers = auth_headers(parent)

        assert client.get("/v1/onboarding/status", headers=headers).json()["nextStep"] == "onboarding/parent"

        resp = client.post(
            "/v1/onboarding/parent",
            json={"newPassword": "ParentPass1", "name": "Pat Est"},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "Pat Est"

        status = client.get("/v1/onboarding/status", headers=headers).json()
        assert status["stage"] == "ONBOARDED"
        assert status["nextStep"] == "player-profile"
        assert status["incompletePlayer"]["id"] == str(older.id)

        incomplete = client.get("/v1/onboarding/incomplete-player", headers=headers).json()
        assert incomplete["hasIncomplete"] is True
        assert incomplete["player"]["id"] == str(older.id)

        for player in (older, newer):
            resp = client.post(
                f"/v1/onboarding/players/{player.id}",
                json={"dob": "2015-02-03", "gender": "male", "dominantFoot": "left"},
                headers=headers,
            )
            assert resp.status_code == 200

        status = client.get("/v1/onboarding/status", headers=headers).json()
        assert status["nextStep"] == "dashboard"
        assert status["incompletePlayer"] is None
        assert client.get("/v1/onboarding/incomplete-player", headers=headers).json()["hasIncomplete"] is False

    def test_profile_completion_of_unsupervised_player(self, client, tenant, auth_headers):
        resp = client.post(
            f"/v1/onboarding/players/{tenant.unsupervised.id}",
            json={"dob": "2015-02-03", "gender": "male", "dominantFoot": "left"},
            headers=auth_headers(tenant.parent),
        )
        assert resp.status_code == 403


class TestPlayerOnboarding:
    @pytest.fixture
    def player_account(self, db_session, tenant, factory):
        account = factory.user("self@example.com", "player", tenant.company.id, onboarded=False)
        row = factory.player(tenant.team, account, "Solo", "Player", self_supervised=True)
        db_session.commit()
        return account, row

    def test_short_password_changes_nothing(self, client, db_session, player_account, auth_headers):
        account, row = player_account
        resp = client.post(
            "/v1/onboarding/player",
            json={
                "newPassword": "Short12",
                "dob": "2010-06-15",
                "gender": "female",
                "dominantFoot": "right",
            },
            headers=auth_headers(account),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "VALIDATION_ERROR"

        db_session.expire_all()
        assert db_session.get(User, account.id).onboarded is False
        stored = db_session.get(Player, row.id)
        assert stored.dob is None
        assert stored.gender is None
        assert stored.dominant_foot is None

    def test_valid_password_updates_both_rows(self, client, db_session, player_account, auth_headers):
        account, row = player_account
        resp = client.post(
            "/v1/onboarding/player",
            json={
                "newPassword": "Long1234",
                "dob": "2010-06-15",
                "gender": "female",
                "dominantFoot": "right",
                "playerId": str(row.id),
            },
            headers=auth_headers(account),
        )
        assert resp.status_code == 200

        db_session.expire_all()
        assert db_session.get(User, account.id).onboarded is True
        stored = db_session.get(Player, row.id)
        assert stored.dob.isoformat() == "2010-06-15"
        assert stored.gender == "female"
        assert stored.dominant_foot == "right"

    def test_missing_profile_field_is_rejected(self, client, player_account, auth_headers):
        account, _ = player_account
        resp = client.post(
            "/v1/onboarding/player",
            json={"newPassword": "Long1234", "gender": "female", "dominantFoot": "right"},
            headers=auth_headers(account),
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "VALIDATION_ERROR"

    def test_failed_write_rolls_back_user_and_player(self, client, db_session, player_account, auth_headers):
        account, row = player_account
        with patch.object(Session, "flush", side_effect=SQLAlchemyError("disk I/O error")):
            resp = client.post(
                "/v1/onboarding/player",
                json={
                    "newPassword": "Long1234",
                    "dob": "2010-06-15",
                    "gender": "female",
                    "dominantFoot": "right",
                },
                headers=auth_headers(account),
            )
        assert resp.status_code == 500
        assert resp.json()["error"] == "TRANSACTION_FAILED"

        db_session.expire_all()
        stored_user = db_session.get(User, account.id)
        assert stored_user.onboarded is False
        assert verify_password(TEST_PASSWORD, stored_user.password_hash)
        stored = db_session.get(Player, row.id)
        assert stored.dob is None
        assert stored.gender is None
