"""
Authentication API tests.

Covers signup -> verify -> login, password reset, profile management and
the login failure matrix (400 for bad credentials, 403 for account state).
"""

import pytest

from manuerp.extensions import db
from manuerp.models import User
from manuerp.services import auth_service, token_service

from conftest import TEST_PASSWORD, auth_headers, get_auth_token


SIGNUP_BODY = {
    "name": "Jane Fitter",
    "email": "Jane.Fitter@erp.test",
    "password": "Assembly#2026",
    "confirmPassword": "Assembly#2026",
}


class TestSignupAndVerify:

    def test_signup_creates_unverified_account(self, client, db_session):
        resp = client.post("/api/auth/signup", json=SIGNUP_BODY)

        assert resp.status_code == 201
        user = resp.get_json()["user"]
        assert user["email"] == "jane.fitter@erp.test"
        assert user["role"] == "operator"
        assert user["avatar"] == "JF"
        assert user["isVerified"] is False
        assert "password_hash" not in user

    def test_cannot_login_before_verification(self, client, db_session):
        client.post("/api/auth/signup", json=SIGNUP_BODY)

        resp = client.post("/api/auth/login", json={"email": SIGNUP_BODY["email"], "password": SIGNUP_BODY["password"]})

        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Please verify your email first."

    def test_verify_then_login(self, client, db_session):
        client.post("/api/auth/signup", json=SIGNUP_BODY)
        user = auth_service.find_user_by_email(SIGNUP_BODY["email"])
        token = token_service.issue_token(subject_id=user.id, purpose=token_service.EMAIL_VERIFICATION)

        resp = client.get(f"/api/auth/verify/{token}")
        assert resp.status_code == 200
        assert resp.get_json()["message"] == "Email verified. You can now log in."

        again = client.get(f"/api/auth/verify/{token}")
        assert again.get_json()["message"] == "Email already verified."

        assert get_auth_token(client, SIGNUP_BODY["email"], SIGNUP_BODY["password"])

    def test_session_token_cannot_verify_email(self, client, operator_user):
        token = token_service.issue_session_token(operator_user)
        resp = client.get(f"/api/auth/verify/{token}")
        assert resp.status_code == 401

    def test_signup_cannot_choose_admin(self, client, db_session):
        resp = client.post("/api/auth/signup", json={**SIGNUP_BODY, "role": "admin"})

        assert resp.status_code == 400
        assert db.session.query(User).count() == 0

    @pytest.mark.parametrize("field,value", [
        ("name", 5),
        ("email", 12345),
        ("password", 12345678),
        ("confirmPassword", ["Assembly#2026"]),
        ("role", {"name": "operator"}),
    ])
    def test_signup_non_string_field(self, client, db_session, field, value):
        resp = client.post("/api/auth/signup", json={**SIGNUP_BODY, field: value})

        assert resp.status_code == 400
        assert resp.get_json()["message"] == f"{field} must be a string."
        assert db.session.query(User).count() == 0

    def test_signup_password_mismatch(self, client, db_session):
        resp = client.post("/api/auth/signup", json={**SIGNUP_BODY, "confirmPassword": "Different#2026"})

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Passwords do not match."

    def test_signup_short_password(self, client, db_session):
        resp = client.post("/api/auth/signup", json={**SIGNUP_BODY, "password": "short", "confirmPassword": "short"})
        assert resp.status_code == 400

    def test_signup_duplicate_email(self, client, db_session):
        client.post("/api/auth/signup", json=SIGNUP_BODY)
        resp = client.post("/api/auth/signup", json=SIGNUP_BODY)

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Email already registered."


class TestLogin:

    def test_success(self, client, manager_user):
        resp = client.post("/api/auth/login", json={"email": "MANAGER@erp.test", "password": TEST_PASSWORD})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["id"] == manager_user.id
        assert body["user"]["lastLogin"] is not None

        claims = token_service.verify_token(body["token"])
        assert claims.subject_id == manager_user.id
        assert claims.role == "manager"

        profile = client.get("/api/auth/profile", headers=auth_headers(body["token"]))
        assert profile.status_code == 200
        assert profile.get_json()["user"]["email"] == "manager@erp.test"

    @pytest.mark.parametrize("email,password", [
        ("nobody@erp.test", TEST_PASSWORD),
        ("manager@erp.test", "WrongPassword1"),
    ])
    def test_invalid_credentials(self, client, manager_user, email, password):
        resp = client.post("/api/auth/login", json={"email": email, "password": password})

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Invalid credentials."

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "x@erp.test"})
        assert resp.status_code == 400

    @pytest.mark.parametrize("body", [
        {"email": 123, "password": TEST_PASSWORD},
        {"email": "manager@erp.test", "password": 12345678},
        {"email": ["manager@erp.test"], "password": TEST_PASSWORD},
    ])
    def test_non_string_credentials(self, client, manager_user, body):
        resp = client.post("/api/auth/login", json=body)

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "ValidationError"

    def test_role_mismatch(self, client, manager_user):
        resp = client.post(
            "/api/auth/login",
            json={"email": "manager@erp.test", "password": TEST_PASSWORD, "role": "admin"},
        )

        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Access denied. Expected role: manager"

    def test_matching_role(self, client, manager_user):
        resp = client.post(
            "/api/auth/login",
            json={"email": "manager@erp.test", "password": TEST_PASSWORD, "role": "manager"},
        )
        assert resp.status_code == 200

    def test_deactivated(self, client, make_user):
        make_user("operator", is_active=False)

        resp = client.post("/api/auth/login", json={"email": "operator@erp.test", "password": TEST_PASSWORD})

        assert resp.status_code == 403
        assert resp.get_json()["error"] == "AccountDeactivated"


class TestPasswordReset:

    def test_forgot_and_reset(self, client, operator_user):
        resp = client.post("/api/auth/forgot", json={"email": "operator@erp.test"})
        assert resp.status_code == 200

        token = token_service.issue_token(subject_id=operator_user.id, purpose=token_service.PASSWORD_RESET)
        resp = client.post(
            f"/api/auth/reset/{token}",
            json={"password": "NewSecret#77", "confirmPassword": "NewSecret#77"},
        )

        assert resp.status_code == 200
        assert get_auth_token(client, "operator@erp.test", TEST_PASSWORD) is None
        assert get_auth_token(client, "operator@erp.test", "NewSecret#77")

    def test_forgot_non_string_email(self, client, db_session):
        resp = client.post("/api/auth/forgot", json={"email": 42})
        assert resp.status_code == 400

    def test_forgot_unknown_email(self, client, db_session):
        resp = client.post("/api/auth/forgot", json={"email": "ghost@erp.test"})
        assert resp.status_code == 400

    def test_reset_with_session_token_rejected(self, client, operator_user):
        token = token_service.issue_session_token(operator_user)
        resp = client.post(
            f"/api/auth/reset/{token}",
            json={"password": "NewSecret#77", "confirmPassword": "NewSecret#77"},
        )
        assert resp.status_code == 401


class TestProfile:

    def test_update_profile(self, client, operator_user, operator_headers):
        resp = client.put(
            "/api/auth/profile",
            json={"name": "Olga Operator", "department": "Assembly", "employeeId": "E-204"},
            headers=operator_headers,
        )

        assert resp.status_code == 200
        user = resp.get_json()["user"]
        assert user["name"] == "Olga Operator"
        assert user["avatar"] == "OO"
        assert user["department"] == "Assembly"
        assert user["employeeId"] == "E-204"

    @pytest.mark.parametrize("body", [{"name": 42}, {"department": ["Assembly"]}, {"employeeId": 204}])
    def test_update_profile_non_string(self, client, operator_user, operator_headers, body):
        resp = client.put("/api/auth/profile", json=body, headers=operator_headers)

        assert resp.status_code == 400
        db.session.expire_all()
        assert db.session.get(User, operator_user.id).name == "Operator User"

    def test_change_password_non_string(self, client, operator_user, operator_headers):
        resp = client.put(
            "/api/auth/change-password",
            json={"currentPassword": TEST_PASSWORD, "newPassword": 12345678, "confirmPassword": 12345678},
            headers=operator_headers,
        )

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "newPassword must be a string."

    def test_change_password(self, client, operator_user, operator_headers):
        resp = client.put(
            "/api/auth/change-password",
            json={"currentPassword": TEST_PASSWORD, "newPassword": "Changed#2026", "confirmPassword": "Changed#2026"},
            headers=operator_headers,
        )

        assert resp.status_code == 200
        assert get_auth_token(client, "operator@erp.test", "Changed#2026")

    def test_change_password_wrong_current(self, client, operator_user, operator_headers):
        resp = client.put(
            "/api/auth/change-password",
            json={"currentPassword": "nope-nope", "newPassword": "Changed#2026", "confirmPassword": "Changed#2026"},
            headers=operator_headers,
        )

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Current password is incorrect."
