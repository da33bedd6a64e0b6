"""
Session resolution tests.

Verifies:
- Missing / malformed Authorization headers are MissingToken (401)
- The user row is re-read on every call: deletion -> 401, deactivation -> 403
- Role and name come from the database, not from the token
"""

from datetime import timedelta

import pytest

from manuerp.errors import (
    MissingTokenError,
    InvalidTokenError,
    TokenExpiredError,
    UserNotFoundError,
    AccountDeactivatedError,
)
from manuerp.services import session_service, token_service
from manuerp.time_utils import as_aware_utc, utcnow


def _bearer(user, **kwargs):
    token = token_service.issue_token(subject_id=user.id, email=user.email, role=user.role, **kwargs)
    return f"Bearer {token}"


class TestExtractBearerToken:

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer   ", "Basic abc123", "Token abc"])
    def test_missing_token(self, header):
        with pytest.raises(MissingTokenError) as exc:
            session_service.extract_bearer_token(header)
        assert exc.value.status_code == 401

    def test_scheme_is_case_insensitive(self):
        assert session_service.extract_bearer_token("bearer abc.def.ghi") == "abc.def.ghi"


class TestResolvePrincipal:

    def test_active_user_resolves(self, db_session, operator_user):
        principal = session_service.resolve_principal(_bearer(operator_user))

        assert principal.to_dict() == {
            "id": operator_user.id,
            "email": "operator@erp.test",
            "role": "operator",
            "name": "Operator User",
        }

    def test_expired_token(self, db_session, operator_user):
        now = as_aware_utc(utcnow())
        header = _bearer(operator_user, ttl=timedelta(minutes=10), now=now)

        with pytest.raises(TokenExpiredError):
            session_service.resolve_principal(header, now=now + timedelta(minutes=10))

    def test_invalid_token(self, db_session):
        with pytest.raises(InvalidTokenError):
            session_service.resolve_principal("Bearer not.a.token")

    def test_deleted_user_with_unexpired_token(self, db_session, operator_user):
        header = _bearer(operator_user)
        db_session.delete(operator_user)
        db_session.commit()

        with pytest.raises(UserNotFoundError) as exc:
            session_service.resolve_principal(header)
        assert exc.value.status_code == 401

    def test_deactivated_user_with_unexpired_token(self, db_session, operator_user):
        header = _bearer(operator_user)
        assert session_service.resolve_principal(header).id == operator_user.id

        operator_user.is_active = False
        db_session.commit()

        with pytest.raises(AccountDeactivatedError) as exc:
            session_service.resolve_principal(header)
        assert exc.value.status_code == 403

    def test_role_change_applies_without_new_token(self, db_session, operator_user):
        header = _bearer(operator_user)

        operator_user.role = "manager"
        db_session.commit()

        assert session_service.resolve_principal(header).role == "manager"

    def test_reactivation_restores_access(self, db_session, make_user):
        user = make_user("inventory", is_active=False)
        header = _bearer(user)

        with pytest.raises(AccountDeactivatedError):
            session_service.resolve_principal(header)

        user.is_active = True
        db_session.commit()

        assert session_service.resolve_principal(header).role == "inventory"
