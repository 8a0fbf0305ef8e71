"""
Authentication tests.

Verifies:
- Self-registration for business, stockist and vansales accounts only
- Password strength rules and duplicate usernames
- Login by username or email, failed logins written to the security log
- Logout revokes the token; idle sessions are rejected
"""

from datetime import timedelta

from delivereth.models import SecurityEvent, SessionToken
from delivereth.services import session_service
from delivereth.services.auth_service import (
    PasswordValidationError,
    get_user_by_username,
    validate_password_strength,
    verify_password,
)

from conftest import PASSWORD, auth_headers, get_auth_token


def _registration(**overrides):
    body = {
        "username": "merkato_shop",
        "password": PASSWORD,
        "email": "shop@merkato.et",
        "name": "Abebe Kebede",
        "phone": "+251922000000",
        "user_type": "business",
        "business_name": "Merkato Shop",
        "tin": "0055555555",
    }
    body.update(overrides)
    return body


class TestRegistration:

    def test_register_business_returns_token(self, client, db_session):
        resp = client.post("/api/auth/register", json=_registration())
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["user"]["user_type"] == "business"
        assert data["user"]["business_name"] == "Merkato Shop"
        assert "password_hash" not in data["user"]

        me = client.get("/api/auth/me", headers=auth_headers(data["token"]))
        assert me.status_code == 200
        assert me.get_json()["user"]["username"] == "merkato_shop"

    def test_password_is_hashed(self, client, db_session):
        client.post("/api/auth/register", json=_registration(user_type="stockist"))
        user = get_user_by_username("merkato_shop")
        assert user.password_hash != PASSWORD
        assert verify_password(PASSWORD, user.password_hash)

    def test_admin_cannot_self_register(self, client, db_session):
        resp = client.post("/api/auth/register", json=_registration(user_type="admin"))
        assert resp.status_code == 400

    def test_unknown_user_type_rejected(self, client, db_session):
        resp = client.post("/api/auth/register", json=_registration(user_type="driver"))
        assert resp.status_code == 400

    def test_duplicate_username_conflict(self, client, db_session):
        assert client.post("/api/auth/register", json=_registration()).status_code == 201
        resp = client.post("/api/auth/register", json=_registration(email="other@merkato.et"))
        assert resp.status_code == 409

    def test_weak_password_rejected(self, client, db_session):
        resp = client.post("/api/auth/register", json=_registration(password="short"))
        assert resp.status_code == 400
        assert "8 characters" in resp.get_json()["error"]

    def test_missing_fields_rejected(self, client, db_session):
        body = _registration()
        del body["phone"]
        resp = client.post("/api/auth/register", json=body)
        assert resp.status_code == 400
        assert "phone" in resp.get_json()["error"]

    def test_non_writable_field_rejected(self, client, db_session):
        resp = client.post("/api/auth/register", json=_registration(is_active=False))
        assert resp.status_code == 400
        assert "is_active" in resp.get_json()["error"]

    def test_vat_flag_must_be_boolean(self, client, db_session):
        resp = client.post("/api/auth/register", json=_registration(is_vat_registered="yes"))
        assert resp.status_code == 400


class TestPasswordRules:

    def test_strong_password_passes(self):
        validate_password_strength(PASSWORD)

    def test_each_rule_enforced(self):
        for weak in ("Pass1!", "password123!", "PASSWORD123!", "Password!!!", "Password123"):
            try:
                validate_password_strength(weak)
            except PasswordValidationError:
                continue
            raise AssertionError(f"{weak!r} should have been rejected")


class TestLogin:

    def test_login_with_username(self, client, business_user):
        resp = client.post("/api/auth/login", json={"username": "bole_cafe", "password": PASSWORD})
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["token"]
        assert data["expires_at"].endswith("Z")

    def test_login_with_email(self, client, business_user):
        resp = client.post("/api/auth/login", json={"email": business_user.email, "password": PASSWORD})
        assert resp.status_code == 200

    def test_bad_password_logged(self, client, db_session, business_user):
        resp = client.post("/api/auth/login", json={"username": "bole_cafe", "password": "Wrong123!"})
        assert resp.status_code == 401

        events = db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").all()
        assert len(events) == 1
        assert events[0].success is False

    def test_missing_credentials(self, client, db_session):
        resp = client.post("/api/auth/login", json={"username": "bole_cafe"})
        assert resp.status_code == 400

    def test_inactive_user_cannot_login(self, client, db_session, business_user):
        business_user.is_active = False
        db_session.commit()
        resp = client.post("/api/auth/login", json={"username": "bole_cafe", "password": PASSWORD})
        assert resp.status_code == 401


class TestSessions:

    def test_logout_revokes_token(self, client, business_user):
        headers = auth_headers(get_auth_token(client, "bole_cafe"))
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_garbage_token_rejected(self, client, db_session):
        resp = client.get("/api/auth/me", headers=auth_headers("not-a-token"))
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid or expired token"

    def test_missing_bearer_prefix(self, client, business_user):
        token = get_auth_token(client, "bole_cafe")
        resp = client.get("/api/auth/me", headers={"Authorization": token})
        assert resp.status_code == 401

    def test_idle_session_rejected(self, db_session, business_user):
        session, token = session_service.create_session(business_user.id)
        session.last_used_at = session.last_used_at - session_service.SESSION_IDLE_TIMEOUT - timedelta(minutes=1)
        db_session.commit()

        assert session_service.validate_session(token) is None
        db_session.expire_all()
        assert db_session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_expired_session_rejected(self, db_session, business_user):
        session, token = session_service.create_session(business_user.id)
        session.expires_at = session.created_at - timedelta(seconds=1)
        db_session.commit()

        assert session_service.validate_session(token) is None

    def test_token_stored_hashed(self, db_session, business_user):
        session, token = session_service.create_session(business_user.id)
        assert session.token_hash != token
        assert session.token_hash == session_service.hash_token(token)
