"""Login, session validation and logout."""

from datetime import timedelta

import pytest

from shopstock.errors import ConflictError
from shopstock.extensions import db
from shopstock.models import SessionToken
from shopstock.services import auth_service, session_service
from shopstock.time_utils import utcnow


TEST_PASSWORD = "Password123"


def test_password_hashing():
    hashed = auth_service.hash_password("Secret123", rounds=4)
    assert hashed != "Secret123"
    assert auth_service.verify_password("Secret123", hashed)
    assert not auth_service.verify_password("secret123", hashed)
    assert not auth_service.verify_password("Secret123", "not-a-hash")


def test_login_with_username_or_email(client, db_session, admin_user):
    resp = client.post("/api/auth/login", json={"username": "admin", "password": TEST_PASSWORD})
    assert resp.status_code == 200
    body = resp.get_json()
    assert len(body["token"]) == 64
    assert body["user"]["role"] == "admin"
    assert "password_hash" not in body["user"]

    resp = client.post("/api/auth/login", json={"email": "admin@shop.test", "password": TEST_PASSWORD})
    assert resp.status_code == 200


def test_login_rejects_bad_password(client, db_session, admin_user):
    resp = client.post("/api/auth/login", json={"username": "admin", "password": "wrong-pass1"})
    assert resp.status_code == 401


def test_inactive_user_cannot_log_in(client, db_session, admin_user):
    admin_user.is_active = False
    db_session.commit()
    resp = client.post("/api/auth/login", json={"username": "admin", "password": TEST_PASSWORD})
    assert resp.status_code == 401


def test_me_and_logout(client, db_session, admin_user):
    token = client.post(
        "/api/auth/login", json={"username": "admin", "password": TEST_PASSWORD}
    ).get_json()["token"]
    headers = {"Authorization": f"Bearer {token}"}

    resp = client.get("/api/auth/me", headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["user"]["username"] == "admin"

    assert client.post("/api/auth/logout", headers=headers).status_code == 200
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_idle_session_is_revoked(db_session, admin_user):
    session, token = session_service.create_session(admin_user.id)
    session.last_used_at = utcnow() - timedelta(hours=3)
    db.session.commit()

    assert session_service.validate_session(token) is None
    db.session.expire_all()
    assert db.session.get(SessionToken, session.id).is_revoked is True


def test_expired_session_rejected(db_session, admin_user):
    session, token = session_service.create_session(admin_user.id)
    session.expires_at = utcnow() - timedelta(minutes=1)
    db.session.commit()

    assert session_service.validate_session(token) is None


def test_create_user_rejects_duplicates(db_session, admin_user):
    with pytest.raises(ConflictError):
        auth_service.create_user("admin", "other@shop.test", "Password123", rounds=4)
