from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app import create_app
from config import TestingConfig
from models import db
from models.audit_log import AuditLog
from models.session import Session
from security.csrf import CSRF_HEADER
from security.password import needs_rehash

from conftest import PASSWORD


class CsrfConfig(TestingConfig):
    CSRF_ENABLED = True


def test_health(app):
    resp = app.test_client().get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "ok"


def test_security_headers(app):
    resp = app.test_client().get("/health")
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_register_login_me_logout(app):
    client = app.test_client()
    resp = client.post("/auth/register", json={
        "email": "New@Makerspace.test", "password": PASSWORD, "full_name": "New Maker",
    })
    assert resp.status_code == 201

    assert client.post("/auth/register", json={"email": "new@makerspace.test", "password": PASSWORD}).status_code == 409

    resp = client.post("/auth/login", json={"email": "new@makerspace.test", "password": PASSWORD})
    assert resp.status_code == 200

    me = client.get("/auth/me").get_json()
    assert me["email"] == "new@makerspace.test"
    assert me["roles"] == ["MEMBER"]
    assert me["certifications"] == []

    assert client.post("/auth/logout").status_code == 200
    assert client.get("/auth/me").status_code == 401


@pytest.mark.parametrize("payload", [
    {"email": "not-an-email", "password": PASSWORD},
    {"email": "short@makerspace.test", "password": "abc"},
])
def test_register_validation(app, payload):
    assert app.test_client().post("/auth/register", json=payload).status_code == 400


def test_bad_login_is_audited(app, member):
    resp = app.test_client().post("/auth/login", json={"email": member.email, "password": "wrong-password"})
    assert resp.status_code == 401
    assert AuditLog.query.filter_by(action="LOGIN_FAIL", user_id=member.id).count() == 1


def test_csrf_enforced_for_authenticated_writes():
    app = create_app(CsrfConfig)
    with app.app_context():
        client = app.test_client()
        client.post("/auth/register", json={"email": "csrf@makerspace.test", "password": PASSWORD})
        client.post("/auth/login", json={"email": "csrf@makerspace.test", "password": PASSWORD})

        resp = client.post("/auth/logout")
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "CSRF validation failed"

        token = client.get_cookie("csrf_token").value
        resp = client.post("/auth/logout", headers={CSRF_HEADER: token})
        assert resp.status_code == 200

        db.session.remove()
        db.drop_all()


def test_idle_session_is_rejected(login, member):
    client = login(member)
    assert client.get("/auth/me").status_code == 200

    sess = Session.query.filter_by(user_id=member.id, revoked=False).one()
    sess.last_seen_at = datetime.utcnow() - timedelta(minutes=31)
    db.session.commit()

    resp = client.get("/auth/me")
    assert resp.status_code == 401
    assert resp.get_json()["code"] == "UNAUTHORIZED"


def test_new_login_replaces_old_session(login, member):
    first = login(member)
    second = login(member)

    assert first.get("/auth/me").status_code == 401
    assert second.get("/auth/me").get_json()["email"] == member.email


def test_session_usability_window():
    now = datetime(2024, 6, 1, 12, 0)
    sess = Session(
        created_at=now - timedelta(hours=1),
        last_seen_at=now - timedelta(minutes=10),
        expires_at=now + timedelta(hours=1),
        revoked=False,
    )
    assert sess.is_usable(now, idle_seconds=30 * 60)
    assert not sess.is_usable(now, idle_seconds=5 * 60)
    assert not sess.is_usable(now + timedelta(hours=2), idle_seconds=10 ** 6)

    sess.revoked = True
    assert not sess.is_usable(now, idle_seconds=30 * 60)


def test_role_gate_reports_forbidden(login, member):
    resp = login(member).post("/machines", json={"name": "Lathe", "type": "Metal"})
    assert resp.status_code == 403
    assert resp.get_json()["code"] == "FORBIDDEN"
    assert resp.get_json()["required"] == ["ADMIN"]


def test_login_upgrades_bcrypt_cost(app, make_user):
    user = make_user("legacy@makerspace.test")
    app.config["BCRYPT_ROUNDS"] = 5
    assert needs_rehash(user.password_hash, 5)

    resp = app.test_client().post("/auth/login", json={"email": user.email, "password": PASSWORD})
    assert resp.status_code == 200

    db.session.refresh(user)
    assert user.password_hash.startswith("$2b$05$")
    assert not needs_rehash(user.password_hash, 5)


def test_health_hides_database_errors(app, monkeypatch, caplog):
    def broken_execute(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("unable to open database file /srv/secret.db"))

    monkeypatch.setattr(db.session, "execute", broken_execute)
    resp = app.test_client().get("/health")

    assert resp.status_code == 503
    assert resp.get_json() == {"status": "degraded", "database": "error"}
    assert b"secret.db" not in resp.data
    assert "database unreachable" in caplog.text
