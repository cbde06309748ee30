"""
Server-side login sessions for members and staff.

The browser holds a random token in an HttpOnly cookie; the database keeps
its SHA-256 digest, an absolute expiry and the last time it was used.
"""
import hashlib
import secrets
from datetime import datetime, timedelta
from flask import request, current_app

from models import db
from models.session import Session


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def session_cookie_name() -> str:
    return current_app.config.get("AUTH_COOKIE_NAME", "makerspace_session")


def open_session(user) -> str:
    """Persist a new session for ``user`` and return the raw cookie token."""
    token = secrets.token_urlsafe(32)
    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60)
    db.session.add(Session(
        user_id=user.id,
        token_hash=_digest(token),
        expires_at=datetime.utcnow() + timedelta(seconds=lifetime),
        ip=request.headers.get("X-Forwarded-For", request.remote_addr),
        user_agent=(request.headers.get("User-Agent") or "")[:255] or None,
    ))
    db.session.commit()
    return token


def resolve_session():
    """Return the live Session behind the request cookie, or None."""
    token = request.cookies.get(session_cookie_name())
    if not token:
        return None

    sess = Session.query.filter_by(token_hash=_digest(token)).first()
    now = datetime.utcnow()
    idle = current_app.config.get("IDLE_TIMEOUT_SECONDS", 30 * 60)
    if sess is None or not sess.is_usable(now, idle):
        return None

    sess.touch(now)
    db.session.commit()
    return sess


def close_session(sess) -> None:
    if sess is None:
        return
    sess.revoked = True
    db.session.commit()


def close_user_sessions(user_id: int) -> int:
    """Revoke every open session of a user; used when they log in again."""
    count = (
        Session.query
        .filter_by(user_id=user_id, revoked=False)
        .update({Session.revoked: True}, synchronize_session=False)
    )
    db.session.commit()
    return count


def attach_session_cookie(resp, token: str):
    resp.set_cookie(
        session_cookie_name(),
        token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60),
        path="/",
    )
    return resp


def drop_session_cookie(resp):
    resp.delete_cookie(session_cookie_name(), path="/")
    return resp
