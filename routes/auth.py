from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User, Role
from security.csrf import issue_csrf_token
from security.password import hash_password, needs_rehash, verify_password
from security.rbac import MEMBER_ROLE
from security.session import (
    attach_session_cookie,
    close_session,
    close_user_sessions,
    drop_session_cookie,
    open_session,
)
from services.errors import Unauthorized, ValidationError
from utils.audit import log_event
from utils.auth_context import login_required
from utils.serializers import user_to_dict


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

FULL_NAME_MAX_LENGTH = 120


def _credentials(data):
    email = data.get("email")
    password = data.get("password")
    email = email.strip().lower() if isinstance(email, str) else ""
    password = password if isinstance(password, str) else ""
    return email, password


def _check_registration(email, password, full_name):
    if "@" not in email or len(email) > 255:
        raise ValidationError("Invalid email")
    min_length = current_app.config.get("PASSWORD_MIN_LENGTH", 8)
    if len(password) < min_length:
        raise ValidationError(f"Password must be at least {min_length} characters")
    if full_name and len(full_name) > FULL_NAME_MAX_LENGTH:
        raise ValidationError("Invalid full_name")


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email, password = _credentials(data)
    full_name = data.get("full_name") or data.get("fullName") or data.get("name")
    full_name = full_name.strip() if isinstance(full_name, str) and full_name.strip() else None
    _check_registration(email, password, full_name)

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return jsonify(error="Email already registered"), 409

    user = User(
        email=email,
        password_hash=hash_password(password, rounds=current_app.config.get("BCRYPT_ROUNDS", 12)),
        full_name=full_name,
    )
    member_role = Role.query.filter_by(name=MEMBER_ROLE).first()
    if member_role:
        user.roles.append(member_role)
    db.session.add(user)
    db.session.commit()

    log_event("REGISTER_SUCCESS", user_id=user.id, entity="user", entity_id=user.id)
    return jsonify(user_to_dict(user)), 201


@auth_bp.post("/login")
def login():
    email, password = _credentials(request.get_json(silent=True) or {})

    user = User.query.filter_by(email=email).first() if email else None
    if user is None or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        raise Unauthorized("Invalid credentials")

    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    if needs_rehash(user.password_hash, rounds):
        user.password_hash = hash_password(password, rounds=rounds)
        db.session.commit()

    # one live session per user
    replaced = close_user_sessions(user.id)
    token = open_session(user)

    resp = jsonify(message="Login OK", user=user_to_dict(user))
    attach_session_cookie(resp, token)
    issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id, metadata={"replaced_sessions": replaced})
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    body = user_to_dict(g.user)
    body["session_expires_at"] = g.session.expires_at.isoformat()
    return jsonify(body), 200


@auth_bp.post("/logout")
@login_required
def logout():
    close_session(g.session)
    log_event("LOGOUT", user_id=g.user.id)
    return drop_session_cookie(jsonify(message="Logged out")), 200
