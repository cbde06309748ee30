from flask import Blueprint, request, jsonify, g

from models import db
from models.machine import Machine
from models.user import User
from security.certification import (
    clear_certifications,
    grant_certification,
    has_certification,
    revoke_certification,
)
from security.rbac import ADMIN_ROLE, is_admin, require_roles
from utils.audit import log_event
from utils.auth_context import login_required

certification_bp = Blueprint("certification", __name__, url_prefix="/certifications")


def _int_or_none(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# ---------- ADMIN: grant ----------
@certification_bp.post("")
@require_roles(ADMIN_ROLE)
def add_certification():
    data = request.get_json(silent=True) or {}
    user_id = _int_or_none(data.get("user_id", data.get("userId")))
    machine_id = _int_or_none(data.get("machine_id", data.get("machineId")))
    if user_id is None or machine_id is None:
        return jsonify(error="user_id and machine_id are required"), 400

    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404
    machine = db.session.get(Machine, machine_id)
    if not machine or not machine.is_active:
        return jsonify(error="Machine not found"), 404

    added = grant_certification(user, machine)
    if not added:
        return jsonify(success=True, message="User already has this certification"), 200

    log_event("CERTIFICATION_GRANT", user_id=g.user.id, entity="user", entity_id=user.id,
              metadata={"machine_id": machine.id})
    return jsonify(success=True, message="Certification added"), 201


# ---------- ADMIN: revoke ----------
@certification_bp.delete("/<int:user_id>/<int:machine_id>")
@require_roles(ADMIN_ROLE)
def remove_certification(user_id: int, machine_id: int):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404

    removed = revoke_certification(user, machine_id)
    if not removed:
        return jsonify(success=True, message="User does not have this certification"), 200

    log_event("CERTIFICATION_REVOKE", user_id=g.user.id, entity="user", entity_id=user.id,
              metadata={"machine_id": machine_id})
    return jsonify(success=True, message="Certification removed"), 200


@certification_bp.get("/user/<int:user_id>")
@login_required
def user_certifications(user_id: int):
    if user_id != g.user.id and not is_admin(g.user):
        return jsonify(error="Forbidden"), 403

    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404
    return jsonify(sorted(user.certification_ids)), 200


@certification_bp.delete("/user/<int:user_id>")
@require_roles(ADMIN_ROLE)
def clear_user_certifications(user_id: int):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404

    count = clear_certifications(user)
    log_event("CERTIFICATION_CLEAR", user_id=g.user.id, entity="user", entity_id=user.id,
              metadata={"cleared": count})
    return jsonify(success=True, cleared=count), 200


# ---------- MEMBERS: am I cleared for this machine? ----------
@certification_bp.get("/check")
@login_required
def check_certification():
    machine_id = _int_or_none(request.args.get("machine_id") or request.args.get("machineId"))
    if machine_id is None:
        return jsonify(error="machine_id is required"), 400
    return jsonify(certified=has_certification(g.user, machine_id)), 200
