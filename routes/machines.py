from datetime import datetime

from flask import Blueprint, request, jsonify, g

from models import db
from models.machine import Machine, MachineStatus
from security.rbac import ADMIN_ROLE, require_roles
from services import booking_queries
from utils.audit import log_event
from utils.auth_context import login_required
from utils.serializers import booking_to_dict, machine_to_dict

machine_bp = Blueprint("machine", __name__, url_prefix="/machines")

DIFFICULTIES = ("Beginner", "Intermediate", "Advanced")
EDITABLE_TEXT_FIELDS = {
    "name": 120,
    "type": 80,
    "description": None,
}


def _get_active_or_none(machine_id: int):
    machine = db.session.get(Machine, machine_id)
    if not machine or not machine.is_active:
        return None
    return machine


def _canonical_status(value):
    if not isinstance(value, str):
        return None
    wanted = value.strip().lower()
    for status in MachineStatus:
        if status.value.lower() == wanted:
            return status.value
    return None


def _apply_fields(machine: Machine, data: dict):
    """Copy editable fields from a request body; returns an error message or None."""
    for field, max_len in EDITABLE_TEXT_FIELDS.items():
        if field not in data:
            continue
        raw = data.get(field)
        if raw is not None and not isinstance(raw, str):
            return f"{field} must be a string"
        value = (raw or "").strip()
        if field != "description" and not value:
            return f"{field} cannot be empty"
        if max_len and len(value) > max_len:
            return f"{field} must be at most {max_len} characters"
        setattr(machine, field, value or None)

    if "difficulty" in data:
        difficulty = data.get("difficulty")
        if difficulty is not None and difficulty not in DIFFICULTIES:
            return f"difficulty must be one of {', '.join(DIFFICULTIES)}"
        machine.difficulty = difficulty

    requires = data.get("requires_certification", data.get("requiresCertification"))
    if requires is not None:
        if not isinstance(requires, bool):
            return "requires_certification must be a boolean"
        machine.requires_certification = requires
    return None


@machine_bp.get("")
def list_machines():
    q = Machine.query.filter(Machine.is_active.is_(True))
    machine_type = (request.args.get("type") or "").strip()
    if machine_type:
        q = q.filter(Machine.type == machine_type)
    rows = q.order_by(Machine.name.asc()).all()
    return jsonify([machine_to_dict(m) for m in rows]), 200


@machine_bp.get("/<int:machine_id>")
def get_machine(machine_id: int):
    machine = _get_active_or_none(machine_id)
    if not machine:
        return jsonify(error="Machine not found"), 404
    return jsonify(machine_to_dict(machine, include_slots=True)), 200


@machine_bp.get("/<int:machine_id>/status")
def get_machine_status(machine_id: int):
    machine = _get_active_or_none(machine_id)
    if not machine:
        return jsonify(error="Machine not found"), 404
    return jsonify(status=machine.status, note=machine.maintenance_note or ""), 200


# ---------- ADMIN: manage the catalog ----------
@machine_bp.post("")
@require_roles(ADMIN_ROLE)
def create_machine():
    data = request.get_json(silent=True) or {}
    if not (data.get("name") or "").strip() or not (data.get("type") or "").strip():
        return jsonify(error="name and type are required"), 400

    machine = Machine(status=MachineStatus.AVAILABLE.value)
    error = _apply_fields(machine, data)
    if error:
        return jsonify(error=error), 400

    db.session.add(machine)
    db.session.commit()

    log_event("MACHINE_CREATE", user_id=g.user.id, entity="machine", entity_id=machine.id)
    return jsonify(machine_to_dict(machine)), 201


@machine_bp.put("/<int:machine_id>")
@require_roles(ADMIN_ROLE)
def update_machine(machine_id: int):
    data = request.get_json(silent=True) or {}
    machine = _get_active_or_none(machine_id)
    if not machine:
        return jsonify(error="Machine not found"), 404

    error = _apply_fields(machine, data)
    if error:
        db.session.rollback()
        return jsonify(error=error), 400

    db.session.commit()
    log_event("MACHINE_UPDATE", user_id=g.user.id, entity="machine", entity_id=machine.id,
              metadata={"fields": sorted(k for k in data if k != "held_slots")})
    return jsonify(machine_to_dict(machine)), 200


@machine_bp.put("/<int:machine_id>/status")
@require_roles(ADMIN_ROLE)
def update_machine_status(machine_id: int):
    data = request.get_json(silent=True) or {}
    status = _canonical_status(data.get("status"))
    if not status:
        return jsonify(error="status must be one of " + ", ".join(MachineStatus.values())), 400

    machine = _get_active_or_none(machine_id)
    if not machine:
        return jsonify(error="Machine not found"), 404

    machine.status = status
    if "maintenance_note" in data or "maintenanceNote" in data:
        note = data.get("maintenance_note", data.get("maintenanceNote"))
        machine.maintenance_note = (note or "").strip()[:255] or None
    db.session.commit()

    log_event("MACHINE_STATUS_UPDATE", user_id=g.user.id, entity="machine", entity_id=machine.id,
              metadata={"status": status})
    return jsonify(machine_to_dict(machine)), 200


@machine_bp.delete("/<int:machine_id>")
@require_roles(ADMIN_ROLE)
def delete_machine(machine_id: int):
    machine = _get_active_or_none(machine_id)
    if not machine:
        return jsonify(error="Machine not found"), 404

    machine.is_active = False
    machine.deleted_at = datetime.utcnow()
    db.session.commit()

    log_event("MACHINE_DELETE", user_id=g.user.id, entity="machine", entity_id=machine_id)
    return jsonify(message="Machine deleted"), 200


# ---------- availability ----------
@machine_bp.get("/<int:machine_id>/slots")
@login_required
def machine_slots(machine_id: int):
    day = request.args.get("date")
    if not day:
        return jsonify(error="date is required (YYYY-MM-DD)"), 400
    return jsonify(booking_queries.machine_slot_overview(machine_id, day)), 200


@machine_bp.get("/<int:machine_id>/bookings")
@require_roles(ADMIN_ROLE)
def machine_bookings(machine_id: int):
    rows = booking_queries.list_bookings_for_machine(
        machine_id,
        day=request.args.get("date"),
        status=request.args.get("status"),
    )
    return jsonify([booking_to_dict(b) for b in rows]), 200
