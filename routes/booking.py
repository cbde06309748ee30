from flask import Blueprint, request, jsonify, g

from security.rbac import ADMIN_ROLE, require_roles
from services import booking_queries, bookings
from utils.auth_context import login_required
from utils.serializers import booking_to_dict

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


def _field(data: dict, *names):
    # clients send either snake_case or camelCase keys
    for name in names:
        value = data.get(name)
        if value is not None:
            return value
    return None


# ---------- MEMBERS: request a booking ----------
@booking_bp.post("")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    booking = bookings.create_booking(
        g.user,
        _field(data, "machine_id", "machineId"),
        data.get("date"),
        data.get("time"),
    )
    return jsonify(booking_to_dict(booking)), 201


# ---------- MEMBERS: view my bookings ----------
@booking_bp.get("")
@login_required
def my_bookings():
    status = request.args.get("status")
    rows = booking_queries.list_bookings_for_user(g.user.id, status=status)
    return jsonify([booking_to_dict(b) for b in rows]), 200


# ---------- ADMIN: list all bookings ----------
@booking_bp.get("/all")
@require_roles(ADMIN_ROLE)
def list_all_bookings():
    rows = booking_queries.list_all_bookings(
        g.user,
        status=request.args.get("status"),
        machine_id=request.args.get("machine_id", type=int),
        day=request.args.get("date"),
    )
    return jsonify(rows), 200


@booking_bp.get("/<int:booking_id>")
@login_required
def get_booking(booking_id: int):
    booking = booking_queries.get_booking(g.user, booking_id)
    return jsonify(booking_to_dict(booking)), 200


# ---------- ADMIN (or owner cancelling): status transitions ----------
@booking_bp.put("/<int:booking_id>/status")
@login_required
def update_booking_status(booking_id: int):
    data = request.get_json(silent=True) or {}
    booking = bookings.set_booking_status(g.user, booking_id, data.get("status"))
    return jsonify(success=True, booking=booking_to_dict(booking)), 200


@booking_bp.put("/<int:booking_id>/cancel")
@login_required
def cancel_booking(booking_id: int):
    booking = bookings.cancel_booking(g.user, booking_id)
    return jsonify(success=True, booking=booking_to_dict(booking)), 200


@booking_bp.delete("/<int:booking_id>")
@login_required
def delete_booking(booking_id: int):
    bookings.delete_booking(g.user, booking_id)
    return jsonify(success=True), 200
