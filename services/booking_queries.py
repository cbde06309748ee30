"""Read paths over bookings. Nothing here writes to the store."""
from flask import current_app

from models import db
from models.booking import Booking, BookingStatus
from models.machine import Machine
from models.user import User
from security.rbac import is_admin
from services.bookings import parse_booking_status
from services.errors import Forbidden, NotFound, Unauthorized
from services.slots import normalize_booking_date
from utils.serializers import booking_to_dict

UNKNOWN = "Unknown"


def _limit():
    return current_app.config.get("BOOKINGS_LIST_LIMIT", 500)


def list_bookings_for_user(user_id: int, status=None):
    q = Booking.query.filter_by(user_id=user_id)
    if status:
        q = q.filter(Booking.status == parse_booking_status(status).value)
    return q.order_by(Booking.date.desc(), Booking.created_at.desc()).limit(_limit()).all()


def get_booking(principal, booking_id: int) -> Booking:
    if principal is None:
        raise Unauthorized("Authentication required")
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    if booking.user_id != principal.id and not is_admin(principal):
        raise Forbidden("Not authorized to access this booking")
    return booking


def enrich_bookings(rows):
    """
    Attach display names to bookings. The names captured at creation win;
    a live lookup only fills the gaps.
    """
    machine_ids = {b.machine_id for b in rows}
    user_ids = {b.user_id for b in rows}
    machines = {m.id: m for m in Machine.query.filter(Machine.id.in_(machine_ids)).all()} if machine_ids else {}
    users = {u.id: u for u in User.query.filter(User.id.in_(user_ids)).all()} if user_ids else {}

    out = []
    for b in rows:
        m = machines.get(b.machine_id)
        u = users.get(b.user_id)
        row = booking_to_dict(b)
        row["machine_name"] = b.machine_name or (m.name if m else UNKNOWN)
        row["machine_type"] = b.machine_type or (m.type if m else UNKNOWN)
        row["user_name"] = b.user_name or (u.display_name if u else UNKNOWN)
        row["user_email"] = b.user_email or (u.email if u else UNKNOWN)
        out.append(row)
    return out


def list_all_bookings(principal, status=None, machine_id=None, day=None):
    if principal is None:
        raise Unauthorized("Authentication required")
    if not is_admin(principal):
        raise Forbidden("Admin only")

    q = Booking.query
    if status:
        q = q.filter(Booking.status == parse_booking_status(status).value)
    if machine_id:
        q = q.filter(Booking.machine_id == int(machine_id))
    if day:
        q = q.filter(Booking.date == normalize_booking_date(day))

    rows = q.order_by(Booking.created_at.desc()).limit(_limit()).all()
    return enrich_bookings(rows)


def _get_active_machine(machine_id: int) -> Machine:
    machine = db.session.get(Machine, machine_id)
    if machine is None or not machine.is_active:
        raise NotFound("Machine not found")
    return machine


def list_bookings_for_machine(machine_id: int, day=None, status=None):
    _get_active_machine(machine_id)
    q = Booking.query.filter_by(machine_id=machine_id)
    if day:
        q = q.filter(Booking.date == normalize_booking_date(day))
    if status:
        q = q.filter(Booking.status == parse_booking_status(status).value)
    return q.order_by(Booking.date.asc(), Booking.time.asc()).limit(_limit()).all()


def machine_slot_overview(machine_id: int, day) -> dict:
    """Time labels that are approved (held) or awaiting a decision on a given day."""
    machine = _get_active_machine(machine_id)
    booking_date = normalize_booking_date(day)
    prefix = f"{booking_date.isoformat()}-"

    held = sorted(k[len(prefix):] for k in machine.held_slot_keys if k.startswith(prefix))
    pending = sorted({
        b.time
        for b in Booking.query.filter_by(
            machine_id=machine_id,
            date=booking_date,
            status=BookingStatus.PENDING.value,
        ).all()
    })
    return {
        "machine_id": machine.id,
        "date": booking_date.isoformat(),
        "status": machine.status,
        "approved": held,
        "pending": pending,
    }
