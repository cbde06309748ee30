"""
Reservation engine: booking creation, the status state machine and the
held-slot bookkeeping on machines.

A machine's held slots mirror its approved bookings. They are written here
and nowhere else: added when a booking becomes Approved, removed when an
Approved booking moves to another status or is deleted.
"""
from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking, BookingStatus
from models.machine import Machine, HeldSlot
from security.certification import check_admission
from security.rbac import is_admin
from services.errors import (
    BookingError,
    Forbidden,
    InvalidStatus,
    NotFound,
    SlotConflict,
    Unauthorized,
    ValidationError,
)
from services.locks import machine_lock
from services.slots import normalize_booking_date, normalize_time_label, slot_key
from utils.audit import log_event

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.APPROVED, BookingStatus.REJECTED, BookingStatus.CANCELED},
    BookingStatus.APPROVED: {BookingStatus.COMPLETED, BookingStatus.CANCELED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELED: set(),
    BookingStatus.REJECTED: set(),
}

# Bookings in these states claim their slot against new requests
CLAIMING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.APPROVED.value)

_STATUS_ALIASES = {
    "cancelled": BookingStatus.CANCELED,
}


def parse_booking_status(value) -> BookingStatus:
    """Map an inbound status string onto BookingStatus (case-insensitive)."""
    if isinstance(value, BookingStatus):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidStatus("status is required", allowed=BookingStatus.values())

    wanted = value.strip().lower()
    for status in BookingStatus:
        if status.value.lower() == wanted:
            return status
    if wanted in _STATUS_ALIASES:
        return _STATUS_ALIASES[wanted]
    raise InvalidStatus(f"Invalid status: {value}", allowed=BookingStatus.values())


def _coerce_id(value, field: str) -> int:
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer id")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer id")


def _require_principal(principal):
    if principal is None:
        raise Unauthorized("Authentication required")


def _load_machine(machine_id: int, include_inactive: bool = False):
    q = Machine.query.filter(Machine.id == machine_id)
    if not include_inactive:
        q = q.filter(Machine.is_active.is_(True))
    # Row lock where the backend supports it; SQLite ignores FOR UPDATE
    return q.populate_existing().with_for_update().first()


def _load_booking(booking_id: int):
    return Booking.query.filter(Booking.id == booking_id).populate_existing().first()


def _ensure_slot_free(machine: Machine, booking_date, time_label: str, key: str) -> None:
    if key in machine.held_slot_keys:
        raise SlotConflict("This time slot is already booked", slot=key)

    claimed = (
        Booking.query
        .filter(
            Booking.machine_id == machine.id,
            Booking.date == booking_date,
            Booking.time == time_label,
            Booking.status.in_(CLAIMING_STATUSES),
        )
        .first()
    )
    if claimed is not None:
        raise SlotConflict("This time slot is already requested or booked", slot=key)


def _ensure_no_other_approved(booking: Booking) -> None:
    other = (
        Booking.query
        .filter(
            Booking.machine_id == booking.machine_id,
            Booking.date == booking.date,
            Booking.time == booking.time,
            Booking.status == BookingStatus.APPROVED.value,
            Booking.id != booking.id,
        )
        .first()
    )
    if other is not None:
        raise SlotConflict(
            "This time slot is already booked by another approved booking",
            slot=booking.slot_key,
        )


def _hold_slot(machine: Machine, key: str, booking_id: int) -> None:
    for held in machine.held_slots:
        if held.slot_key != key:
            continue
        if held.booking_id != booking_id:
            raise SlotConflict("This time slot is already held on this machine", slot=key)
        return
    machine.held_slots.append(HeldSlot(slot_key=key, booking_id=booking_id))


def _release_slot(machine: Machine, key: str) -> bool:
    released = False
    for held in list(machine.held_slots):
        if held.slot_key == key:
            machine.held_slots.remove(held)
            released = True
    return released


def _commit_slot_change(key: str) -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        # uq_machine_held_slot: another process approved the same slot first
        raise SlotConflict("This time slot is already booked by another approved booking", slot=key)


def create_booking(principal, machine_id, day, time_label) -> Booking:
    """
    Create a Pending booking for ``principal``.

    Members must pass availability, certification and slot checks; a slot is
    taken if it is held on the machine or claimed by a Pending/Approved
    booking. Administrators skip all three, so they may stage several Pending
    requests for one slot and settle them at approval time.
    """
    _require_principal(principal)
    machine_id = _coerce_id(machine_id, "machine_id")
    booking_date = normalize_booking_date(day)
    time_label = normalize_time_label(time_label)
    key = slot_key(booking_date, time_label)
    admin = is_admin(principal)

    with machine_lock(machine_id):
        try:
            machine = _load_machine(machine_id)
            if machine is None:
                raise NotFound("Machine not found")

            if not admin:
                check_admission(principal, machine)
                _ensure_slot_free(machine, booking_date, time_label, key)
        except BookingError as exc:
            db.session.rollback()
            log_event(
                f"BOOKING_FAIL_{exc.code}",
                user_id=principal.id,
                entity="machine",
                entity_id=machine_id,
                metadata={"slot": key},
            )
            raise

        booking = Booking(
            user=principal,
            machine=machine,
            date=booking_date,
            time=time_label,
            status=BookingStatus.PENDING.value,
            user_name=principal.display_name,
            user_email=principal.email,
            machine_name=machine.name,
            machine_type=machine.type,
        )
        db.session.add(booking)
        db.session.commit()

    current_app.logger.info("Booking %s created on machine %s for slot %s", booking.id, machine_id, key)
    log_event(
        "BOOKING_CREATE",
        user_id=principal.id,
        entity="booking",
        entity_id=booking.id,
        metadata={"machine_id": machine_id, "slot": key, "admin": admin},
    )
    return booking


def set_booking_status(principal, booking_id, status) -> Booking:
    """
    Move a booking along the status state machine.

    Members may only cancel their own Pending or Approved bookings. Entering
    Approved claims the slot on the machine; leaving Approved releases it.
    The slot change and the status write are committed together.
    """
    _require_principal(principal)
    target = parse_booking_status(status)
    booking_id = _coerce_id(booking_id, "booking_id")
    admin = is_admin(principal)

    if not admin and target != BookingStatus.CANCELED:
        raise Forbidden("Only administrators can change booking status")

    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    if not admin and booking.user_id != principal.id:
        raise Forbidden("Not authorized to change this booking")

    with machine_lock(booking.machine_id):
        try:
            machine = _load_machine(booking.machine_id, include_inactive=True)
            if machine is None:
                raise NotFound("Machine for this booking no longer exists")

            booking = _load_booking(booking_id)
            if booking is None:
                raise NotFound("Booking not found")

            current = parse_booking_status(booking.status)
            if current == target:
                db.session.rollback()
                return booking

            if target not in ALLOWED_TRANSITIONS[current]:
                raise InvalidStatus(
                    f"Cannot change booking status from {current.value} to {target.value}",
                    current_status=current.value,
                    requested_status=target.value,
                )

            key = booking.slot_key
            if target == BookingStatus.APPROVED:
                if not machine.is_active:
                    raise NotFound("Machine for this booking no longer exists")
                _ensure_no_other_approved(booking)
                _hold_slot(machine, key, booking.id)
            elif current == BookingStatus.APPROVED:
                _release_slot(machine, key)

            booking.status = target.value
            _commit_slot_change(key)
        except BookingError as exc:
            db.session.rollback()
            if isinstance(exc, SlotConflict):
                log_event(
                    "BOOKING_FAIL_APPROVE_CONFLICT",
                    user_id=principal.id,
                    entity="booking",
                    entity_id=booking_id,
                )
            raise

    current_app.logger.info(
        "Booking %s moved from %s to %s", booking.id, current.value, target.value
    )
    log_event(
        "BOOKING_STATUS_CHANGE",
        user_id=principal.id,
        entity="booking",
        entity_id=booking.id,
        metadata={"from": current.value, "to": target.value, "slot": key},
    )
    return booking


def cancel_booking(principal, booking_id) -> Booking:
    return set_booking_status(principal, booking_id, BookingStatus.CANCELED)


def delete_booking(principal, booking_id) -> None:
    """
    Delete a booking (owner or administrator).

    An Approved booking releases its held slot first. If the machine record
    is gone the release is skipped with a warning and the booking is still
    removed.
    """
    _require_principal(principal)
    booking_id = _coerce_id(booking_id, "booking_id")

    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFound("Booking not found")
    if not is_admin(principal) and booking.user_id != principal.id:
        raise Forbidden("Not authorized to delete this booking")

    machine_id = booking.machine_id
    with machine_lock(machine_id):
        booking = _load_booking(booking_id)
        if booking is None:
            db.session.rollback()
            raise NotFound("Booking not found")

        key = booking.slot_key
        status = booking.status
        released = False
        if status == BookingStatus.APPROVED.value:
            machine = _load_machine(machine_id, include_inactive=True)
            if machine is None:
                current_app.logger.warning(
                    "Machine %s missing while deleting booking %s; held slot %s not released",
                    machine_id, booking_id, key,
                )
            else:
                released = _release_slot(machine, key)

        db.session.delete(booking)
        db.session.commit()

    current_app.logger.info("Booking %s deleted", booking_id)
    log_event(
        "BOOKING_DELETE",
        user_id=principal.id,
        entity="booking",
        entity_id=booking_id,
        metadata={"status": status, "slot": key, "released_slot": released},
    )
