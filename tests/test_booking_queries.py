import pytest

from models import db
from models.booking import Booking
from services import booking_queries, bookings
from services.errors import Forbidden, InvalidStatus, NotFound


def test_user_bookings_newest_date_first(member, machine):
    bookings.create_booking(member, machine.id, "2024-06-01", "10:00")
    bookings.create_booking(member, machine.id, "2024-06-03", "10:00")
    bookings.create_booking(member, machine.id, "2024-06-02", "10:00")

    rows = booking_queries.list_bookings_for_user(member.id)
    assert [b.date.isoformat() for b in rows] == ["2024-06-03", "2024-06-02", "2024-06-01"]


def test_user_bookings_status_filter(member, admin, machine):
    first = bookings.create_booking(member, machine.id, "2024-06-01", "10:00")
    bookings.create_booking(member, machine.id, "2024-06-01", "11:00")
    bookings.set_booking_status(admin, first.id, "approved")

    rows = booking_queries.list_bookings_for_user(member.id, status="Approved")
    assert [b.id for b in rows] == [first.id]

    with pytest.raises(InvalidStatus):
        booking_queries.list_bookings_for_user(member.id, status="bogus")


def test_get_booking_owner_or_admin(member, other_member, admin, machine):
    booking = bookings.create_booking(member, machine.id, "2024-06-01", "10:00")

    assert booking_queries.get_booking(member, booking.id) is booking
    assert booking_queries.get_booking(admin, booking.id) is booking
    with pytest.raises(Forbidden):
        booking_queries.get_booking(other_member, booking.id)
    with pytest.raises(NotFound):
        booking_queries.get_booking(admin, 404)


def test_list_all_is_admin_only(member, machine):
    with pytest.raises(Forbidden):
        booking_queries.list_all_bookings(member)


def test_list_all_prefers_captured_names(member, admin, machine):
    bookings.create_booking(member, machine.id, "2024-06-01", "10:00")
    machine.name = "Renamed Station"
    db.session.commit()

    [row] = booking_queries.list_all_bookings(admin)
    assert row["machine_name"] == "Soldering Station"
    assert row["user_name"] == "Uma One"
    assert row["user_email"] == member.email


def test_list_all_keeps_email_captured_at_booking(member, admin, machine):
    bookings.create_booking(member, machine.id, "2024-06-01", "10:00")
    original = member.email
    member.email = "renamed@makerspace.test"
    db.session.commit()

    [row] = booking_queries.list_all_bookings(admin)
    assert row["user_email"] == original


def test_list_all_falls_back_to_live_lookup(member, admin, machine):
    booking = bookings.create_booking(member, machine.id, "2024-06-01", "10:00")
    booking.machine_name = None
    booking.user_name = None
    db.session.commit()

    [row] = booking_queries.list_all_bookings(admin)
    assert row["machine_name"] == machine.name
    assert row["user_name"] == "Uma One"


def test_list_all_unknown_when_machine_gone(member, admin, machine):
    booking = bookings.create_booking(member, machine.id, "2024-06-01", "10:00")
    booking.machine_name = None
    booking.machine_type = None
    db.session.delete(machine)
    db.session.commit()

    [row] = booking_queries.list_all_bookings(admin)
    assert row["machine_name"] == "Unknown"
    assert row["machine_type"] == "Unknown"


def test_list_all_filters(member, admin, make_machine):
    a = make_machine(name="A")
    b = make_machine(name="B")
    bookings.create_booking(member, a.id, "2024-06-01", "10:00")
    bookings.create_booking(member, b.id, "2024-06-01", "10:00")
    bookings.create_booking(member, b.id, "2024-06-02", "10:00")

    assert len(booking_queries.list_all_bookings(admin, machine_id=b.id)) == 2
    assert len(booking_queries.list_all_bookings(admin, day="2024-06-01")) == 2
    assert len(booking_queries.list_all_bookings(admin, machine_id=b.id, day="2024-06-02")) == 1


def test_slot_overview(member, other_member, admin, machine):
    approved = bookings.create_booking(member, machine.id, "2024-06-01", "10:00")
    bookings.set_booking_status(admin, approved.id, "Approved")
    bookings.create_booking(other_member, machine.id, "2024-06-01", "14:00")
    bookings.create_booking(other_member, machine.id, "2024-06-02", "09:00")

    overview = booking_queries.machine_slot_overview(machine.id, "2024-06-01")
    assert overview["approved"] == ["10:00"]
    assert overview["pending"] == ["14:00"]
    assert overview["date"] == "2024-06-01"


def test_machine_bookings_unknown_machine(app):
    with pytest.raises(NotFound):
        booking_queries.list_bookings_for_machine(999)


def test_machine_bookings_ordered_by_slot(member, machine):
    bookings.create_booking(member, machine.id, "2024-06-02", "09:00")
    bookings.create_booking(member, machine.id, "2024-06-01", "11:00")
    bookings.create_booking(member, machine.id, "2024-06-01", "10:00")

    rows = booking_queries.list_bookings_for_machine(machine.id)
    assert [b.slot_key for b in rows] == ["2024-06-01-10:00", "2024-06-01-11:00", "2024-06-02-09:00"]
    assert Booking.query.count() == 3
