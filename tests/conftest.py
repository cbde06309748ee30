import pytest

from app import create_app
from config import TestingConfig
from models import db
from models.booking import Booking, BookingStatus
from models.machine import Machine, MachineStatus
from models.user import User, Role
from security.password import hash_password
from security.rbac import ADMIN_ROLE, MEMBER_ROLE

PASSWORD = "correct-horse-battery"


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def make_user(app):
    def _make(email, admin=False, full_name=None, certifications=()):
        user = User(
            email=email,
            password_hash=hash_password(PASSWORD, rounds=4),
            full_name=full_name,
        )
        role = Role.query.filter_by(name=ADMIN_ROLE if admin else MEMBER_ROLE).first()
        user.roles.append(role)
        for machine in certifications:
            user.certified_machines.append(machine)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def make_machine(app):
    def _make(name="Soldering Station", type="Electronics", requires_certification=False,
              status=MachineStatus.AVAILABLE.value, maintenance_note=None):
        machine = Machine(
            name=name,
            type=type,
            requires_certification=requires_certification,
            status=status,
            maintenance_note=maintenance_note,
        )
        db.session.add(machine)
        db.session.commit()
        return machine
    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin@makerspace.test", admin=True, full_name="Ada Admin")


@pytest.fixture
def member(make_user):
    return make_user("u1@makerspace.test", full_name="Uma One")


@pytest.fixture
def other_member(make_user):
    return make_user("u2@makerspace.test", full_name="Ugo Two")


@pytest.fixture
def machine(make_machine):
    # uncertified machine
    return make_machine()


@pytest.fixture
def certified_machine(make_machine):
    # certification-gated machine
    return make_machine(name="Laser Cutter", type="Cutting", requires_certification=True)


@pytest.fixture
def login(app):
    def _login(user):
        client = app.test_client()
        resp = client.post("/auth/login", json={"email": user.email, "password": PASSWORD})
        assert resp.status_code == 200, resp.get_json()
        return client
    return _login


def approved_slot_keys(machine_id):
    rows = Booking.query.filter_by(machine_id=machine_id, status=BookingStatus.APPROVED.value).all()
    return {b.slot_key for b in rows}
