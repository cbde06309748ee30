from models import db
from models.user import Role
from models.machine import Machine, MachineStatus

DEFAULT_ROLES = ["MEMBER", "ADMIN"]

DEFAULT_MACHINES = [
    {"name": "Laser Cutter", "type": "Cutting", "difficulty": "Intermediate", "requires_certification": True},
    {"name": "Ultimaker 3D Printer", "type": "3D Printer", "difficulty": "Beginner", "requires_certification": True},
    {"name": "X1 E Carbon 3D Printer", "type": "3D Printer", "difficulty": "Intermediate", "requires_certification": True},
    {"name": "Bambu Lab X1 E", "type": "3D Printer", "difficulty": "Intermediate", "requires_certification": True},
    {"name": "Soldering Station", "type": "Electronics", "difficulty": "Beginner", "requires_certification": False},
    {"name": "CNC Router", "type": "Cutting", "difficulty": "Advanced", "requires_certification": True},
]

def seed_roles():
    existing = {r.name for r in Role.query.all()}
    for name in DEFAULT_ROLES:
        if name not in existing:
            db.session.add(Role(name=name))
    db.session.commit()

def seed_machines() -> int:
    """Create the default catalog entries that are missing (matched by name)."""
    existing = {m.name for m in Machine.query.all()}
    created = 0
    for entry in DEFAULT_MACHINES:
        if entry["name"] in existing:
            continue
        db.session.add(Machine(status=MachineStatus.AVAILABLE.value, **entry))
        created += 1
    db.session.commit()
    return created
