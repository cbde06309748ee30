from models import db
from models.machine import Machine, MachineStatus
from security.rbac import is_admin
from services.errors import CertificationRequired, ResourceUnavailable


def has_certification(user, machine_id) -> bool:
    if user is None or machine_id is None:
        return False
    return int(machine_id) in user.certification_ids


def can_book(user, machine: Machine) -> bool:
    return (
        is_admin(user)
        or not machine.requires_certification
        or has_certification(user, machine.id)
    )


def check_admission(user, machine: Machine) -> None:
    """
    Gate a member's booking request on machine availability and certification.

    Administrators never reach this check; callers short-circuit on is_admin.
    """
    if machine.status != MachineStatus.AVAILABLE.value:
        message = f"Machine is not available for booking (status: {machine.status})"
        context = {"machine_status": machine.status}
        if machine.maintenance_note:
            context["maintenance_note"] = machine.maintenance_note
        raise ResourceUnavailable(message, **context)

    if not can_book(user, machine):
        raise CertificationRequired(
            f"Certification required to book {machine.name}",
            machine_id=machine.id,
        )


def grant_certification(user, machine: Machine) -> bool:
    """Returns False when the user already held the certification."""
    if has_certification(user, machine.id):
        return False
    user.certified_machines.append(machine)
    db.session.commit()
    return True


def revoke_certification(user, machine_id) -> bool:
    remaining = [m for m in user.certified_machines if m.id != int(machine_id)]
    if len(remaining) == len(user.certified_machines):
        return False
    user.certified_machines = remaining
    db.session.commit()
    return True


def clear_certifications(user) -> int:
    count = len(user.certified_machines)
    user.certified_machines = []
    db.session.commit()
    return count
