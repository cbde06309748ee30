from datetime import datetime
from enum import Enum

from models.db import db


class MachineStatus(str, Enum):
    AVAILABLE = "Available"
    MAINTENANCE = "Maintenance"
    IN_USE = "In Use"
    OUT_OF_ORDER = "Out of Order"

    @classmethod
    def values(cls):
        return [s.value for s in cls]


class Machine(db.Model):
    __tablename__ = "machines"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    type = db.Column(db.String(80), nullable=False)
    description = db.Column(db.Text, nullable=True)
    difficulty = db.Column(db.String(20), nullable=True)  # Beginner, Intermediate, Advanced

    status = db.Column(db.String(20), nullable=False, default=MachineStatus.AVAILABLE.value)
    requires_certification = db.Column(db.Boolean, default=False, nullable=False)
    maintenance_note = db.Column(db.String(255), nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    deleted_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Written only by the reservation engine (services.bookings)
    held_slots = db.relationship(
        "HeldSlot",
        back_populates="machine",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('Available', 'Maintenance', 'In Use', 'Out of Order')",
            name="ck_machines_status",
        ),
    )

    @property
    def held_slot_keys(self) -> set:
        return {h.slot_key for h in self.held_slots}

    def __repr__(self):
        return f"<Machine id={self.id} name={self.name!r} status={self.status}>"


class HeldSlot(db.Model):
    """A slot key occupied on a machine by an approved booking."""

    __tablename__ = "machine_held_slots"

    id = db.Column(db.Integer, primary_key=True)
    machine_id = db.Column(db.Integer, db.ForeignKey("machines.id"), nullable=False, index=True)
    slot_key = db.Column(db.String(64), nullable=False)
    booking_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    machine = db.relationship("Machine", back_populates="held_slots")

    __table_args__ = (
        # Hard business-rule: one approved occupant per machine and slot
        db.UniqueConstraint("machine_id", "slot_key", name="uq_machine_held_slot"),
    )
