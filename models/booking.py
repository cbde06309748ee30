from datetime import datetime
from enum import Enum

from models.db import db
from services.slots import slot_key


class BookingStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    COMPLETED = "Completed"
    CANCELED = "Canceled"
    REJECTED = "Rejected"

    @classmethod
    def values(cls):
        return [s.value for s in cls]


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    # user, machine, date and time never change after creation
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    machine_id = db.Column(db.Integer, db.ForeignKey("machines.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    time = db.Column(db.String(40), nullable=False)

    status = db.Column(db.String(20), nullable=False, default=BookingStatus.PENDING.value)

    # display copies captured at creation
    user_name = db.Column(db.String(255), nullable=True)
    user_email = db.Column(db.String(255), nullable=True)
    machine_name = db.Column(db.String(120), nullable=True)
    machine_type = db.Column(db.String(80), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = db.relationship("User", back_populates="bookings")
    machine = db.relationship("Machine")

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('Pending', 'Approved', 'Completed', 'Canceled', 'Rejected')",
            name="ck_bookings_status",
        ),
        db.Index("ix_bookings_machine_slot", "machine_id", "date", "time"),
    )

    @property
    def slot_key(self) -> str:
        return slot_key(self.date, self.time)

    def __repr__(self):
        return f"<Booking id={self.id} machine={self.machine_id} slot={self.slot_key} status={self.status}>"
