from datetime import datetime
from models.db import db

# association table for many-to-many User <-> Role
user_roles = db.Table(
    "user_roles",
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
    db.Column("role_id", db.Integer, db.ForeignKey("roles.id"), primary_key=True),
)

# certification ledger: machines a user is cleared to operate
user_certifications = db.Table(
    "user_certifications",
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
    db.Column("machine_id", db.Integer, db.ForeignKey("machines.id"), primary_key=True),
    db.Column("granted_at", db.DateTime, default=datetime.utcnow, nullable=False),
)

class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(120), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    roles = db.relationship("Role", secondary=user_roles, back_populates="users")
    certified_machines = db.relationship("Machine", secondary=user_certifications, lazy="selectin")
    bookings = db.relationship("Booking", back_populates="user", order_by="Booking.created_at")

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    @property
    def certification_ids(self) -> set:
        return {m.id for m in self.certified_machines}

class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)  # MEMBER, ADMIN

    users = db.relationship("User", secondary=user_roles, back_populates="roles")
