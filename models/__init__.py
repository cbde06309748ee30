from .db import db
from .user import User, Role, user_roles, user_certifications
from .audit_log import AuditLog
from .session import Session
from .machine import Machine, MachineStatus, HeldSlot
from .booking import Booking, BookingStatus
