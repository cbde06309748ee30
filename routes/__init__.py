from .health import health_bp
from .auth import auth_bp
from .booking import booking_bp
from .machines import machine_bp
from .certifications import certification_bp
from .audit_logs import audit_bp
