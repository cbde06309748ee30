from functools import wraps
from flask import g

from services.errors import Forbidden, Unauthorized

ADMIN_ROLE = "ADMIN"
MEMBER_ROLE = "MEMBER"


def user_has_role(user, role_name: str) -> bool:
    if not user:
        return False
    return any(r.name == role_name for r in user.roles)


def is_admin(user) -> bool:
    """Administrators bypass machine availability, certification and slot checks."""
    return user_has_role(user, ADMIN_ROLE)


def require_roles(*role_names: str):
    """
    Usage: @require_roles(ADMIN_ROLE)
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                raise Unauthorized("Authentication required")
            if not any(user_has_role(user, name) for name in role_names):
                raise Forbidden("Insufficient role", required=list(role_names))
            return fn(*args, **kwargs)
        return wrapper
    return decorator
