from functools import wraps
from flask import g

from security.session import resolve_session
from services.errors import Unauthorized


def load_current_user():
    """Populate ``g.session`` and ``g.user`` from the session cookie."""
    g.session = resolve_session()
    g.user = g.session.user if g.session is not None else None


def current_principal():
    return getattr(g, "user", None)


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if current_principal() is None:
            raise Unauthorized("Authentication required")
        return fn(*args, **kwargs)
    return wrapper
