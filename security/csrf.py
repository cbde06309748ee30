import secrets
from flask import request, current_app, g

from services.errors import CsrfFailed

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"

UNSAFE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# Endpoints reachable before a session exists
EXEMPT_PATHS = frozenset({"/auth/login", "/auth/register", "/health"})


def issue_csrf_token(resp):
    resp.set_cookie(
        CSRF_COOKIE,
        secrets.token_urlsafe(32),
        httponly=False,  # the client reads it and echoes it in the header
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        path="/",
    )
    return resp


def enforce_csrf() -> None:
    """Double-submit check for state-changing requests of logged-in users."""
    if not current_app.config.get("CSRF_ENABLED", True):
        return
    if request.method not in UNSAFE_METHODS or request.path in EXEMPT_PATHS:
        return
    if getattr(g, "user", None) is None:
        return

    cookie_token = request.cookies.get(CSRF_COOKIE) or ""
    header_token = request.headers.get(CSRF_HEADER) or ""
    if not cookie_token or not secrets.compare_digest(cookie_token, header_token):
        raise CsrfFailed("CSRF validation failed")
