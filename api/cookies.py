"""
Cookie contract:
- refresh cookie: HttpOnly, SameSite=Strict, path "/", refresh-session lifetime
- CSRF cookie: same lifetime and scope, readable by JavaScript
Access tokens never go into cookies.
"""
from datetime import timezone

from flask import current_app


def _common(secure: bool) -> dict:
    return {"secure": secure, "samesite": "Strict", "path": "/"}


def set_session_cookies(response, refresh_token: str, csrf_token: str, expires_at):
    """Attach refresh + CSRF cookies. `expires_at` is the refresh session's naive-UTC expiry."""
    cfg = current_app.config
    max_age = int(cfg["REFRESH_SESSION_TTL"].total_seconds())
    expires = expires_at.replace(tzinfo=timezone.utc) if expires_at.tzinfo is None else expires_at
    common = _common(cfg["SECURE_COOKIES"])
    response.set_cookie(
        cfg["REFRESH_COOKIE_NAME"], refresh_token, max_age=max_age, expires=expires, httponly=True, **common
    )
    response.set_cookie(
        cfg["CSRF_COOKIE_NAME"], csrf_token, max_age=max_age, expires=expires, httponly=False, **common
    )
    return response


def clear_session_cookies(response):
    cfg = current_app.config
    common = _common(cfg["SECURE_COOKIES"])
    response.delete_cookie(cfg["REFRESH_COOKIE_NAME"], httponly=True, **common)
    response.delete_cookie(cfg["CSRF_COOKIE_NAME"], httponly=False, **common)
    return response
