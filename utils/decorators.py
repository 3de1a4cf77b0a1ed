from __future__ import annotations
from functools import wraps
from flask import request, g, current_app

from models.account import Role
from services.errors import (
    AuthenticationError,
    AuthorizationError,
    CsrfError,
    ServiceUnavailableError,
)


def current_services():
    """The AuthServices container wired by create_app."""
    return current_app.extensions["auth"]


def _bearer_token() -> str | None:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    return auth.split(" ", 1)[1].strip() or None


def access_token_required():
    """
    Require a valid bearer access token; attaches g.current_account.
    While maintenance mode is on, only ADMIN accounts get through.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = _bearer_token()
            if token is None:
                raise AuthenticationError("Missing or invalid Authorization header")
            services = current_services()
            account = services.orchestrator.authenticate(token)
            if services.settings.maintenance_mode() and Role(account.role) != Role.ADMIN:
                raise ServiceUnavailableError()
            g.current_account = account
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def role_required(minimum: Role):
    """
    Allow access if the account's role is at least `minimum`
    (roles are ordered FREE < VIP < ADMIN).
    """
    minimum = Role(minimum)

    def decorator(fn):
        @wraps(fn)
        @access_token_required()
        def wrapper(*args, **kwargs):
            if not Role(g.current_account.role).at_least(minimum):
                raise AuthorizationError()
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def quota_required():
    """Deny (403) FREE accounts that used up their monthly allowance."""
    def decorator(fn):
        @wraps(fn)
        @access_token_required()
        def wrapper(*args, **kwargs):
            account = g.current_account
            if not current_services().accounts.has_quota(account):
                raise AuthorizationError(
                    "Quota exceeded. Upgrade to VIP for unlimited slides.",
                    details={
                        "slides_generated": account.slides_generated,
                        "max_slides": account.max_slides_per_month,
                    },
                )
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def csrf_protected():
    """
    Double-submit check for cookie-authenticated browser requests.

    Requests without a refresh cookie carry no ambient credential, so they
    pass through and the view rejects them as needing re-authentication.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            cfg = current_app.config
            if not request.cookies.get(cfg["REFRESH_COOKIE_NAME"]):
                return fn(*args, **kwargs)
            cookie_value = request.cookies.get(cfg["CSRF_COOKIE_NAME"])
            header_value = request.headers.get(cfg["CSRF_HEADER_NAME"])
            if not current_services().csrf.verify(cookie_value, header_value):
                raise CsrfError()
            return fn(*args, **kwargs)

        return wrapper

    return decorator
