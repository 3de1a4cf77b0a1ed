"""
Google sign-in:
- GET /auth/google           mint a single-use state and redirect to Google
- GET /auth/google/callback  validate state, exchange code, map identity,
                             set refresh + CSRF cookies, redirect to the frontend

No token ever goes into the redirect URL; the frontend calls /auth/refresh
with the fresh cookies to obtain its first access token.
"""
from __future__ import annotations

import logging
from urllib.parse import urlencode

from flask import Blueprint, request, redirect, current_app

from api.cookies import set_session_cookies
from services.errors import AuthServiceError
from utils.decorators import current_services

logger = logging.getLogger(__name__)

bp = Blueprint("oauth", __name__, url_prefix="/auth")


def _frontend_redirect(path: str, **params):
    url = f"{current_app.config['FRONTEND_URL']}{path}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return redirect(url)


@bp.get("/google")
def google_login():
    """
    Redirect to Google's consent screen.
    ---
    tags:
      - OAuth
    responses:
      302:
        description: >
          Redirect to the provider, or to the frontend login page with
          error=google_not_configured when Google sign-in is not configured
    """
    services = current_services()
    if not services.oauth_provider.configured:
        return _frontend_redirect("/login", error="google_not_configured")
    state = services.oauth.begin_state()
    return redirect(services.oauth_provider.authorization_url(state))


@bp.get("/google/callback")
def google_callback():
    """
    Provider callback.
    ---
    tags:
      - OAuth
    parameters:
      - { in: query, name: code, type: string }
      - { in: query, name: state, type: string }
      - { in: query, name: error, type: string }
    responses:
      302:
        description: Redirect to the frontend (success or error)
    """
    services = current_services()
    # state goes first so every callback consumes it, even failed ones
    state_ok = services.oauth.validate_state(request.args.get("state"))
    if request.args.get("error"):
        return _frontend_redirect("/login", error="google_auth_failed")
    if not state_ok:
        return _frontend_redirect("/login", error="invalid_state")
    code = request.args.get("code")
    if not code:
        return _frontend_redirect("/login", error="google_auth_failed")

    try:
        identity = services.oauth_provider.exchange_code(code)
        mapped = services.oauth.map_identity(identity)
    except AuthServiceError as err:
        logger.warning("oauth_callback_failed", extra={"code": err.code})
        return _frontend_redirect("/login", error="google_auth_failed")

    result = services.orchestrator.login_account(mapped.account, is_new=mapped.is_new)
    response = _frontend_redirect("/login/success", new="1" if result.is_new_account else "0")
    return set_session_cookies(response, result.refresh_token, result.csrf_token, result.refresh_expires_at)
