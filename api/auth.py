"""
Authentication blueprint:
- POST /auth/check-email
- POST /auth/register
- POST /auth/login
- POST /auth/refresh          (refresh cookie + CSRF header)
- POST /auth/logout           (refresh cookie + CSRF header)
- POST /auth/logout-all       (bearer)
- GET  /auth/me               (bearer)
- POST /auth/forgot-password
- GET  /auth/validate-reset-token
- POST /auth/reset-password

Access tokens travel in the response body and come back as a bearer header.
The refresh token only ever travels in the HttpOnly cookie.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g, current_app

from api.cookies import set_session_cookies, clear_session_cookies
from models.schemas.account import (
    AccountOutSchema,
    EmailOnlySchema,
    LoginSchema,
    RegisterSchema,
    ResetPasswordSchema,
)
from services.auth import AuthResult
from services.errors import AuthenticationError, NotFoundError
from utils.decorators import access_token_required, csrf_protected, current_services

bp = Blueprint("auth", __name__, url_prefix="/auth")

register_schema = RegisterSchema()
login_schema = LoginSchema()
email_schema = EmailOnlySchema()
reset_schema = ResetPasswordSchema()
account_out_schema = AccountOutSchema()

FORGOT_PASSWORD_MESSAGE = "If this email exists, a password reset link has been sent."


def session_response(result: AuthResult, status: int = 200, message: str | None = None):
    """Body carries the access token and CSRF value; cookies carry refresh + CSRF."""
    body = {
        "data": {
            "account": account_out_schema.dump(result.account),
            "access_token": result.access_token,
            "token_type": "bearer",
            "expires_in": result.expires_in,
            "csrf_token": result.csrf_token,
        }
    }
    if message:
        body["message"] = message
    response = jsonify(body)
    response.status_code = status
    return set_session_cookies(response, result.refresh_token, result.csrf_token, result.refresh_expires_at)


def _refresh_cookie() -> str | None:
    return request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"])


@bp.post("/check-email")
def check_email():
    """
    Tell whether an email is already registered.
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
    responses:
      200:
        description: OK
    """
    data = email_schema.load(request.get_json(silent=True) or {})
    exists = current_services().orchestrator.check_email(data["email"])
    return jsonify({"data": {"exists": exists}}), 200


@bp.post("/register")
def register():
    """
    Register a new account and start a session.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
            password: { type: string, minLength: 12 }
            name: { type: string }
    responses:
      201:
        description: Created (access token in body, refresh + CSRF cookies set)
      409:
        description: Email already registered
      422:
        description: Validation error
    """
    data = register_schema.load(request.get_json(silent=True) or {})
    result = current_services().orchestrator.register(data["email"], data["password"], data.get("name"))
    return session_response(result, 201, "Account registered successfully")


@bp.post("/login")
def login():
    """
    Login: access token in the body, refresh + CSRF cookies.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK
      401:
        description: Invalid email or password
    """
    data = login_schema.load(request.get_json(silent=True) or {})
    result = current_services().orchestrator.login(data["email"], data["password"])
    return session_response(result, 200)


@bp.post("/refresh")
@csrf_protected()
def refresh():
    """
    Rotate the refresh session: new access token, new refresh cookie, new CSRF token.
    ---
    tags:
      - Auth
    parameters:
      - in: header
        name: X-CSRF-Token
        type: string
        required: true
    responses:
      200:
        description: OK
      401:
        description: Re-authentication required (cookies cleared)
      403:
        description: CSRF check failed
    """
    result = current_services().orchestrator.refresh(_refresh_cookie())
    return session_response(result, 200)


@bp.post("/logout")
@csrf_protected()
def logout():
    """
    Logout this client. Always succeeds once the CSRF check passes.
    ---
    tags:
      - Auth
    responses:
      200:
        description: Logged out, cookies cleared
    """
    current_services().orchestrator.logout(_refresh_cookie())
    response = jsonify({"message": "Logged out successfully"})
    return clear_session_cookies(response), 200


@bp.post("/logout-all")
@access_token_required()
def logout_all():
    """
    Revoke every refresh session of the current account.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
    """
    revoked = current_services().orchestrator.logout_all(g.current_account.id)
    response = jsonify({"message": "Logged out from all devices", "data": {"revoked": revoked}})
    return clear_session_cookies(response), 200


@bp.get("/me")
@access_token_required()
def me():
    """
    Current account.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return jsonify({"data": account_out_schema.dump(g.current_account)}), 200


@bp.post("/forgot-password")
def forgot_password():
    """
    Request a password reset link. The answer never reveals whether the email exists.
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
    responses:
      200:
        description: Generic acknowledgement
      502:
        description: Mail delivery failed
    """
    data = email_schema.load(request.get_json(silent=True) or {})
    try:
        current_services().orchestrator.forgot_password(data["email"])
    except NotFoundError:
        pass
    return jsonify({"message": FORGOT_PASSWORD_MESSAGE}), 200


@bp.get("/validate-reset-token")
def validate_reset_token():
    """
    Check a reset token without consuming it.
    ---
    tags:
      - Auth
    parameters:
      - in: query
        name: token
        type: string
        required: true
    responses:
      200:
        description: "{valid: bool}"
    """
    token = request.args.get("token", "")
    try:
        current_services().orchestrator.validate_reset_token(token)
    except AuthenticationError:
        return jsonify({"data": {"valid": False}}), 200
    return jsonify({"data": {"valid": True}}), 200


@bp.post("/reset-password")
def reset_password():
    """
    Set a new password with a reset token. The token works once.
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            token: { type: string }
            password: { type: string, minLength: 12 }
    responses:
      200:
        description: Password updated
      401:
        description: Invalid or expired token
      422:
        description: Password too short
    """
    data = reset_schema.load(request.get_json(silent=True) or {})
    current_services().orchestrator.reset_password(data["token"], data["password"])
    return jsonify({"message": "Password has been reset successfully"}), 200
