from __future__ import annotations

from flask import Blueprint, request, jsonify, g

from models.account import Role
from models.schemas.account import AccountOutSchema, ProfileUpdateSchema, RoleUpdateSchema
from services.errors import NotFoundError
from utils.decorators import access_token_required, role_required, current_services

bp = Blueprint("users", __name__)

account_out_schema = AccountOutSchema()
profile_update_schema = ProfileUpdateSchema()
role_update_schema = RoleUpdateSchema()


def _get_account_or_404(account_id: str):
    account = current_services().accounts.find_by_id(account_id)
    if account is None:
        raise NotFoundError()
    return account


@bp.patch("/users/me")
@access_token_required()
def update_me():
    """
    Update display name / avatar of the current account.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             name: { type: string }
             avatar_url: { type: string }
    responses:
      200:
        description: OK
      422:
        description: Validation error
    """
    changes = profile_update_schema.load(request.get_json(silent=True) or {})
    account = current_services().accounts.update(g.current_account, **changes)
    return jsonify({"data": account_out_schema.dump(account)}), 200


@bp.post("/users/<account_id>/role")
@role_required(Role.ADMIN)
def set_role(account_id: str):
    """
    Admin-only: set the role of an account.
    Body: { "role": "FREE" | "VIP" | "ADMIN" }
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      -  in: path
         name: account_id
         type: string
         required: true
      -  in: body
         name: body
         schema:
           type: object
           properties:
             role: { type: string }
    responses:
      200: { description: OK }
      403: { description: Insufficient role }
      404: { description: Unknown account }
    """
    data = role_update_schema.load(request.get_json(silent=True) or {})
    account = _get_account_or_404(account_id)
    account = current_services().accounts.update(account, role=data["role"])
    return jsonify({"data": account_out_schema.dump(account)}), 200


@bp.get("/users/<account_id>/sessions")
@role_required(Role.ADMIN)
def count_sessions(account_id: str):
    """
    Admin-only: number of live refresh sessions of an account.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200: { description: OK }
    """
    account = _get_account_or_404(account_id)
    active = current_services().sessions.count_active(account.id)
    return jsonify({"data": {"account_id": account.id, "active_sessions": active}}), 200
