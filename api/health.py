from flask import Blueprint

from utils.decorators import current_services

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Health check
    ---
    tags:
      - Health
    responses:
      200:
        description: API is up
        schema:
          type: object
          properties:
            status:
              type: string
              example: ok
            version:
              type: string
              example: 1.0.0
    """
    return {"status": "ok", "version": "1.0.0"}, 200


@bp.get("/settings/maintenance")
def maintenance():
    """
    Public maintenance flag (falls back to false when settings are unreadable)
    ---
    tags:
      - Health
    responses:
      200:
        description: OK
    """
    return {"data": {"maintenance_mode": current_services().settings.maintenance_mode()}}, 200
