import time
from datetime import datetime, timezone

from flask import Blueprint, current_app

bp = Blueprint("health", __name__)

_STARTED = time.monotonic()


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
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _STARTED, 3),
        "environment": current_app.config.get("APP_ENV", "dev"),
        "version": "1.0.0",
    }, 200
