from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..errors import error_response, success_response


system_bp = Blueprint("system", __name__, url_prefix="/api")


@system_bp.get("/health")
def health():
    """Liveness plus a trivial database round trip."""
    try:
        db.session.execute(text("SELECT 1"))
    except Exception:
        current_app.logger.exception("Health check database probe failed")
        return error_response("Database unavailable", 503)
    return success_response({"service": "posledger", "database": "ok"})
