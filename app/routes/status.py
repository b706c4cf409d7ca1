from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..models import db

bp = Blueprint("status", __name__)


@bp.get("/healthz")
def healthcheck():
    uptime = None
    start_time = current_app.config.get("START_TIME")
    if isinstance(start_time, datetime):
        uptime = (datetime.now(timezone.utc) - start_time).total_seconds()

    database = {"online": True, "error": None}
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        database = {"online": False, "error": str(exc)}
        current_app.logger.warning("[HEALTH] Database check failed: %s", exc)

    payload = {
        "ok": database["online"],
        "uptime_seconds": uptime,
        "database": database,
    }
    return jsonify(payload), 200 if payload["ok"] else 503


__all__ = ["bp"]
