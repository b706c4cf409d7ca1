from __future__ import annotations

from flask import Blueprint, jsonify

from ..services.mission_service import mission_heatmap
from ..utils.auth import operator_required

bp = Blueprint("heatmap", __name__, url_prefix="/api/v1/heatmap")


@bp.get("/missions")
@operator_required
def missions(operator):
    """Completed missions per required place."""
    return jsonify(mission_heatmap())


__all__ = ["bp"]
