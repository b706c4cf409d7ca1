"""Missions blueprint: catalog, activation and creation."""

from __future__ import annotations

from flask import Blueprint, jsonify

from ..services.mission_service import (
    activate_mission,
    available_missions,
    create_mission,
    list_missions,
    remove_mission,
)
from ..utils.auth import operator_required, user_required
from ..utils.validation import json_payload

bp = Blueprint("missions", __name__, url_prefix="/api/v1/missions")


@bp.get("")
@user_required
def get_missions(user):
    """Full mission catalog."""
    return jsonify(list_missions())


@bp.get("/available")
@user_required
def get_available_missions(user):
    """Missions the user has not activated yet."""
    return jsonify(available_missions(user))


@bp.post("/activate")
@user_required
def activate(user):
    payload = json_payload()
    progress = activate_mission(user, payload.get("missionId"))
    return jsonify({"success": True, "missionProgress": progress.serialize()})


@bp.delete("/<mission_id>")
@user_required
def remove(user, mission_id: str):
    remove_mission(user, mission_id)
    return jsonify({"success": True})


@bp.post("")
@operator_required
def create(operator):
    payload = json_payload()
    mission = create_mission(payload)
    return jsonify({"success": True, "mission": mission.serialize()}), 201


__all__ = ["bp"]
