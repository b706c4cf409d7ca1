"""Authenticated user's own profile, preferences and visits."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..services.user_service import update_preferences
from ..services.visit_service import trigger_visit
from ..utils.auth import user_required
from ..utils.validation import json_payload

bp = Blueprint("me", __name__, url_prefix="/api/v1/me")


@bp.get("")
@user_required
def get_me(user):
    return jsonify(user.serialize(private=True))


@bp.post("/visit")
@user_required
def visit_place(user):
    payload = json_payload()
    place_ids = request.args.getlist("placeId")
    outcome = trigger_visit(user, place_ids, payload.get("lat"), payload.get("lon"))
    return jsonify(outcome.serialize())


@bp.post("/preferences")
@user_required
def set_preferences(user):
    payload = json_payload()
    update_preferences(user, payload)
    return jsonify({"ok": True, "message": "Ok", "preferences": user.serialize(private=True)["preferences"]})


__all__ = ["bp"]
