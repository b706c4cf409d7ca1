"""Place catalog and community submissions."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..services.moderation_service import submit_new_place, submit_place_edit
from ..services.place_service import get_place, nearby_places
from ..utils.auth import user_required
from ..utils.validation import json_payload

bp = Blueprint("places", __name__, url_prefix="/api/v1/places")


@bp.get("")
@user_required
def list_places(user):
    """Undiscovered places matching the user's preferences, nearest first with lat/lon."""
    places = nearby_places(
        user,
        lat=request.args.get("lat"),
        lon=request.args.get("lon"),
        radius=request.args.get("radius"),
    )
    return jsonify(places)


@bp.get("/<place_id>")
@user_required
def place_detail(user, place_id: str):
    return jsonify(get_place(place_id).serialize())


@bp.post("/request")
@user_required
def request_new_place(user):
    payload = json_payload()
    edit_request = submit_new_place(user, payload)
    return (
        jsonify(
            {
                "message": "New place request sent, waiting for approval",
                "request": edit_request.serialize(),
            }
        ),
        201,
    )


@bp.put("/<place_id>")
@user_required
def request_place_edit(user, place_id: str):
    payload = json_payload()
    edit_request = submit_place_edit(user, place_id, payload)
    return (
        jsonify(
            {
                "message": "Edit request sent, waiting for approval",
                "request": edit_request.serialize(),
            }
        ),
        201,
    )


__all__ = ["bp"]
