"""Operator login and the place request review queue."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..extensions import limiter
from ..services.auth_service import login_operator
from ..services.moderation_service import decide_request, get_request, list_requests
from ..utils.auth import operator_required
from ..utils.validation import json_payload

bp = Blueprint("operator", __name__, url_prefix="/api/v1/operator")


@bp.post("/login")
@limiter.limit("10/minute")
def login():
    payload = json_payload()
    token = login_operator(payload.get("email"), payload.get("password"))
    return jsonify({"token": token})


@bp.get("/me")
@operator_required
def me(operator):
    return jsonify(operator.serialize())


@bp.get("/place_requests")
@operator_required
def place_requests(operator):
    requests = list_requests(
        place_id=request.args.get("placeId"),
        status=request.args.get("status"),
        is_new_place=request.args.get("isNewPlace"),
    )
    return jsonify([item.serialize() for item in requests])


@bp.get("/place_requests/<request_id>")
@operator_required
def place_request_detail(operator, request_id: str):
    return jsonify(get_request(request_id).serialize())


@bp.patch("/place_requests/<request_id>")
@limiter.limit("30/minute")
@operator_required
def decide_place_request(operator, request_id: str):
    payload = json_payload()
    comment = payload.get("operatorComment")
    edit_request = decide_request(
        operator,
        request_id,
        payload.get("status"),
        comment if isinstance(comment, str) else None,
    )
    return jsonify(
        {
            "message": "Request processed",
            "status": edit_request.status,
            "request": edit_request.serialize(),
        }
    )


__all__ = ["bp"]
