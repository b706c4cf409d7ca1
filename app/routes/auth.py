"""User registration and login."""

from __future__ import annotations

from flask import Blueprint, jsonify

from ..extensions import limiter
from ..services.auth_service import login_user, register_user
from ..utils.validation import json_payload

bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


@bp.post("/register")
@limiter.limit("5/minute")
def register():
    payload = json_payload()
    user = register_user(payload)
    return jsonify(user.serialize(private=True)), 201


@bp.post("/login")
@limiter.limit("10/minute")
def login():
    payload = json_payload()
    token = login_user(payload.get("username"), payload.get("password"))
    return jsonify({"token": token})


__all__ = ["bp"]
