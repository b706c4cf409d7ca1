"""Public user directory."""

from __future__ import annotations

from flask import Blueprint, jsonify, request, url_for

from ..services.user_service import get_user_by_username, list_users

bp = Blueprint("users", __name__, url_prefix="/api/v1/users")


@bp.get("")
def index():
    users = list_users(request.args.get("expert"))
    return jsonify([user.serialize() for user in users])


@bp.get("/<username>")
def detail(username: str):
    user = get_user_by_username(username)
    data = user.serialize()
    data["self"] = url_for("users.detail", username=user.username)
    return jsonify(data)


__all__ = ["bp"]
