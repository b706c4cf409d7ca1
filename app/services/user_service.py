from __future__ import annotations

from typing import Any, Mapping

from app.errors import NotFoundError, ValidationError
from app.models.user import User
from app.utils.db import commit_or_rollback
from app.utils.logger import get_logger
from app.utils.validation import parse_bool_flag

logger = get_logger(__name__)


def update_preferences(user: User, payload: Mapping[str, Any]) -> User:
    also_paid = payload.get("alsoPaid")
    categories = payload.get("categories")
    if not isinstance(also_paid, bool) or not isinstance(categories, list):
        raise ValidationError("Missing information", code="missing_information")
    if any(not isinstance(category, str) or not category.strip() for category in categories):
        raise ValidationError("Categories are not valid", code="invalid_categories")

    user.also_paid = also_paid
    # Keep first occurrence order while dropping duplicates
    user.preferred_categories = list(dict.fromkeys(category.strip() for category in categories))
    commit_or_rollback(logger, f"preferences of user {user.id}")
    logger.info("[USERS] User %s updated preferences", user.id)
    return user


def list_users(expert: Any = None) -> list[User]:
    query = User.query
    if expert not in (None, ""):
        flag = parse_bool_flag(expert)
        if flag is None:
            raise ValidationError("expert must be true or false", code="invalid_filter")
        query = query.filter(User.expert.is_(flag))
    return query.order_by(User.username.asc()).all()


def get_user_by_username(username: str) -> User:
    if not username or not username.strip():
        raise ValidationError("No username given", code="missing_username")
    user = User.query.filter_by(username=username.strip()).first()
    if user is None:
        raise NotFoundError("User not found", code="user_not_found")
    return user


__all__ = ["get_user_by_username", "list_users", "update_preferences"]
