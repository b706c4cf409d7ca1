"""Place submission and operator review workflow."""

from __future__ import annotations

from typing import Any, Mapping

from app.errors import ConflictError, NotFoundError, PermissionDeniedError, StateError, ValidationError
from app.models import db
from app.models.operator import Operator
from app.models.place import Place
from app.models.place_edit_request import REQUEST_STATUSES, PlaceEditRequest
from app.models.user import User
from app.services.gamification_service import award_experience, moderation_reward
from app.services.place_service import (
    apply_place_changes,
    changed_fields,
    find_place_by_normalized_name,
    normalize_place_name,
    validate_new_place,
    validate_place_changes,
)
from app.utils.db import commit_or_rollback
from app.utils.logger import get_logger
from app.utils.validation import parse_bool_flag, parse_identifier

logger = get_logger(__name__)

DECISION_STATUSES = ("approved", "rejected")


def _require_expert(user: User) -> None:
    if not user.expert:
        raise PermissionDeniedError("User is not an expert", code="not_expert")


def _raise_duplicate(existing: Place) -> None:
    raise ConflictError(
        "This place already exists",
        code="place_exists",
        payload={"placeId": existing.id},
    )


def submit_new_place(user: User, payload: Mapping[str, Any]) -> PlaceEditRequest:
    _require_expert(user)
    proposed = validate_new_place(payload)

    existing = find_place_by_normalized_name(normalize_place_name(proposed["name"]))
    if existing is not None:
        logger.info(
            "[MODERATION] Duplicate new place %r from user %s (place %s)",
            proposed["name"],
            user.id,
            existing.id,
        )
        _raise_duplicate(existing)

    request = PlaceEditRequest(
        user_id=user.id,
        proposed_changes=proposed,
        is_new_place=True,
        status="pending",
    )
    db.session.add(request)
    commit_or_rollback(logger, "new place request")
    logger.info("[MODERATION] User %s proposed new place (request %s)", user.id, request.id)
    return request


def submit_place_edit(user: User, raw_place_id: Any, payload: Mapping[str, Any]) -> PlaceEditRequest:
    _require_expert(user)
    place_id = parse_identifier(raw_place_id)
    if place_id is None:
        raise ValidationError("No valid place given", code="invalid_place_id")

    proposed = validate_place_changes(payload)
    place = db.session.get(Place, place_id)
    if place is None:
        raise NotFoundError("Place not found", code="place_not_found")

    changes = changed_fields(place, proposed)
    if not changes:
        raise ValidationError("The proposal does not change the place", code="no_changes")
    if "name" in changes:
        existing = find_place_by_normalized_name(normalize_place_name(changes["name"]))
        if existing is not None and existing.id != place.id:
            _raise_duplicate(existing)

    request = PlaceEditRequest(
        user_id=user.id,
        place_id=place.id,
        proposed_changes=changes,
        is_new_place=False,
        status="pending",
    )
    db.session.add(request)
    commit_or_rollback(logger, "place edit request")
    logger.info(
        "[MODERATION] User %s proposed edit of place %s (request %s)",
        user.id,
        place.id,
        request.id,
    )
    return request


def list_requests(
    *,
    place_id: Any = None,
    status: Any = None,
    is_new_place: Any = None,
) -> list[PlaceEditRequest]:
    query = PlaceEditRequest.query
    if place_id not in (None, ""):
        parsed = parse_identifier(place_id)
        if parsed is None:
            raise ValidationError("placeId filter is not valid", code="invalid_filter")
        query = query.filter(PlaceEditRequest.place_id == parsed)
    if status not in (None, ""):
        if status not in REQUEST_STATUSES:
            raise ValidationError("Status filter is not valid", code="invalid_status")
        query = query.filter(PlaceEditRequest.status == status)
    if is_new_place is not None:
        flag = parse_bool_flag(is_new_place)
        if flag is None:
            raise ValidationError(
                "isNewPlace must be true or false", code="invalid_filter"
            )
        query = query.filter(PlaceEditRequest.is_new_place.is_(flag))
    return query.order_by(PlaceEditRequest.created_at.asc(), PlaceEditRequest.id.asc()).all()


def get_request(raw_request_id: Any) -> PlaceEditRequest:
    request_id = parse_identifier(raw_request_id)
    request = db.session.get(PlaceEditRequest, request_id) if request_id is not None else None
    if request is None:
        raise NotFoundError("Request not found", code="request_not_found")
    return request


def decide_request(
    operator: Operator,
    raw_request_id: Any,
    status: Any,
    comment: str | None = None,
) -> PlaceEditRequest:
    """Approve or reject a pending request; only pending requests transition."""
    if status not in DECISION_STATUSES:
        raise ValidationError("Status is not valid", code="invalid_status")

    request = get_request(raw_request_id)
    if not request.is_pending:
        raise StateError(
            f"Request already {request.status}",
            code="request_already_processed",
            payload={"status": request.status},
        )

    submitter = db.session.get(User, request.user_id)
    if submitter is None:
        raise NotFoundError("Submitting user not found", code="user_not_found")

    if status == "approved":
        changes = dict(request.proposed_changes or {})
        if request.is_new_place:
            existing = find_place_by_normalized_name(normalize_place_name(changes.get("name", "")))
            if existing is not None:
                _raise_duplicate(existing)
            place = apply_place_changes(Place(), changes)
            db.session.add(place)
            db.session.flush()
            request.place_id = place.id
        else:
            place = db.session.get(Place, request.place_id) if request.place_id else None
            if place is None:
                raise NotFoundError("Original place not found", code="place_not_found")
            if "name" in changes:
                existing = find_place_by_normalized_name(normalize_place_name(changes["name"]))
                if existing is not None and existing.id != place.id:
                    _raise_duplicate(existing)
            apply_place_changes(place, changes)
        award_experience(
            submitter,
            moderation_reward(bool(request.is_new_place)),
            reason=f"place_request:{request.id}",
        )

    request.mark_reviewed(status, operator.id, comment)
    commit_or_rollback(logger, f"decision on place request {request.id}")
    logger.info(
        "[MODERATION] Operator %s %s request %s (new_place=%s, place=%s)",
        operator.id,
        status,
        request.id,
        request.is_new_place,
        request.place_id,
    )
    return request


__all__ = [
    "DECISION_STATUSES",
    "decide_request",
    "get_request",
    "list_requests",
    "submit_new_place",
    "submit_place_edit",
]
