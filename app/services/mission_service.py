"""Mission catalog, activations and progress reconciliation."""

from __future__ import annotations

from collections import Counter
from typing import Any, Iterable

from sqlalchemy import func

from app.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from app.extensions import cache
from app.models import db
from app.models.mission import Mission, MissionProgress
from app.models.place import Place
from app.models.user import User
from app.services.gamification_service import award_experience
from app.utils.db import commit_or_rollback
from app.utils.logger import get_logger
from app.utils.validation import parse_identifier

logger = get_logger(__name__)

CATALOG_CACHE_KEY = "missions:catalog"


def mission_counts_place(mission: Mission, place: Place) -> bool:
    """Return True when a visit to ``place`` is eligible for ``mission``.

    A non-empty required-places list decides alone; categories are only
    consulted for missions without required places.
    """
    if mission.is_place_based:
        return place.id in mission.required_place_ids
    if mission.category_set:
        return bool(mission.category_set & place.category_set)
    return False


def reconcile_missions(user: User, place: Place) -> list[int]:
    """Apply a visit of ``place`` to every in-flight mission of ``user``.

    Mutates the in-memory progress records and credits mission rewards.
    Returns the ids of the missions completed by this visit.
    """
    pending = [
        progress
        for progress in user.missions_progresses_ordered()
        if not progress.completed
    ]
    if not pending:
        return []

    mission_ids = {progress.mission_id for progress in pending}
    missions = {
        mission.id: mission
        for mission in Mission.query.filter(Mission.id.in_(sorted(mission_ids))).all()
    }

    completed: list[int] = []
    for progress in pending:
        mission = missions.get(progress.mission_id)
        if mission is None:
            logger.debug(
                "[MISSIONS] Skipping dangling mission %s for user %s",
                progress.mission_id,
                user.id,
            )
            continue
        if progress.has_counted(place.id):
            continue
        if not mission_counts_place(mission, place):
            continue

        if progress.count_place(place.id, mission.required_count):
            award_experience(user, mission.reward_exp, reason=f"mission:{mission.id}")
            completed.append(mission.id)
            logger.info("[MISSIONS] Mission %s completed by user %s", mission.id, user.id)
        else:
            logger.info(
                "[MISSIONS] Mission %s progress for user %s: %s/%s",
                mission.id,
                user.id,
                progress.progress,
                mission.required_count,
            )
    return completed


def list_missions() -> list[dict[str, Any]]:
    catalog = cache.get(CATALOG_CACHE_KEY)
    if catalog is None:
        catalog = [mission.serialize() for mission in Mission.query.order_by(Mission.id.asc()).all()]
        cache.set(CATALOG_CACHE_KEY, catalog)
    return catalog


def available_missions(user: User) -> list[dict[str, Any]]:
    """Missions the user has not activated yet."""
    active_ids = set(user.missions_progresses)
    query = Mission.query
    if active_ids:
        query = query.filter(Mission.id.notin_(sorted(active_ids)))
    return [mission.serialize() for mission in query.order_by(Mission.id.asc()).all()]


def activate_mission(user: User, raw_mission_id: Any) -> MissionProgress:
    if raw_mission_id in (None, ""):
        raise ValidationError("missionId is required", code="missing_mission_id")
    mission_id = parse_identifier(raw_mission_id)
    if mission_id is None:
        raise ValidationError("missionId is not valid", code="invalid_mission_id")

    mission = db.session.get(Mission, mission_id)
    if mission is None:
        raise NotFoundError("Mission not found", code="mission_not_found")
    if mission_id in user.missions_progresses:
        raise ConflictError("Mission already active", code="mission_already_active")
    if user.level < (mission.min_level or 0):
        raise PermissionDeniedError(
            "User level too low for this mission",
            code="level_too_low",
            payload={"requiredLevel": mission.min_level, "level": user.level},
        )

    progress = MissionProgress(mission_id=mission_id, progress=0, completed=False)
    user.missions_progresses[mission_id] = progress
    commit_or_rollback(logger, f"activation of mission {mission_id}")
    logger.info("[MISSIONS] User %s activated mission %s", user.id, mission_id)
    return progress


def remove_mission(user: User, raw_mission_id: Any) -> None:
    mission_id = parse_identifier(raw_mission_id)
    if mission_id is None or mission_id not in user.missions_progresses:
        raise NotFoundError("Mission not active for this user", code="mission_not_active")
    del user.missions_progresses[mission_id]
    commit_or_rollback(logger, f"removal of mission {mission_id}")
    logger.info("[MISSIONS] User %s dropped mission %s", user.id, mission_id)


def _positive_int(value: Any, field: str, *, minimum: int = 1) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", code="invalid_field", payload={"field": field})
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"{field} must be an integer", code="invalid_field", payload={"field": field}
        ) from None
    if number < minimum:
        raise ValidationError(
            f"{field} must be at least {minimum}", code="invalid_field", payload={"field": field}
        )
    return number


def _parse_required_places(raw: Iterable[Any]) -> list[int]:
    place_ids: list[int] = []
    for item in raw:
        candidate = item.get("placeId") if isinstance(item, dict) else item
        place_id = parse_identifier(candidate)
        if place_id is None:
            raise ValidationError(
                "requiredPlaces contains an invalid id",
                code="invalid_field",
                payload={"field": "requiredPlaces"},
            )
        if place_id not in place_ids:
            place_ids.append(place_id)
    return place_ids


def create_mission(payload: dict[str, Any]) -> Mission:
    name = payload.get("name")
    reward = payload.get("rewardExp")
    categories = payload.get("categories") or []
    required_places = payload.get("requiredPlaces") or []

    if not isinstance(name, str) or not name.strip() or reward in (None, ""):
        raise ValidationError("Missing required fields", code="missing_fields")
    if not isinstance(categories, list) or not isinstance(required_places, list):
        raise ValidationError("categories and requiredPlaces must be lists", code="invalid_field")
    if any(not isinstance(cat, str) or not cat.strip() for cat in categories):
        raise ValidationError(
            "Each category must be a non-empty string",
            code="invalid_field",
            payload={"field": "categories"},
        )

    place_ids = _parse_required_places(required_places)
    if not categories and not place_ids:
        raise ValidationError(
            "A mission needs categories or required places", code="missing_criteria"
        )
    if place_ids:
        known = {
            place_id
            for (place_id,) in db.session.query(Place.id).filter(Place.id.in_(place_ids)).all()
        }
        unknown = [place_id for place_id in place_ids if place_id not in known]
        if unknown:
            raise ValidationError(
                "Unknown required places",
                code="unknown_places",
                payload={"placeIds": unknown},
            )

    mission = Mission(
        name=name.strip(),
        description=payload.get("description"),
        reward_exp=_positive_int(reward, "rewardExp"),
        required_count=_positive_int(payload.get("requiredCount", 1), "requiredCount"),
        min_level=_positive_int(payload.get("minLevel", 0), "minLevel", minimum=0),
        categories=[cat.strip() for cat in categories],
        required_places=place_ids,
    )
    db.session.add(mission)
    commit_or_rollback(logger, "mission creation")
    cache.delete(CATALOG_CACHE_KEY)
    logger.info("[MISSIONS] Created mission %s (%s)", mission.id, mission.name)
    return mission


def mission_heatmap() -> list[dict[str, Any]]:
    """Count completed missions per required place, for places that still exist."""
    rows = (
        db.session.query(MissionProgress.mission_id, func.count(MissionProgress.id))
        .filter(MissionProgress.completed.is_(True))
        .group_by(MissionProgress.mission_id)
        .all()
    )
    if not rows:
        return []

    completions = dict(rows)
    counts: Counter[int] = Counter()
    for mission in Mission.query.filter(Mission.id.in_(list(completions))).all():
        for place_id in mission.required_place_ids:
            counts[place_id] += completions[mission.id]
    if not counts:
        return []

    places = Place.query.filter(Place.id.in_(list(counts))).all()
    result = [
        {
            "placeId": place.id,
            "name": place.name,
            "location": {"lat": place.lat, "lon": place.lon} if place.has_location else None,
            "completedMissions": counts[place.id],
        }
        for place in places
    ]
    result.sort(key=lambda item: (-item["completedMissions"], item["placeId"]))
    return result


__all__ = [
    "activate_mission",
    "available_missions",
    "create_mission",
    "list_missions",
    "mission_counts_place",
    "mission_heatmap",
    "reconcile_missions",
    "remove_mission",
]
