"""Visit validation, recording and orchestration.

A visit is accepted only when the claimed coordinates are within
``VISIT_RADIUS_METERS`` of the place. An accepted visit records the
discovery once, credits the discovery bonus for new places, feeds every
in-flight mission and is then saved with a single commit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from app.errors import NotFoundError, ValidationError
from app.models import db
from app.models.place import Place
from app.models.user import DiscoveredPlace, User
from app.services.gamification_service import DISCOVERY_BONUS_EXP, award_experience
from app.services.mission_service import reconcile_missions
from app.utils.db import commit_or_rollback
from app.utils.geo import haversine_m
from app.utils.logger import get_logger
from app.utils.validation import parse_coordinate, parse_identifier

logger = get_logger(__name__)

VISIT_RADIUS_METERS = 20.0


@dataclass(frozen=True)
class ValidatedVisit:
    place_id: int
    place: Place
    distance_m: float


@dataclass
class VisitOutcome:
    place_id: int
    newly_discovered: bool
    completed_missions: list[int] = field(default_factory=list)
    exp: int = 0
    expert: bool = False

    def serialize(self) -> dict[str, Any]:
        return {
            "success": True,
            "placeId": self.place_id,
            "newlyDiscovered": self.newly_discovered,
            "completedMissions": list(self.completed_missions),
            "exp": self.exp,
            "expert": self.expert,
        }


def validate_visit(raw_place_id: Any, raw_lat: Any, raw_lon: Any) -> ValidatedVisit:
    """Check the claimed place and position; no side effects."""
    place_id = parse_identifier(raw_place_id)
    if place_id is None:
        raise ValidationError("No valid place given", code="InvalidPlaceReference")

    lat = parse_coordinate(raw_lat)
    lon = parse_coordinate(raw_lon)
    if lat is None or lon is None:
        raise ValidationError("Coordinates not found", code="InvalidCoordinates")

    place = db.session.get(Place, place_id)
    if place is None:
        raise NotFoundError("Place not found", code="PlaceNotFound", status_code=400)
    if not place.has_location:
        raise ValidationError("Place has no location", code="PlaceMissingLocation")

    distance = haversine_m(lat, lon, place.lat, place.lon)
    if distance > VISIT_RADIUS_METERS:
        raise ValidationError(
            "User position outside the allowed radius",
            code="OutOfRange",
            payload={"distance": round(distance, 1), "maxDistance": VISIT_RADIUS_METERS},
        )
    return ValidatedVisit(place_id=place_id, place=place, distance_m=distance)


def record_visit(user: User, place_id: int, *, now: datetime | None = None) -> bool:
    """Add ``place_id`` to the user's discoveries; False when already known."""
    if place_id in user.discovered_places:
        return False
    user.discovered_places[place_id] = DiscoveredPlace(
        place_id=place_id,
        visited_at=now or datetime.now(timezone.utc),
    )
    return True


def trigger_visit(user: User, raw_place_id: Any, raw_lat: Any, raw_lon: Any) -> VisitOutcome:
    try:
        visit = validate_visit(raw_place_id, raw_lat, raw_lon)
    except (ValidationError, NotFoundError) as exc:
        logger.info("[VISIT] Rejected visit by user %s: %s", user.id, exc.code)
        raise

    newly_discovered = record_visit(user, visit.place_id)
    if newly_discovered:
        award_experience(user, DISCOVERY_BONUS_EXP, reason=f"discovery:{visit.place_id}")

    completed = reconcile_missions(user, visit.place)

    commit_or_rollback(logger, f"visit of place {visit.place_id} by user {user.id}")
    logger.info(
        "[VISIT] User %s visited place %s (new=%s, completed=%s)",
        user.id,
        visit.place_id,
        newly_discovered,
        completed,
    )
    return VisitOutcome(
        place_id=visit.place_id,
        newly_discovered=newly_discovered,
        completed_missions=completed,
        exp=user.exp,
        expert=bool(user.expert),
    )


__all__ = [
    "VISIT_RADIUS_METERS",
    "ValidatedVisit",
    "VisitOutcome",
    "record_visit",
    "trigger_visit",
    "validate_visit",
]
