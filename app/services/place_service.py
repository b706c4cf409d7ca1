"""Place catalog: field validation, name normalization and nearby ranking."""

from __future__ import annotations

import re
from typing import Any, Mapping

from flask import current_app
from slugify import slugify

from app.errors import NotFoundError, ValidationError
from app.models import db
from app.models.place import Place
from app.models.user import User
from app.utils.geo import haversine_km
from app.utils.logger import get_logger
from app.utils.validation import parse_coordinate, parse_identifier

logger = get_logger(__name__)

PLACE_FIELDS = ("name", "description", "categories", "location", "images", "isFree")
NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 100
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 500
MAX_IMAGES = 10
DEFAULT_NEARBY_RADIUS_KM = 5.0

_IMAGE_DATA_PATTERN = re.compile(r"^data:image/(png|jpeg|jpg|gif);base64,")
_APOSTROPHES = [["'", ""], ["’", ""], ["´", ""], ["`", ""]]


def normalize_place_name(name: str) -> str:
    """Fold a place name for duplicate detection: "Città Fantastica" -> "citta fantastica"."""
    normalized = slugify(name or "", separator=" ", replacements=_APOSTROPHES)
    return normalized or (name or "").strip().lower()


def _invalid(message: str, field: str) -> ValidationError:
    return ValidationError(message, code="invalid_place", payload={"field": field})


def _clean_field(field: str, value: Any) -> Any:
    if field == "name":
        if not isinstance(value, str) or not value.strip():
            raise _invalid("Name is missing", field)
        name = value.strip()
        if len(name) < NAME_MIN_LENGTH:
            raise _invalid("Name is too short", field)
        if len(name) > NAME_MAX_LENGTH:
            raise _invalid("Name is too long", field)
        return name

    if field == "categories":
        if not isinstance(value, list) or not value:
            raise _invalid("Categories are not valid", field)
        for category in value:
            if not isinstance(category, str) or not category.strip():
                raise _invalid("Each category must be a non-empty string", field)
        return [category.strip() for category in value]

    if field == "location":
        if not isinstance(value, Mapping):
            raise _invalid("Coordinates are not valid", field)
        lat = parse_coordinate(value.get("lat"))
        lon = parse_coordinate(value.get("lon"))
        if lat is None or lon is None:
            raise _invalid("Coordinates are not valid", field)
        return {"lat": lat, "lon": lon}

    if field == "isFree":
        if not isinstance(value, bool):
            raise _invalid("isFree must be a boolean", field)
        return value

    if field == "description":
        if value in (None, ""):
            return None
        if not isinstance(value, str):
            raise _invalid("Description must be text", field)
        if len(value) < DESCRIPTION_MIN_LENGTH:
            raise _invalid("Description is too short", field)
        if len(value) > DESCRIPTION_MAX_LENGTH:
            raise _invalid("Description is too long", field)
        return value

    if field == "images":
        if value is None:
            return []
        if not isinstance(value, list):
            raise _invalid("Images must be a list", field)
        if len(value) > MAX_IMAGES:
            raise _invalid(f"At most {MAX_IMAGES} images per place", field)
        for image in value:
            if not isinstance(image, str):
                raise _invalid("Images are not valid", field)
            if not _IMAGE_DATA_PATTERN.match(image):
                raise _invalid("Image format not supported", field)
        return list(value)

    raise _invalid("Unknown field", field)


def validate_new_place(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Validate a complete new-place proposal and return the cleaned fields."""
    cleaned: dict[str, Any] = {}
    for field in ("name", "categories", "location"):
        cleaned[field] = _clean_field(field, payload.get(field))
    if "isFree" not in payload:
        raise _invalid("isFree must be a boolean", "isFree")
    cleaned["isFree"] = _clean_field("isFree", payload.get("isFree"))
    description = _clean_field("description", payload.get("description"))
    if description is not None:
        cleaned["description"] = description
    cleaned["images"] = _clean_field("images", payload.get("images"))
    return cleaned


def validate_place_changes(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Validate the subset of place fields present in an edit proposal."""
    cleaned = {
        field: _clean_field(field, payload[field])
        for field in PLACE_FIELDS
        if field in payload
    }
    if not cleaned:
        raise ValidationError("No place fields were provided", code="no_changes")
    return cleaned


def changed_fields(place: Place, changes: Mapping[str, Any]) -> dict[str, Any]:
    """Drop proposed values that already match the current place."""
    current = place.serialize()
    return {field: value for field, value in changes.items() if current.get(field) != value}


def apply_place_changes(place: Place, changes: Mapping[str, Any]) -> Place:
    """Overwrite only the fields present in ``changes``."""
    if "name" in changes:
        place.name = changes["name"]
        place.normalized_name = normalize_place_name(changes["name"])
    if "description" in changes:
        place.description = changes["description"]
    if "categories" in changes:
        place.categories = list(changes["categories"])
    if "location" in changes:
        place.lat = changes["location"]["lat"]
        place.lon = changes["location"]["lon"]
    if "images" in changes:
        place.images = list(changes["images"] or [])
    if "isFree" in changes:
        place.is_free = bool(changes["isFree"])
    return place


def find_place_by_normalized_name(normalized: str) -> Place | None:
    return Place.query.filter(Place.normalized_name == normalized).first()


def get_place(raw_place_id: Any) -> Place:
    place_id = parse_identifier(raw_place_id)
    place = db.session.get(Place, place_id) if place_id is not None else None
    if place is None:
        raise NotFoundError("Place not found", code="place_not_found", status_code=400)
    return place


def nearby_places(
    user: User,
    *,
    lat: Any = None,
    lon: Any = None,
    radius: Any = None,
) -> list[dict[str, Any]]:
    """Places the user has not discovered yet, filtered by preference.

    With coordinates, only places within ``radius`` kilometers are returned,
    closest first, each carrying its ``distance`` in kilometers.
    """
    query = Place.query
    discovered = list(user.discovered_places)
    if discovered:
        query = query.filter(Place.id.notin_(discovered))
    places = query.order_by(Place.id.asc()).all()

    preferred = set(user.preferred_categories or [])
    if preferred:
        places = [place for place in places if place.category_set & preferred]
        if not user.also_paid:
            places = [place for place in places if place.is_free]

    if lat in (None, "") and lon in (None, ""):
        return [place.serialize() for place in places]

    user_lat = parse_coordinate(lat)
    user_lon = parse_coordinate(lon)
    if user_lat is None or user_lon is None:
        raise ValidationError("Coordinates are not valid", code="invalid_coordinates")

    if radius in (None, ""):
        radius_km = float(
            current_app.config.get("NEARBY_DEFAULT_RADIUS_KM", DEFAULT_NEARBY_RADIUS_KM)
        )
    else:
        radius_km = parse_coordinate(radius)
        if radius_km is None or radius_km <= 0:
            raise ValidationError("Radius must be a positive number", code="invalid_radius")

    ranked = []
    for place in places:
        if not place.has_location:
            continue
        distance = haversine_km(user_lat, user_lon, place.lat, place.lon)
        if distance <= radius_km:
            ranked.append((distance, place))
    ranked.sort(key=lambda item: (item[0], item[1].id))
    return [place.serialize(distance=distance) for distance, place in ranked]


__all__ = [
    "apply_place_changes",
    "changed_fields",
    "find_place_by_normalized_name",
    "get_place",
    "nearby_places",
    "normalize_place_name",
    "validate_new_place",
    "validate_place_changes",
]
