"""Canonical point-of-interest records."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from . import db


class Place(db.Model):
    """A discoverable place, created and edited only through moderation."""

    __tablename__ = "places"

    id: int = db.Column(db.Integer, primary_key=True)
    name: str = db.Column(db.String(100), nullable=False)
    normalized_name: str = db.Column(db.String(100), nullable=False, unique=True, index=True)
    description: str | None = db.Column(db.Text)
    categories = db.Column(db.JSON, nullable=False, default=list)
    lat: float | None = db.Column(db.Float)
    lon: float | None = db.Column(db.Float)
    images = db.Column(db.JSON, nullable=False, default=list)
    is_free: bool = db.Column(db.Boolean, nullable=False, default=True)
    created_at: datetime = db.Column(
        db.DateTime, server_default=db.func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Place id={self.id} name={self.name!r}>"

    @property
    def has_location(self) -> bool:
        return self.lat is not None and self.lon is not None

    @property
    def category_set(self) -> set[str]:
        return set(self.categories or [])

    def serialize(self, *, distance: float | None = None) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "categories": list(self.categories or []),
            "location": (
                {"lat": self.lat, "lon": self.lon} if self.has_location else None
            ),
            "images": list(self.images or []),
            "isFree": bool(self.is_free),
        }
        if distance is not None:
            data["distance"] = distance
        return data


__all__ = ["Place"]
