"""User aggregate: profile, preferences, discoveries and mission progress."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import attribute_keyed_dict, validates

from . import db

EXPERT_EXP_THRESHOLD = 50
EXP_PER_LEVEL = 100


def _normalize_datetime(dt: datetime | None) -> datetime:
    """Return a timezone-aware UTC datetime (SQLite drops tzinfo on reload)."""
    if dt is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class User(db.Model):
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint("exp >= 0", name="ck_users_exp_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False)
    email = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(120), nullable=True)
    surname = db.Column(db.String(120), nullable=True)
    password_hash = db.Column(db.String(128), nullable=False, default="")
    profile_image = db.Column(db.Text, nullable=True)
    also_paid = db.Column(
        db.Boolean, nullable=False, default=False, server_default=db.text("false")
    )
    preferred_categories = db.Column(db.JSON, nullable=False, default=list)
    expert = db.Column(
        db.Boolean, nullable=False, default=False, server_default=db.text("false")
    )
    exp = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=db.func.now(),
    )

    discovered_places = db.relationship(
        "DiscoveredPlace",
        back_populates="user",
        collection_class=attribute_keyed_dict("place_id"),
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    missions_progresses = db.relationship(
        "MissionProgress",
        back_populates="user",
        collection_class=attribute_keyed_dict("mission_id"),
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<User {self.username}>"

    @validates("email")
    def _normalize_email(self, key: str, value: str | None) -> str:
        if value is None:
            raise ValueError("Email cannot be null")
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("Email cannot be empty")
        return normalized

    # --- Experience ledger --------------------------------------------
    def add_experience(self, amount: int) -> int:
        """Credit ``amount`` experience and promote to expert at the threshold.

        This is the only place where ``exp`` and ``expert`` change. Non
        positive amounts are ignored so the balance never decreases.
        """
        amount = int(amount)
        if amount <= 0:
            return self.exp or 0
        self.exp = (self.exp or 0) + amount
        if not self.expert and self.exp >= EXPERT_EXP_THRESHOLD:
            self.expert = True
        return self.exp

    @property
    def level(self) -> int:
        return (self.exp or 0) // EXP_PER_LEVEL

    # --- Ordered views -------------------------------------------------
    def discovered_places_ordered(self) -> list["DiscoveredPlace"]:
        return sorted(
            self.discovered_places.values(),
            key=lambda entry: (_normalize_datetime(entry.visited_at), entry.id or 0),
        )

    def missions_progresses_ordered(self) -> list:
        return sorted(
            self.missions_progresses.values(),
            key=lambda entry: (_normalize_datetime(entry.activated_at), entry.id or 0),
        )

    def serialize(self, *, private: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "surname": self.surname,
            "profileImage": self.profile_image,
            "expert": bool(self.expert),
            "exp": self.exp or 0,
            "level": self.level,
        }
        if private:
            data.update(
                {
                    "email": self.email,
                    "preferences": {
                        "alsoPaid": bool(self.also_paid),
                        "categories": list(self.preferred_categories or []),
                    },
                    "discoveredPlaces": [
                        entry.serialize() for entry in self.discovered_places_ordered()
                    ],
                    "missionsProgresses": [
                        entry.serialize() for entry in self.missions_progresses_ordered()
                    ],
                }
            )
        return data


class DiscoveredPlace(db.Model):
    """A place the user has physically visited, at most once per place."""

    __tablename__ = "discovered_places"
    __table_args__ = (
        db.UniqueConstraint("user_id", "place_id", name="uq_discovered_places_user_place"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Weak reference: places may be removed without touching discoveries.
    place_id = db.Column(db.Integer, nullable=False)
    visited_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    user = db.relationship("User", back_populates="discovered_places")

    def serialize(self) -> dict[str, Any]:
        return {
            "placeId": self.place_id,
            "visitedAt": self.visited_at.isoformat() if self.visited_at else None,
        }


__all__ = ["DiscoveredPlace", "EXPERT_EXP_THRESHOLD", "EXP_PER_LEVEL", "User"]
