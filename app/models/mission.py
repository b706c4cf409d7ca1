"""Mission catalog and per-user mission progress."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import attribute_keyed_dict

from . import db


class Mission(db.Model):
    """A goal built either on a fixed list of places or on place categories."""

    __tablename__ = "missions"
    __table_args__ = (
        db.CheckConstraint("reward_exp > 0", name="ck_missions_reward_positive"),
        db.CheckConstraint("required_count >= 1", name="ck_missions_required_count_positive"),
        db.CheckConstraint("min_level >= 0", name="ck_missions_min_level_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    min_level = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    reward_exp = db.Column(db.Integer, nullable=False)
    categories = db.Column(db.JSON, nullable=False, default=list)
    # Place ids, kept as weak references.
    required_places = db.Column(db.JSON, nullable=False, default=list)
    required_count = db.Column(db.Integer, nullable=False, default=1, server_default="1")
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Mission id={self.id} name={self.name!r}>"

    @property
    def required_place_ids(self) -> set[int]:
        return {int(place_id) for place_id in (self.required_places or [])}

    @property
    def category_set(self) -> set[str]:
        return set(self.categories or [])

    @property
    def is_place_based(self) -> bool:
        return bool(self.required_places)

    def serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "minLevel": self.min_level,
            "rewardExp": self.reward_exp,
            "categories": list(self.categories or []),
            "requiredPlaces": [{"placeId": place_id} for place_id in (self.required_places or [])],
            "requiredCount": self.required_count,
        }


class MissionProgress(db.Model):
    """A user's tracking record for one activated mission."""

    __tablename__ = "mission_progresses"
    __table_args__ = (
        db.UniqueConstraint("user_id", "mission_id", name="uq_mission_progresses_user_mission"),
        db.CheckConstraint("progress >= 0", name="ck_mission_progresses_progress_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Weak reference: a deleted mission leaves the record in place.
    mission_id = db.Column(db.Integer, nullable=False)
    progress = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    completed = db.Column(
        db.Boolean, nullable=False, default=False, server_default=db.text("false")
    )
    activated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", back_populates="missions_progresses")
    required_places_visited = db.relationship(
        "MissionProgressPlace",
        back_populates="mission_progress",
        collection_class=attribute_keyed_dict("place_id"),
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<MissionProgress user_id={self.user_id} mission_id={self.mission_id} "
            f"progress={self.progress} completed={self.completed}>"
        )

    def has_counted(self, place_id: int) -> bool:
        return place_id in self.required_places_visited

    def count_place(self, place_id: int, required_count: int) -> bool:
        """Count ``place_id`` toward this mission; return True when it completes."""
        if self.completed or self.has_counted(place_id):
            return False
        self.required_places_visited[place_id] = MissionProgressPlace(place_id=place_id)
        self.progress = len(self.required_places_visited)
        if self.progress >= required_count:
            self.completed = True
            self.completed_at = datetime.now(timezone.utc)
            return True
        return False

    def serialize(self) -> dict[str, Any]:
        return {
            "missionId": self.mission_id,
            "requiredPlacesVisited": [
                {"placeId": place_id} for place_id in sorted(self.required_places_visited)
            ],
            "progress": self.progress or 0,
            "completed": bool(self.completed),
        }


class MissionProgressPlace(db.Model):
    __tablename__ = "mission_progress_places"
    __table_args__ = (
        db.UniqueConstraint(
            "mission_progress_id", "place_id", name="uq_mission_progress_places_progress_place"
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    mission_progress_id = db.Column(
        db.Integer,
        db.ForeignKey("mission_progresses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    place_id = db.Column(db.Integer, nullable=False)

    mission_progress = db.relationship("MissionProgress", back_populates="required_places_visited")


__all__ = ["Mission", "MissionProgress", "MissionProgressPlace"]
