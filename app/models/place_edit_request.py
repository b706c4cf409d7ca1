from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from . import db

REQUEST_STATUSES = ("pending", "approved", "rejected")


class PlaceEditRequest(db.Model):
    """A staged proposal to create or modify a place, reviewed by an operator."""

    __tablename__ = "place_edit_requests"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending','approved','rejected')",
            name="ck_place_edit_requests_status",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    # Absent until an approved new-place request is materialized.
    place_id = db.Column(db.Integer, nullable=True, index=True)
    proposed_changes = db.Column(db.JSON, nullable=False)
    is_new_place = db.Column(
        db.Boolean, nullable=False, default=False, server_default=db.text("false")
    )
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)
    operator_comment = db.Column(db.Text, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        server_default=db.func.now(),
    )

    user = db.relationship("User", foreign_keys=[user_id], lazy="joined")
    operator = db.relationship("Operator", foreign_keys=[operator_id], lazy="joined")

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"

    def mark_reviewed(self, status: str, operator_id: int, comment: str | None) -> None:
        self.status = status
        self.operator_id = operator_id
        self.operator_comment = comment or ""

    def serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "placeId": self.place_id,
            "proposedChanges": dict(self.proposed_changes or {}),
            "isNewPlace": bool(self.is_new_place),
            "status": self.status,
            "operatorId": self.operator_id,
            "operatorComment": self.operator_comment,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


__all__ = ["PlaceEditRequest", "REQUEST_STATUSES"]
