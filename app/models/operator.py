from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import validates

from . import db


class Operator(db.Model):
    """Community operator reviewing place submissions."""

    __tablename__ = "operators"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(128), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="operator", server_default="operator")
    name = db.Column(db.String(120), nullable=True)
    surname = db.Column(db.String(120), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=db.func.now(),
    )

    def __repr__(self):
        return f"<Operator {self.email}>"

    @validates("email")
    def _normalize_email(self, key: str, value: str | None) -> str:
        normalized = (value or "").strip().lower()
        if not normalized:
            raise ValueError("Email cannot be empty")
        return normalized

    def serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "name": self.name,
            "surname": self.surname,
        }


__all__ = ["Operator"]
