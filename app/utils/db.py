from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from ..models import db


def commit_or_rollback(logger: logging.Logger, context: str) -> None:
    """Commit the session as the single save of a request; roll back on failure."""
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to commit %s", context)
        raise


__all__ = ["commit_or_rollback"]
