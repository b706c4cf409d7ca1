import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from flask import has_request_context, request

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s %(request_line)s: %(message)s"
DEFAULT_LOG_DIR = Path("logs")
_configured_key: tuple[Path, int] | None = None


class RequestContextFilter(logging.Filter):
    """Attach ``METHOD /path`` of the current request, or ``-`` outside one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.request_line = f"{request.method} {request.path}"
        else:
            record.request_line = "-"
        return True


def configure_logging(log_dir: Optional[str] = None, level: str | int = "INFO") -> None:
    """Send every ``placequest`` record to stderr and ``<log_dir>/app.log``."""

    global _configured_key

    requested_dir = Path(log_dir) if log_dir else DEFAULT_LOG_DIR
    numeric_level = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    if _configured_key == (requested_dir, numeric_level):
        return

    requested_dir.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT)
    context_filter = RequestContextFilter()

    stream_handler = logging.StreamHandler()
    file_handler = RotatingFileHandler(
        requested_dir / "app.log", maxBytes=5 * 1024 * 1024, backupCount=5
    )
    for handler in (stream_handler, file_handler):
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Reloader in debug mode would otherwise stack handlers
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    root_logger.addHandler(stream_handler)
    root_logger.addHandler(file_handler)

    _configured_key = (requested_dir, numeric_level)


def get_logger(name: str = "placequest") -> logging.Logger:
    return logging.getLogger(name)
