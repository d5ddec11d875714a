"""
Logging setup for the forum migrator.

Configures the root logger from the application config so that pipeline
modules logging through ``logging.getLogger(__name__)`` and the Flask
application logger share the same handlers.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

_HANDLER_MARKER = "_forum_migrator_handler"

# Attributes present on every LogRecord; anything else was passed via ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys() | {"message", "asctime"}
)


class JsonFormatter(logging.Formatter):
    """Render records as single-line JSON documents."""

    def __init__(self, app_name: str = "forum-migrator"):
        super().__init__()
        self.app_name = app_name

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "app": self.app_name,
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-8s [%(name)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


def _build_formatter(app) -> logging.Formatter:
    if str(app.config.get("LOG_FORMAT", "json")).lower() == "json":
        return JsonFormatter(app.config.get("APP_NAME", "forum-migrator"))
    return TextFormatter()


def _resolve_level(value) -> int:
    level = logging.getLevelName(str(value or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(app) -> None:
    """
    Attach console and rotating-file handlers according to the app config.

    Safe to call repeatedly; handlers installed by a previous call are replaced.
    """
    level = _resolve_level(app.config.get("LOG_LEVEL", "INFO"))
    formatter = _build_formatter(app)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            root.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = []
    if app.config.get("ENABLE_CONSOLE_LOGGING", True):
        handlers.append(logging.StreamHandler())

    if app.config.get("ENABLE_FILE_LOGGING", False):
        log_dir = app.config.get("LOG_DIR", "logs")
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                os.path.join(log_dir, "forum_migrator.log"),
                maxBytes=int(app.config.get("LOG_FILE_MAX_BYTES", 10485760)),
                backupCount=int(app.config.get("LOG_FILE_BACKUP_COUNT", 10)),
                encoding="utf-8",
            )
        )

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARKER, True)
        root.addHandler(handler)

    root.setLevel(level)
    app.logger.setLevel(level)
    logging.getLogger("forum_migrator").setLevel(level)
    app.logger.debug(
        "Logging configured (level=%s, format=%s, handlers=%d)",
        logging.getLevelName(level),
        app.config.get("LOG_FORMAT", "json"),
        len(handlers),
    )
