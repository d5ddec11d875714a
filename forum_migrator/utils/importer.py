"""
Utility helpers for importer feature flag and setting lookups.
"""

from __future__ import annotations

from flask import current_app

DEFAULT_BATCH_SIZE = 1000
DEFAULT_PROGRESS_EVERY = 100
DEFAULT_AVATAR_TEMPLATE = "/user_avatar/{username_lower}/{size}/1.png"
DEFAULT_LOCALE = "en"


def _get_config(app=None):
    if app is not None:
        return app.config
    return current_app.config


def _positive_int(value, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def is_importer_enabled(app=None) -> bool:
    """Return True when the importer feature flag is enabled."""
    config = _get_config(app)
    return bool(config.get("IMPORTER_ENABLED", False))


def is_bbcode_to_md_enabled(app=None) -> bool:
    config = _get_config(app)
    return bool(config.get("IMPORTER_BBCODE_TO_MD", False))


def get_converter_path(app=None) -> str | None:
    config = _get_config(app)
    return config.get("IMPORTER_BBCODE_CONVERTER") or None


def get_source_charset(app=None) -> str:
    config = _get_config(app)
    return (config.get("IMPORTER_SOURCE_CHARSET") or "utf8").strip().lower()


def get_batch_size(app=None) -> int:
    config = _get_config(app)
    return _positive_int(config.get("IMPORTER_BATCH_SIZE"), DEFAULT_BATCH_SIZE)


def get_progress_every(app=None) -> int:
    config = _get_config(app)
    return _positive_int(config.get("IMPORTER_PROGRESS_EVERY"), DEFAULT_PROGRESS_EVERY)


def get_avatar_template(app=None) -> str:
    config = _get_config(app)
    return config.get("IMPORTER_AVATAR_TEMPLATE") or DEFAULT_AVATAR_TEMPLATE


def get_locale(app=None) -> str:
    config = _get_config(app)
    return (config.get("IMPORTER_LOCALE") or DEFAULT_LOCALE).strip()
