"""Loading the target-site defaults profile used to fill empty importer fields."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from flask import current_app, has_app_context

from forum_migrator.importer.pipeline.errors import SiteDefaultsError

DEFAULT_SITE_DEFAULTS_PATH = Path(__file__).resolve().parents[2] / "config" / "site_defaults.yaml"

_GROUP_LEVELS = ("visibility_level", "members_visibility_level", "mentionable_level", "messageable_level")


@dataclass(frozen=True)
class SiteDefaults:
    system_user_id: int = -1
    default_trust_level: int = 1
    uncategorized_category_id: int = -1
    default_archetype: str = "regular"
    private_message_archetype: str = "private_message"
    group_levels: Mapping[str, int] = field(default_factory=lambda: {name: 0 for name in _GROUP_LEVELS})
    user_options: Mapping[str, Any] = field(default_factory=dict)
    path: Path | None = None


def load_site_defaults(path: str | Path | None = None) -> SiteDefaults:
    """
    Load and validate a YAML site-defaults profile.
    """

    path = Path(path) if path else DEFAULT_SITE_DEFAULTS_PATH
    if not path.exists():
        raise SiteDefaultsError(f"Site defaults file not found at {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - YAML parser errors
        raise SiteDefaultsError(f"Failed to parse site defaults YAML at {path}: {exc}") from exc

    if not isinstance(raw, Mapping):
        raise SiteDefaultsError(f"Site defaults at {path} must be a mapping, got {type(raw).__name__}.")

    archetypes = raw.get("archetypes") or {}
    groups = raw.get("groups") or {}
    user_options = raw.get("user_options") or {}
    if not isinstance(archetypes, Mapping) or not isinstance(groups, Mapping) or not isinstance(user_options, Mapping):
        raise SiteDefaultsError("'archetypes', 'groups' and 'user_options' must be mappings.")

    try:
        group_levels = {name: int(groups.get(name, 0)) for name in _GROUP_LEVELS}
        return SiteDefaults(
            system_user_id=int(raw.get("system_user_id", -1)),
            default_trust_level=int(raw.get("default_trust_level", 1)),
            uncategorized_category_id=int(raw.get("uncategorized_category_id", -1)),
            default_archetype=str(archetypes.get("default", "regular")).strip(),
            private_message_archetype=str(archetypes.get("private_message", "private_message")).strip(),
            group_levels=group_levels,
            user_options=dict(user_options),
            path=path,
        )
    except (TypeError, ValueError) as exc:
        raise SiteDefaultsError(f"Invalid site defaults attribute: {exc}") from exc


def get_site_defaults() -> SiteDefaults:
    """
    Load the configured site defaults, cached per application.
    """

    if not has_app_context():
        return load_site_defaults()

    configured = current_app.config.get("IMPORTER_SITE_DEFAULTS_PATH")
    cache: dict[str, SiteDefaults] = current_app.extensions.setdefault("_importer_site_defaults_cache", {})
    cache_key = str(configured or DEFAULT_SITE_DEFAULTS_PATH)
    if cache_key not in cache:
        cache[cache_key] = load_site_defaults(configured)
    return cache[cache_key]
