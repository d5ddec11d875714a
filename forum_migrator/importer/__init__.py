"""
Importer feature package.

Registers the ``flask importer`` CLI group and records importer state on the
application while remaining lightweight when the importer is disabled.
"""

from __future__ import annotations

from flask import Flask

from forum_migrator.utils.importer import (
    get_batch_size,
    get_locale,
    get_source_charset,
    is_bbcode_to_md_enabled,
    is_importer_enabled,
)

from .cli import get_disabled_importer_group, importer_cli
from .pipeline import MigrationEngine

IMPORTER_EXTENSION_KEY = "importer"

__all__ = [
    "init_importer",
    "IMPORTER_EXTENSION_KEY",
    "MigrationEngine",
]


def _ensure_extension_state(app: Flask) -> dict:
    return app.extensions.setdefault(
        IMPORTER_EXTENSION_KEY,
        {
            "enabled": False,
            "source_charset": "utf8",
            "bbcode_to_md": False,
            "batch_size": 0,
        },
    )


def _set_cli(app: Flask, enabled: bool) -> None:
    """Register the appropriate CLI group based on flag state."""
    command_name = importer_cli.name
    if command_name in app.cli.commands:
        app.cli.commands.pop(command_name)

    if enabled:
        app.cli.add_command(importer_cli)
    else:
        app.cli.add_command(get_disabled_importer_group())


def init_importer(app: Flask) -> None:
    """
    Mount the importer CLI based on configuration.

    Records importer state inside ``app.extensions['importer']`` for reuse by
    the CLI and other helpers.
    """
    enabled = is_importer_enabled(app)
    state = _ensure_extension_state(app)
    state.update(
        {
            "enabled": enabled,
            "source_charset": get_source_charset(app),
            "bbcode_to_md": is_bbcode_to_md_enabled(app),
            "batch_size": get_batch_size(app),
            "locale": get_locale(app),
        }
    )

    if not enabled:
        _set_cli(app, enabled=False)
        app.logger.info("Importer disabled via IMPORTER_ENABLED flag; skipping registration.")
        return

    _set_cli(app, enabled=True)
    app.logger.info(
        "Importer enabled (charset=%s, bbcode_to_md=%s, batch_size=%s)",
        state["source_charset"],
        state["bbcode_to_md"],
        state["batch_size"],
    )
