"""
CLI commands for preparing the target database and running migration drivers.
"""

from __future__ import annotations

import importlib
import json
from typing import Optional

import click
from flask.cli import ScriptInfo

from forum_migrator.importer.pipeline import (
    CHARSET_MAP,
    ImporterError,
    LoadSummary,
    MappingStore,
    MigrationEngine,
    fix_highest_post_numbers,
)
from forum_migrator.models.base import db
from forum_migrator.models.importer.schema import MappingType
from forum_migrator.utils.importer import (
    get_batch_size,
    get_converter_path,
    get_locale,
    get_source_charset,
    is_bbcode_to_md_enabled,
    is_importer_enabled,
)


@click.group(name="importer", invoke_without_command=True)
@click.pass_context
def importer_cli(ctx):
    """
    Forum migration commands.

    Displays the active importer settings when invoked without a subcommand.
    """
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    if not is_importer_enabled(app):
        raise click.ClickException(
            "Importer is disabled via IMPORTER_ENABLED=false. " "Enable it to run importer CLI commands."
        )
    if ctx.invoked_subcommand is None:
        click.echo(f"Source charset: {get_source_charset(app)}")
        click.echo(f"BBCode converter: {'enabled' if is_bbcode_to_md_enabled(app) else 'disabled'}")
        converter_path = get_converter_path(app)
        if converter_path:
            click.echo(f"Converter path: {converter_path}")
        click.echo(f"Batch size: {get_batch_size(app)}")
        click.echo(f"Locale: {get_locale(app)}")


def get_disabled_importer_group() -> click.Group:
    """
    Return a minimal command group that informs the operator the importer is disabled.
    """

    @click.group(name="importer", invoke_without_command=True)
    def disabled_group():
        raise click.ClickException("Importer commands are unavailable because IMPORTER_ENABLED=false.")

    return disabled_group


def _load_driver(path: str) -> type[MigrationEngine]:
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise click.ClickException(f"Driver '{path}' must look like 'package.module:DriverClass'.")
    try:
        module = importlib.import_module(module_name)
        driver = getattr(module, attribute)
    except (ImportError, AttributeError) as exc:
        raise click.ClickException(f"Unable to load driver '{path}': {exc}") from exc
    if not isinstance(driver, type) or not issubclass(driver, MigrationEngine):
        raise click.ClickException(f"Driver '{path}' is not a MigrationEngine subclass.")
    return driver


def _format_summary(summaries: dict[str, LoadSummary]) -> str:
    if not summaries:
        return "Import finished; the driver did not load any entities."
    lines = ["Import finished:"]
    for entity, summary in summaries.items():
        lines.append(
            f"  - {entity}: processed={summary.rows_processed} inserted={summary.rows_inserted} "
            f"skipped={summary.rows_skipped} dropped={summary.rows_dropped} failed={summary.rows_failed}"
        )
    return "\n".join(lines)


@importer_cli.command("prepare")
@click.pass_context
def importer_prepare(ctx):
    """Create target and bookkeeping tables and repair highest post numbers."""
    app = ctx.ensure_object(ScriptInfo).load_app()
    with app.app_context():
        db.create_all()
        fixed = fix_highest_post_numbers(db.session)
    click.echo(f"Target schema ready. Repaired highest post numbers on {fixed} topics.")


@importer_cli.command("status")
@click.option("--json", "as_json", is_flag=True, help="Emit mapping counts as JSON.")
@click.pass_context
def importer_status(ctx, as_json: bool):
    """Show how many records of each entity type have been migrated."""
    app = ctx.ensure_object(ScriptInfo).load_app()
    with app.app_context():
        store = MappingStore(db.session)
        store.ensure_table()
        store.bulk_load()
        counts = store.counts()
        payload = {
            "mappings": counts,
            "last_imported": {
                entity_type.label: store.last_imported_id(entity_type)
                for entity_type in (MappingType.TOPIC, MappingType.POST)
            },
        }

    if as_json:
        click.echo(json.dumps(payload, indent=2, sort_keys=True))
        return
    click.echo("Migrated records:")
    for label, count in counts.items():
        click.echo(f"  - {label}: {count}")


@importer_cli.command("run")
@click.argument("driver")
@click.option(
    "--bbcode-to-md/--no-bbcode-to-md",
    default=None,
    help="Run the configured BBCode converter over post bodies.",
)
@click.option(
    "--charset",
    type=click.Choice(sorted(CHARSET_MAP), case_sensitive=False),
    help="Source database charset (defaults to IMPORTER_SOURCE_CHARSET).",
)
@click.pass_context
def importer_run(ctx, driver: str, bbcode_to_md: Optional[bool], charset: Optional[str]):
    """Run the migration DRIVER, given as 'package.module:DriverClass'."""
    app = ctx.ensure_object(ScriptInfo).load_app()
    driver_class = _load_driver(driver)

    with app.app_context():
        try:
            engine = driver_class(charset=charset, bbcode_to_md=bbcode_to_md)
            summaries = engine.run()
        except ImporterError as exc:
            app.logger.error("Importer run failed: %s", exc, extra={"importer_driver": driver})
            raise click.ClickException(str(exc)) from exc

    click.echo(_format_summary(summaries))
