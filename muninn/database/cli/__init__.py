#!/usr/bin/env python3
"""
Muninn Journal CLI
-----------------------------------

Modular command-line interface for the journal.

This module provides the main CLI group and shared context setup
for all commands.

Command Structure:
    - Setup & Maintenance (init, prune)
    - Entries (entries list/show/update/delete/search)
    - Pipeline (ingest, transcribe, retranscribe, analyze, questions)
    - Tags (tags list/add/remove)
    - Settings (settings get/set)
    - Mirror (mirror rebuild)

Usage:
    # Get general help
    muninn --help

    # Get help for a specific command group
    muninn entries --help

    # Use another data directory
    muninn --data-dir ~/journal entries list
"""
import click
import logging
import sys
from pathlib import Path

from muninn.core.config import JournalConfig
from muninn.core.exceptions import (
    DatabaseError,
    ExternalServiceError,
    StorageError,
    ValidationError,
)
from muninn.core.logging_manager import JournalLogger
from muninn.database.manager import JournalDB
from muninn.pipeline.orchestrator import JournalPipeline

# Errors a command reports through handle_cli_error
CLI_ERRORS = (ValidationError, DatabaseError, StorageError, ExternalServiceError)


@click.group()
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Journal data directory (default: MUNINN_DATA_DIR or ./data)",
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Path to log directory (default: <data-dir>/logs)",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Show detailed errors and tracebacks",
)
@click.pass_context
def cli(ctx, data_dir, log_dir, verbose):
    """Muninn voice journal"""

    # Suppress Alembic INFO logging by default
    logging.getLogger("alembic").setLevel(logging.WARNING)

    ctx.ensure_object(dict)
    config = JournalConfig.from_env(data_dir=Path(data_dir) if data_dir else None)
    ctx.obj.setdefault("config", config)
    ctx.obj["log_dir"] = Path(log_dir) if log_dir else ctx.obj["config"].log_dir
    ctx.obj["verbose"] = verbose
    ctx.obj.setdefault(
        "logger", JournalLogger(ctx.obj["log_dir"], component_name="cli")
    )


def get_pipeline(ctx) -> JournalPipeline:
    """Get or create the pipeline (and its database) from context."""
    if "pipeline" not in ctx.obj:
        ctx.obj["pipeline"] = JournalPipeline.from_config(
            ctx.obj["config"], logger=ctx.obj["logger"]
        )
    return ctx.obj["pipeline"]


def get_db(ctx) -> JournalDB:
    """Database instance shared with the pipeline."""
    return get_pipeline(ctx).db


def not_found(entry_id: str) -> None:
    """Report a missing entry and exit 1."""
    click.echo(f"❌ Entry not found: {entry_id}", err=True)
    sys.exit(1)


# Import and register command modules
# These imports must come after CLI group definition
from .setup import init, prune  # noqa: E402
from .entries import entries  # noqa: E402
from .pipeline import ingest, transcribe, retranscribe, analyze, questions  # noqa: E402
from .tags import tags  # noqa: E402
from .settings import settings  # noqa: E402
from .mirror import mirror  # noqa: E402

# Register top-level commands
cli.add_command(init)
cli.add_command(prune)
cli.add_command(ingest)
cli.add_command(transcribe)
cli.add_command(retranscribe)
cli.add_command(analyze)
cli.add_command(questions)

# Register command groups
cli.add_command(entries)
cli.add_command(tags)
cli.add_command(settings)
cli.add_command(mirror)


if __name__ == "__main__":
    cli(obj={})
