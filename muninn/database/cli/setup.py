"""
Setup & Maintenance Commands
--------------------------------

Commands:
    - init: Create the data directory and bring the schema to head
    - prune: Sweep abandoned uploads and delete empty pending entries
"""
from datetime import timedelta

import click

from muninn.core.logging_manager import handle_cli_error
from . import CLI_ERRORS, get_db, get_pipeline


@click.command()
@click.pass_context
def init(ctx):
    """Initialize the journal database (safe to run repeatedly)."""
    try:
        click.echo("🚀 Initializing Muninn journal...")
        db = get_db(ctx)
        click.echo("🗄️  Bringing schema up to date...")
        db.initialize_schema()

        history = db.get_migration_history()
        click.echo(f"✅ Database ready at {db.db_path}")
        click.echo(f"   Revision: {history.get('current_revision')}")

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "init")


@click.command()
@click.option(
    "--older-than",
    type=float,
    default=24.0,
    show_default=True,
    help="Age in hours of empty pending entries to delete",
)
@click.option("--dry-run", is_flag=True, help="Only sweep uploads; keep entries")
@click.pass_context
def prune(ctx, older_than, dry_run):
    """Remove abandoned uploads and empty pending entries."""
    try:
        pipeline = get_pipeline(ctx)

        swept = pipeline.sweep_abandoned_uploads()
        click.echo(f"🧹 Abandoned uploads swept: {len(swept)}")

        if dry_run:
            click.echo("💡 Dry run: pending entries were not deleted")
            return

        deleted = pipeline.db.prune_pending_entries(timedelta(hours=older_than))
        click.echo(f"🗑️  Empty pending entries deleted: {len(deleted)}")
        for entry_id in deleted:
            click.echo(f"  • {entry_id}")

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "prune", additional_context={"older_than": older_than})
