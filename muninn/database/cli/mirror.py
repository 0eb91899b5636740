"""
Mirror Commands
------------------------

Commands:
    - rebuild: Rewrite every entry's markdown file
    - path: Print where an entry's markdown lives
"""
import click

from muninn.core.logging_manager import handle_cli_error
from . import CLI_ERRORS, get_db, not_found


@click.group()
@click.pass_context
def mirror(ctx: click.Context) -> None:
    """Maintain the markdown mirror."""
    pass


@mirror.command("rebuild")
@click.pass_context
def rebuild(ctx):
    """Resync all entries to markdown."""
    try:
        db = get_db(ctx)
        click.echo("🔄 Rebuilding markdown mirror...")
        synced = db.rebuild_mirror()
        click.echo(f"✅ {synced} entries written to {db.mirror.entries_dir}")

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "mirror_rebuild")


@mirror.command("path")
@click.argument("entry_id")
@click.pass_context
def path(ctx, entry_id):
    """Print the markdown path of an entry."""
    try:
        db = get_db(ctx)
        entry = db.get_entry(entry_id)
        if entry is None:
            not_found(entry_id)
        click.echo(str(db.mirror.path_for(entry)))

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "mirror_path", additional_context={"entry_id": entry_id})
