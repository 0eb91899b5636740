"""
Tag Commands
------------------------

Commands:
    - list: Tags with usage counts
    - add: Tag an entry
    - remove: Untag an entry
    - entries: Entries carrying a tag
"""
import click

from muninn.core.logging_manager import handle_cli_error
from . import CLI_ERRORS, get_db, not_found
from .entries import format_line


@click.group()
@click.pass_context
def tags(ctx: click.Context) -> None:
    """Inspect and edit tags."""
    pass


@tags.command("list")
@click.option("--min-count", type=int, default=0, help="Hide rarely used tags")
@click.pass_context
def list_tags(ctx, min_count):
    """List tags, most used first."""
    try:
        counts = get_db(ctx).get_tags_with_counts(min_count)

        if not counts:
            click.echo("⚠️  No tags yet")
            return

        click.echo(f"\n🏷️  Tags ({len(counts)}):\n")
        for name, count in counts:
            click.echo(f"  {count:4d}  {name}")

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "list_tags")


@tags.command("add")
@click.argument("entry_id")
@click.argument("tag_name")
@click.pass_context
def add(ctx, entry_id, tag_name):
    """Add TAG_NAME to an entry."""
    try:
        names = get_db(ctx).add_tag_to_entry(entry_id, tag_name)
        if names is None:
            not_found(entry_id)

        click.echo(f"✅ {entry_id}: {', '.join(names)}")

    except CLI_ERRORS as e:
        handle_cli_error(
            ctx, e, "add_tag", additional_context={"entry_id": entry_id, "tag": tag_name}
        )


@tags.command("remove")
@click.argument("entry_id")
@click.argument("tag_name")
@click.pass_context
def remove(ctx, entry_id, tag_name):
    """Remove TAG_NAME from an entry."""
    try:
        names = get_db(ctx).remove_tag_from_entry(entry_id, tag_name)
        if names is None:
            not_found(entry_id)

        click.echo(f"✅ {entry_id}: {', '.join(names) or '(no tags)'}")

    except CLI_ERRORS as e:
        handle_cli_error(
            ctx,
            e,
            "remove_tag",
            additional_context={"entry_id": entry_id, "tag": tag_name},
        )


@tags.command("entries")
@click.argument("tag_name")
@click.option("--limit", type=int, default=20, show_default=True)
@click.pass_context
def tag_entries(ctx, tag_name, limit):
    """List entries tagged TAG_NAME."""
    try:
        found = get_db(ctx).entries_for_tag(tag_name, limit=limit)

        if not found:
            click.echo(f"⚠️  No entries tagged '{tag_name}'")
            return

        for entry in found:
            click.echo(f"  {format_line(entry)}")

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "tag_entries", additional_context={"tag": tag_name})
