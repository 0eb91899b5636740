"""
Entry Commands
------------------------

Browse and edit journal entries.

Commands:
    - list: Newest entries first, optionally by status
    - show: Display one entry (or dump it as JSON)
    - update: Change whitelisted fields
    - delete: Delete an entry with its audio and markdown
    - search: Literal substring search over transcripts and titles
"""
import json

import click

from muninn.core.exceptions import ValidationError
from muninn.core.logging_manager import handle_cli_error
from muninn.database.models import EntryStatus
from . import CLI_ERRORS, get_db, not_found


STATUS_ICONS = {
    EntryStatus.PENDING_TRANSCRIPTION: "⏳",
    EntryStatus.TRANSCRIBED: "📝",
    EntryStatus.ANALYZED: "✨",
}


def format_line(entry) -> str:
    """One-line summary of an entry for listings."""
    icon = STATUS_ICONS.get(entry.status, "•")
    created = entry.created_at.strftime("%Y-%m-%d %H:%M") if entry.created_at else "?"
    title = entry.title or "(untitled)"
    tags = f"  [{', '.join(entry.tag_names)}]" if entry.tag_names else ""
    return f"{icon} {entry.id}  {created}  {title}{tags}"


@click.group()
@click.pass_context
def entries(ctx: click.Context) -> None:
    """Browse and edit journal entries."""
    pass


@entries.command("list")
@click.option("--limit", type=int, default=20, show_default=True)
@click.option("--offset", type=int, default=0, show_default=True)
@click.option(
    "--status",
    type=click.Choice(EntryStatus.choices()),
    default=None,
    help="Only entries at this stage",
)
@click.pass_context
def list_entries(ctx, limit, offset, status):
    """List entries, newest first."""
    try:
        db = get_db(ctx)
        found = db.list_entries(limit=limit, offset=offset, status=status)
        total = db.count_entries(status)

        if not found:
            click.echo("⚠️  No entries found")
            return

        click.echo(f"\n📓 Entries ({len(found)} of {total}):\n")
        for entry in found:
            click.echo(f"  {format_line(entry)}")

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "list_entries")


@entries.command("show")
@click.argument("entry_id")
@click.option("--json", "as_json", is_flag=True, help="Print the entry as JSON")
@click.pass_context
def show(ctx, entry_id, as_json):
    """Display a single entry."""
    try:
        db = get_db(ctx)
        entry = db.get_entry(entry_id)
        if entry is None:
            not_found(entry_id)

        links = db.get_linked_entries(entry_id)

        if as_json:
            data = entry.to_dict()
            data["linked_entries"] = [
                {"id": other.id, "title": other.title, "relationship": text}
                for other, text in links
            ]
            click.echo(json.dumps(data, indent=2, ensure_ascii=False))
            return

        click.echo(f"\n{format_line(entry)}")
        click.echo(f"📊 Status: {entry.status.display_name}")
        if entry.has_audio:
            duration = (
                f" ({entry.audio_duration_seconds:.1f}s)"
                if entry.audio_duration_seconds
                else ""
            )
            click.echo(f"🎙️  Audio: {entry.audio_path}{duration}")

        click.echo("")
        click.echo(entry.transcript or "*No transcript yet*")

        if entry.analysis is not None:
            click.echo(f"\n🧭 Summary: {entry.analysis.summary}")
            if entry.analysis.mood:
                click.echo(f"🌡️  Mood: {entry.analysis.mood}")

        if entry.follow_up_questions:
            click.echo("\n❓ Follow-up questions:")
            for i, question in enumerate(entry.follow_up_questions, 1):
                click.echo(f"  {i}. {question}")

        if links:
            click.echo("\n🔗 Linked entries:")
            for other, text in links:
                reason = f": {text}" if text else ""
                click.echo(f"  • {other.id} {other.title or '(untitled)'}{reason}")

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "show", additional_context={"entry_id": entry_id})


@entries.command("update")
@click.argument("entry_id")
@click.option("--title", default=None, help="New title")
@click.option("--transcript", default=None, help="New transcript")
@click.option(
    "--data",
    "raw_json",
    default=None,
    help='JSON object of fields, e.g. \'{"title": "Walk", "status": "transcribed"}\'',
)
@click.pass_context
def update(ctx, entry_id, title, transcript, raw_json):
    """Update whitelisted fields of an entry."""
    try:
        changes = {}
        if raw_json:
            try:
                changes = json.loads(raw_json)
            except json.JSONDecodeError as e:
                raise ValidationError("--data must be a JSON object") from e
            if not isinstance(changes, dict):
                raise ValidationError("--data must be a JSON object")
        if title is not None:
            changes["title"] = title
        if transcript is not None:
            changes["transcript"] = transcript

        if not changes:
            click.echo("⚠️  Nothing to update")
            return

        entry = get_db(ctx).update_entry(entry_id, changes)
        if entry is None:
            not_found(entry_id)

        click.echo(f"✅ Updated {entry.id}: {', '.join(sorted(changes))}")

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "update", additional_context={"entry_id": entry_id})


@entries.command("delete")
@click.argument("entry_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete(ctx, entry_id, yes):
    """Delete an entry, its audio and its markdown file."""
    try:
        if not yes:
            click.confirm(f"⚠️  Delete entry {entry_id}?", abort=True)

        if not get_db(ctx).delete_entry(entry_id):
            not_found(entry_id)

        click.echo(f"🗑️  Deleted {entry_id}")

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "delete", additional_context={"entry_id": entry_id})


@entries.command("search")
@click.argument("query")
@click.option("--limit", type=int, default=20, show_default=True)
@click.pass_context
def search(ctx, query, limit):
    """Find entries whose transcript or title contains QUERY."""
    try:
        found = get_db(ctx).search_entries(query, limit=limit)

        if not found:
            click.echo(f"⚠️  No entries match '{query}'")
            return

        click.echo(f"\n🔎 {len(found)} match(es):\n")
        for entry in found:
            click.echo(f"  {format_line(entry)}")

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "search")
