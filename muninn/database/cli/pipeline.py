"""
Pipeline Commands
------------------------

Move entries through the pipeline from the terminal.

Commands:
    - ingest: Create an entry from an audio file
    - transcribe / retranscribe: Speech-to-text for an entry
    - analyze: AI analysis for an entry
    - questions: Interview questions for the next session
"""
import mimetypes
from pathlib import Path

import click

from muninn.core.exceptions import ValidationError
from muninn.core.logging_manager import handle_cli_error
from . import CLI_ERRORS, get_pipeline, not_found


def guess_mime_type(path: Path) -> str:
    """MIME type from the file name; raises ValidationError if unknown."""
    mime_type, _ = mimetypes.guess_type(path.name)
    if path.suffix.lower() == ".m4a":
        mime_type = "audio/mp4"
    if not mime_type:
        raise ValidationError("Could not determine audio type (use --mime)")
    return mime_type


@click.command()
@click.argument("audio_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--mime", "mime_type", default=None, help="Override the MIME type")
@click.option("--transcribe", "then_transcribe", is_flag=True, help="Transcribe right away")
@click.option("--analyze", "then_analyze", is_flag=True, help="Transcribe and analyze")
@click.pass_context
def ingest(ctx, audio_file, mime_type, then_transcribe, then_analyze):
    """Create an entry from AUDIO_FILE."""
    try:
        pipeline = get_pipeline(ctx)
        mime_type = mime_type or guess_mime_type(audio_file)

        entry = pipeline.ingest_audio(audio_file.read_bytes(), mime_type)
        click.echo(f"🎙️  Created {entry.id} from {audio_file.name}")

        if then_transcribe or then_analyze:
            click.echo("📝 Transcribing...")
            entry = pipeline.transcribe(entry.id)
            click.echo(f"✅ Transcribed ({len(entry.transcript or '')} characters)")

        if then_analyze:
            click.echo("✨ Analyzing...")
            entry = pipeline.analyze(entry.id)
            click.echo(f"✅ {entry.title}  [{', '.join(entry.tag_names)}]")

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "ingest", additional_context={"file": str(audio_file)})


@click.command()
@click.argument("entry_id")
@click.option("--prompt", default=None, help="Initial prompt (names, vocabulary)")
@click.pass_context
def transcribe(ctx, entry_id, prompt):
    """Transcribe an entry's audio."""
    try:
        entry = get_pipeline(ctx).transcribe(entry_id, prompt=prompt)
        if entry is None:
            not_found(entry_id)

        click.echo(f"✅ Transcribed {entry.id}")
        click.echo("")
        click.echo(entry.transcript or "")

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "transcribe", additional_context={"entry_id": entry_id})


@click.command()
@click.argument("entry_id")
@click.option("--prompt", default=None, help="Initial prompt (names, vocabulary)")
@click.pass_context
def retranscribe(ctx, entry_id, prompt):
    """Clear transcript, analysis and tags, then transcribe again."""
    try:
        entry = get_pipeline(ctx).retranscribe(entry_id, prompt=prompt)
        if entry is None:
            not_found(entry_id)

        click.echo(f"✅ Re-transcribed {entry.id}")
        click.echo("")
        click.echo(entry.transcript or "")

    except CLI_ERRORS as e:
        handle_cli_error(
            ctx, e, "retranscribe", additional_context={"entry_id": entry_id}
        )


@click.command()
@click.argument("entry_id")
@click.pass_context
def analyze(ctx, entry_id):
    """Analyze an entry's transcript."""
    try:
        pipeline = get_pipeline(ctx)
        entry = pipeline.analyze(entry_id)
        if entry is None:
            not_found(entry_id)

        click.echo(f"✨ {entry.title}")
        if entry.tag_names:
            click.echo(f"🏷️  Tags: {', '.join(entry.tag_names)}")
        if entry.analysis is not None and entry.analysis.summary:
            click.echo(f"\n{entry.analysis.summary}")

        links = pipeline.db.get_linked_entries(entry.id)
        if links:
            click.echo("\n🔗 Related:")
            for other, text in links:
                click.echo(f"  • {other.id} {other.title or '(untitled)'}: {text or ''}")

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "analyze", additional_context={"entry_id": entry_id})


@click.command()
@click.option("--refresh", is_flag=True, help="Ignore the cached questions")
@click.pass_context
def questions(ctx, refresh):
    """Suggest questions for the next journaling session."""
    try:
        suggested = get_pipeline(ctx).interview_questions(force=refresh)

        click.echo("\n💭 Questions for today:\n")
        for i, question in enumerate(suggested, 1):
            click.echo(f"  {i}. {question}")

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "questions")
