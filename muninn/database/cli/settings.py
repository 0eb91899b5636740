"""
Settings Commands
------------------------

Commands:
    - get: Print a setting (agent_overview, user_profile, ...)
    - set: Store a setting
"""
import click

from muninn.core.logging_manager import handle_cli_error
from . import CLI_ERRORS, get_db


@click.group()
@click.pass_context
def settings(ctx: click.Context) -> None:
    """Read and write journal settings."""
    pass


@settings.command("get")
@click.argument("key")
@click.pass_context
def get_value(ctx, key):
    """Print the value of KEY."""
    try:
        value = get_db(ctx).get_setting(key)
        if value is None:
            click.echo(f"⚠️  {key} is not set")
            return
        click.echo(value)

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "get_setting", additional_context={"key": key})


@settings.command("set")
@click.argument("key")
@click.argument("value", required=False)
@click.option(
    "--file",
    "source",
    type=click.File("r", encoding="utf-8"),
    default=None,
    help="Read the value from a file ('-' for stdin)",
)
@click.pass_context
def set_value(ctx, key, value, source):
    """Store VALUE (or the contents of --file) under KEY."""
    try:
        if source is not None:
            value = source.read()
        if value is None:
            raise click.UsageError("Provide VALUE or --file")

        get_db(ctx).set_setting(key, value)
        click.echo(f"✅ Saved {key} ({len(value)} characters)")

    except CLI_ERRORS as e:
        handle_cli_error(ctx, e, "set_setting", additional_context={"key": key})

