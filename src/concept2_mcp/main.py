"""Main CLI entry point for concept2-mcp."""

from typing import Annotated

import typer

from concept2_mcp import __version__
from concept2_mcp.cli.commands import auth
from concept2_mcp.config import LOG_LEVELS, get_settings
from concept2_mcp.logging_config import configure_logging

app = typer.Typer(
    name="concept2",
    help="Connect to the Concept2 Logbook and manage OAuth2 credentials",
    no_args_is_help=True,
)

app.command("login")(auth.do_login)
app.command("logout")(auth.do_logout)
app.command("status")(auth.status)
app.command("token")(auth.print_token)
app.command("whoami")(auth.whoami)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"concept2-mcp {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="debug, info, warning, error or none (default: CONCEPT2_LOG_LEVEL)"),
    ] = None,
    version: Annotated[
        bool,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version"),
    ] = False,
):
    """Concept2 Logbook credentials."""
    if log_level is not None and log_level.lower() not in LOG_LEVELS:
        raise typer.BadParameter(f"expected one of {', '.join(LOG_LEVELS)}", param_hint="--log-level")
    configure_logging(log_level or get_settings().log_level)


def main():
    app()


if __name__ == "__main__":
    main()
