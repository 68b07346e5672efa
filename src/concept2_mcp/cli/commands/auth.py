"""Authentication CLI commands."""

import asyncio
import json
from datetime import datetime
from typing import Annotated

import typer
from rich.console import Console

from concept2_mcp.api import Concept2APIError, Concept2Client
from concept2_mcp.auth import AuthError, create_token_manager
from concept2_mcp.auth.token_manager import AuthMode
from concept2_mcp.cli.errors import format_error
from concept2_mcp.cli.formatters import format_time_remaining
from concept2_mcp.cli.progress import (
    api_spinner,
    oauth_progress,
    print_info,
    print_success,
    print_warning,
)
from concept2_mcp.config import get_settings

console = Console()
app = typer.Typer(help="Authentication commands")


def _fail(error: Exception) -> None:
    format_error(error, console, portal=get_settings().developer_portal_url)
    raise typer.Exit(1)


@app.command()
def status():
    """Show current authentication status."""
    manager = create_token_manager()
    info = manager.describe_status()

    console.print(f"Server: [cyan]{info.server}[/cyan]" + (" [dim](development)[/dim]" if info.is_dev_server else ""))

    if info.mode is AuthMode.STATIC:
        console.print("[green]Authenticated[/green] with a static access token (CONCEPT2_ACCESS_TOKEN)")
        if info.oauth_credentials_ignored:
            print_warning("OAuth credentials are configured but ignored while the access token is set.")
        return

    if not info.oauth_configured:
        console.print("[yellow]OAuth2 credentials not configured.[/yellow]")
        console.print("Set CONCEPT2_CLIENT_ID and CONCEPT2_CLIENT_SECRET, or CONCEPT2_ACCESS_TOKEN.")
        raise typer.Exit(1)

    console.print(f"Client ID: [cyan]{info.client_id_hint}[/cyan]")

    if not info.authenticated:
        console.print("[red]Not connected[/red]")
        console.print("\nAuthorize with: [cyan]concept2 login[/cyan]")
        raise typer.Exit(1)

    if info.expired:
        console.print("[yellow]Token expired[/yellow] [dim](will refresh on next request)[/dim]")
    else:
        remaining = format_time_remaining(info.seconds_remaining or 0)
        console.print(f"[green]Connected[/green] - token expires in [green]{remaining}[/green]")

    if info.scope:
        console.print(f"Scopes: {info.scope}")
    console.print(f"[dim]Token storage: {info.token_file}[/dim]")


@app.command("login")
def do_login(
    browser: Annotated[
        bool,
        typer.Option("--browser/--no-browser", help="Open the authorization URL in the default browser"),
    ] = True,
):
    """
    Connect your Concept2 Logbook account.

    Starts a local callback listener, opens the authorization page and stores
    the issued tokens once you approve access.
    """
    settings = get_settings()
    manager = create_token_manager(settings)

    if manager.is_using_static_token():
        print_info("Already authenticated using static access token (CONCEPT2_ACCESS_TOKEN).")
        return

    def show_url(url: str) -> None:
        console.print("Open this URL to authorize if no browser window appears:")
        console.print(f"[cyan]{url}[/cyan]", soft_wrap=True)
        console.print()

    try:
        with oauth_progress(settings.auth_timeout_ms / 1000):
            token = asyncio.run(manager.run_authorization_flow(open_browser=browser, on_url=show_url))
    except AuthError as e:
        _fail(e)

    print_success("Authorization successful!")
    expires = datetime.fromtimestamp(token.expires_at / 1000)
    console.print(f"  [dim]Token valid until: {expires.strftime('%Y-%m-%d %H:%M')}[/dim]")
    if token.scope:
        console.print(f"  [dim]Scopes: {token.scope}[/dim]")
    console.print(f"  [dim]Token storage: {settings.token_file}[/dim]")


@app.command("logout")
def do_logout():
    """Remove stored OAuth2 tokens."""
    manager = create_token_manager()
    manager.clear_tokens()
    print_success("Logged out. Stored tokens have been removed.")
    if manager.is_using_static_token():
        print_warning("CONCEPT2_ACCESS_TOKEN is still set and remains in use.")


@app.command("token")
def print_token():
    """Print a valid access token, refreshing it if needed."""
    manager = create_token_manager()
    try:
        access_token = asyncio.run(manager.get_access_token())
    except AuthError as e:
        _fail(e)
    typer.echo(access_token)


@app.command("whoami")
def whoami(
    as_json: Annotated[bool, typer.Option("--json", help="Print the raw JSON profile")] = False,
):
    """Show the authenticated Logbook user."""
    manager = create_token_manager()

    async def fetch() -> dict:
        async with Concept2Client(manager) as client:
            return await client.get_user("me")

    try:
        with api_spinner("Fetching profile..."):
            user = asyncio.run(fetch())
    except (AuthError, Concept2APIError) as e:
        _fail(e)

    if as_json:
        typer.echo(json.dumps(user, indent=2))
        return

    name = f"{user.get('first_name') or ''} {user.get('last_name') or ''}".strip()
    console.print(f"[bold]{name or 'Unknown'}[/bold] ([cyan]{user.get('username', 'N/A')}[/cyan])")
    console.print(f"  ID: {user.get('id', 'N/A')}")
    console.print(f"  Country: {user.get('country') or 'N/A'}")
