"""User-friendly error messages with actionable suggestions."""

from dataclasses import dataclass

from rich.console import Console
from rich.panel import Panel

from concept2_mcp.api.exceptions import (
    Concept2APIError,
    PermissionDeniedError,
    RateLimitError,
    TokenExpiredError,
)
from concept2_mcp.auth.exceptions import (
    AuthorizationTimeoutError,
    CallbackProtocolError,
    ConfigurationError,
    ExchangeFailedError,
    ListenerBusyError,
    NetworkError,
    RefreshFailedError,
    StateMismatchError,
    UnauthenticatedError,
)


@dataclass
class ErrorInfo:
    """Structured error information for display."""

    title: str
    message: str
    suggestion: str
    command: str | None = None


ERROR_MESSAGES = {
    "not_configured": ErrorInfo(
        title="OAuth2 not configured",
        message="No OAuth2 client credentials are configured.",
        suggestion=(
            "Set CONCEPT2_CLIENT_ID and CONCEPT2_CLIENT_SECRET, or CONCEPT2_ACCESS_TOKEN "
            "for development. Get credentials at {portal}"
        ),
        command=None,
    ),
    "auth_required": ErrorInfo(
        title="Not logged in",
        message="You need to authorize before running this command.",
        suggestion="Connect your Concept2 Logbook account",
        command="concept2 login",
    ),
    "auth_expired": ErrorInfo(
        title="Session expired",
        message="Your session has expired and could not be renewed.",
        suggestion="Authorize again",
        command="concept2 login",
    ),
    "state_mismatch": ErrorInfo(
        title="Security check failed",
        message="The authorization response did not belong to this login attempt.",
        suggestion="This can indicate a cross-site request forgery attempt. Start a new login.",
        command="concept2 login",
    ),
    "provider_error": ErrorInfo(
        title="Authorization failed",
        message="{detail}",
        suggestion="Approve the request in the browser to connect your account.",
        command="concept2 login",
    ),
    "auth_timeout": ErrorInfo(
        title="Authorization timed out",
        message="No response was received from the browser in time.",
        suggestion="Start again and complete the login in the browser window.",
        command="concept2 login",
    ),
    "listener_busy": ErrorInfo(
        title="Callback port in use",
        message="{detail}",
        suggestion="Finish or cancel the other login, or set CONCEPT2_REDIRECT_PORT.",
        command=None,
    ),
    "exchange_failed": ErrorInfo(
        title="Token exchange failed",
        message="{detail}",
        suggestion="Check your client credentials and redirect URI registration.",
        command=None,
    ),
    "network_error": ErrorInfo(
        title="Network error",
        message="Could not reach the Concept2 Logbook.",
        suggestion="Check your internet connection or try again later.",
        command=None,
    ),
    "rate_limit": ErrorInfo(
        title="Too many requests",
        message="You have sent too many requests.",
        suggestion="Wait {retry_after} seconds and try again.",
        command=None,
    ),
    "forbidden": ErrorInfo(
        title="Permission denied",
        message="Your token lacks the required scope.",
        suggestion="Check CONCEPT2_SCOPES and authorize again.",
        command="concept2 login",
    ),
    "api_error": ErrorInfo(
        title="Logbook API error",
        message="{detail}",
        suggestion="This is probably a temporary problem. Try again later.",
        command=None,
    ),
    "unknown": ErrorInfo(
        title="Unexpected error",
        message="An unexpected error occurred.",
        suggestion="If this keeps happening, log out and authorize again.",
        command="concept2 logout && concept2 login",
    ),
}


def get_error_type(error: Exception) -> str:
    """Determine error type from exception."""
    if isinstance(error, ConfigurationError):
        return "not_configured"
    elif isinstance(error, UnauthenticatedError):
        return "auth_required"
    elif isinstance(error, (RefreshFailedError, TokenExpiredError)):
        return "auth_expired"
    elif isinstance(error, StateMismatchError):
        return "state_mismatch"
    elif isinstance(error, CallbackProtocolError):
        return "provider_error"
    elif isinstance(error, AuthorizationTimeoutError):
        return "auth_timeout"
    elif isinstance(error, ListenerBusyError):
        return "listener_busy"
    elif isinstance(error, ExchangeFailedError):
        return "exchange_failed"
    elif isinstance(error, NetworkError):
        return "network_error"
    elif isinstance(error, RateLimitError):
        return "rate_limit"
    elif isinstance(error, PermissionDeniedError):
        return "forbidden"
    elif isinstance(error, Concept2APIError):
        return "api_error"
    return "unknown"


def format_error(
    error: Exception,
    console: Console,
    portal: str | None = None,
    verbose: bool = False,
) -> None:
    """Format and display a user-friendly error message."""
    error_type = get_error_type(error)
    info = ERROR_MESSAGES.get(error_type, ERROR_MESSAGES["unknown"])

    message = info.message.format(detail=str(error))
    suggestion = info.suggestion.format(
        portal=portal or "https://log.concept2.com/developers/keys",
        retry_after=getattr(error, "retry_after", 60),
    )

    content_lines = [
        f"[white]{message}[/white]",
        "",
        f"[yellow]Suggestion:[/yellow] {suggestion}",
    ]

    if info.command:
        content_lines.append("")
        content_lines.append(f"[cyan]{info.command}[/cyan]")

    # Show technical details in verbose mode
    if verbose:
        content_lines.append("")
        content_lines.append("[dim]" + "-" * 40 + "[/dim]")
        content_lines.append(f"[dim]Type: {type(error).__name__}[/dim]")
        content_lines.append(f"[dim]Details: {error}[/dim]")

    console.print()
    console.print(Panel(
        "\n".join(content_lines),
        title=f"[red bold]Error: {info.title}[/red bold]",
        border_style="red",
        padding=(1, 2),
    ))
    console.print()
