"""Formatting helpers shared by the CLI and the MCP server."""

from concept2_mcp.auth.token_manager import AuthMode, AuthStatus


def format_time_remaining(seconds: int) -> str:
    """Format remaining time as e.g. ``2h 5m``."""
    if seconds < 60:
        return "less than a minute"
    hours, remainder = divmod(seconds, 3600)
    minutes = remainder // 60
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_status_markdown(status: AuthStatus) -> str:
    """Render an authentication status report as markdown."""
    lines = ["# Concept2 Authorization Status\n"]

    lines.append(f"**Server:** {status.server}")
    if status.is_dev_server:
        lines.append("- Mode: Development (data may be reset periodically)")
    else:
        lines.append("- Mode: Production")

    if status.mode is AuthMode.STATIC:
        lines.append("\n**Authentication:** Access Token")
        lines.append("- Using CONCEPT2_ACCESS_TOKEN environment variable")
        lines.append("- Tokens expire after 7 days - generate a new one when needed")
        if status.oauth_credentials_ignored:
            lines.append("- OAuth credentials present but ignored (ACCESS_TOKEN takes priority)")
        return "\n".join(lines)

    if status.oauth_configured:
        lines.append("\n**OAuth2 Credentials:** Configured")
        lines.append(f"- Client ID: {status.client_id_hint}")
    else:
        lines.append("\n**OAuth2 Credentials:** Not configured")
        lines.append("  Set CONCEPT2_CLIENT_ID and CONCEPT2_CLIENT_SECRET")
        lines.append("  Or use CONCEPT2_ACCESS_TOKEN for development")
        return "\n".join(lines)

    if status.authenticated:
        lines.append("\n**Authentication:** Connected")
        if status.expired:
            lines.append("- Token status: Expired (will refresh on next request)")
        else:
            remaining = format_time_remaining(status.seconds_remaining or 0)
            lines.append(f"- Token status: Valid (expires in {remaining})")
        if status.scope:
            lines.append(f"- Scopes: {status.scope}")
        lines.append(f"\n**Token storage:** {status.token_file}")
    else:
        lines.append("\n**Authentication:** Not connected")
        lines.append("  Use concept2_authorize to connect your account")

    return "\n".join(lines)
