"""Exceptions for the credential lifecycle."""


class AuthError(Exception):
    """Base exception for authentication errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(AuthError):
    """OAuth2 client credentials are not configured."""

    def __init__(self, message: str | None = None):
        super().__init__(
            message
            or "OAuth2 credentials not configured. Set CONCEPT2_CLIENT_ID and "
            "CONCEPT2_CLIENT_SECRET environment variables."
        )


class UnauthenticatedError(AuthError):
    """No access token is available."""

    def __init__(self):
        super().__init__(
            "Not authenticated. Either:\n"
            "1. Set CONCEPT2_ACCESS_TOKEN for development/testing, or\n"
            "2. Set CONCEPT2_CLIENT_ID and CONCEPT2_CLIENT_SECRET, then run the authorization flow"
        )


class StateMismatchError(AuthError):
    """The callback state did not match the nonce sent with the authorization URL."""

    def __init__(self):
        super().__init__("OAuth2 state mismatch - possible CSRF attack")


class CallbackProtocolError(AuthError):
    """The redirect carried a provider error or lacked an authorization code."""

    def __init__(self, error: str, description: str | None = None):
        message = f"OAuth2 error: {error}"
        if description:
            message += f" - {description}"
        super().__init__(message)
        self.error = error
        self.description = description


class AuthorizationTimeoutError(AuthError, TimeoutError):
    """No redirect arrived before the authorization timeout."""

    def __init__(self, timeout_ms: int):
        super().__init__(
            f"OAuth2 authorization timed out after {timeout_ms / 1000:g}s. Please try again."
        )
        self.timeout_ms = timeout_ms


class ListenerBusyError(AuthError):
    """Another authorization flow already owns the callback port."""

    def __init__(self, port: int, reason: str | None = None):
        message = f"Callback listener already bound on port {port}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.port = port


class NetworkError(AuthError):
    """The token endpoint could not be reached."""


class TokenEndpointError(AuthError):
    """The token endpoint answered with a non-success status."""

    def __init__(self, message: str, status_code: int, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ExchangeFailedError(TokenEndpointError):
    """Authorization code exchange was rejected."""

    def __init__(self, status_code: int, body: str = ""):
        message = f"Token exchange failed with status {status_code}"
        if body:
            message += f": {body}"
        super().__init__(message, status_code, body)


class RefreshFailedError(TokenEndpointError):
    """Refresh was rejected; stored credentials have been cleared."""

    def __init__(self, status_code: int, body: str = ""):
        super().__init__(
            "Token refresh failed. Please re-authorize using concept2_authorize "
            "or 'concept2 login'.",
            status_code,
            body,
        )


class PersistenceError(AuthError):
    """Reading or writing the token file failed."""
