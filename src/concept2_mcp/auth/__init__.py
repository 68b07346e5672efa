"""Authentication module for the Concept2 Logbook."""

from concept2_mcp.auth.callback_server import (
    CallbackListener,
    CallbackOutcome,
    CodeReceived,
    MalformedRequest,
    ProviderError,
    TimedOut,
)
from concept2_mcp.auth.exceptions import (
    AuthError,
    AuthorizationTimeoutError,
    CallbackProtocolError,
    ConfigurationError,
    ExchangeFailedError,
    ListenerBusyError,
    NetworkError,
    PersistenceError,
    RefreshFailedError,
    StateMismatchError,
    TokenEndpointError,
    UnauthenticatedError,
)
from concept2_mcp.auth.flow import AuthorizationFlowCoordinator, generate_state
from concept2_mcp.auth.token_manager import (
    AuthMode,
    AuthStatus,
    TokenLifecycleManager,
    create_token_manager,
)
from concept2_mcp.auth.token_store import TokenRecord, TokenStore, now_ms

__all__ = [
    # Token management
    "AuthMode",
    "AuthStatus",
    "TokenLifecycleManager",
    "create_token_manager",
    "TokenRecord",
    "TokenStore",
    "now_ms",
    # Authorization flow
    "AuthorizationFlowCoordinator",
    "generate_state",
    "CallbackListener",
    "CallbackOutcome",
    "CodeReceived",
    "MalformedRequest",
    "ProviderError",
    "TimedOut",
    # Errors
    "AuthError",
    "AuthorizationTimeoutError",
    "CallbackProtocolError",
    "ConfigurationError",
    "ExchangeFailedError",
    "ListenerBusyError",
    "NetworkError",
    "PersistenceError",
    "RefreshFailedError",
    "StateMismatchError",
    "TokenEndpointError",
    "UnauthenticatedError",
]
