"""
OAuth 2.0 module for iSolarCloud API integration.

This module provides the interactive Authorization Code flow used by the
desktop client: a transient local callback listener catches the provider
redirect, the code is exchanged for tokens at the gateway, and the
resulting session is persisted in the user's configuration directory.

Public API:
    SungrowConfig: Runtime configuration
    Credentials: Session record (app credentials and tokens)
    CredentialStore: File-based credential persistence
    TokenExchangeClient: Authorization code exchange
    OAuthCallbackServer: Local redirect listener
    OAuthCoordinator: Flow orchestration
    allocate_port: Callback port allocation

Exceptions:
    SungrowAuthError: Base exception
    ConfigurationError, NoPortAvailableError, InvalidAuthURLError,
    FlowInProgressError, AuthorizationError, CallbackError, AuthTimeoutError,
    TokenExchangeError, NetworkError, AuthRejectedError,
    MalformedResponseError, PersistenceError
"""

from .callback_server import (
    CallbackSignals,
    OAuthCallbackServer,
    build_authorization_url,
    build_redirect_uri,
    create_callback_app,
)
from .config import DEFAULT_GATEWAY_URL, SungrowConfig
from .coordinator import AuthResult, FlowState, OAuthCoordinator
from .credential_store import Credentials, CredentialStore
from .exceptions import (
    AuthorizationError,
    AuthRejectedError,
    AuthTimeoutError,
    CallbackError,
    ConfigurationError,
    FlowInProgressError,
    InvalidAuthURLError,
    MalformedResponseError,
    NetworkError,
    NoPortAvailableError,
    PersistenceError,
    SungrowAuthError,
    TokenExchangeError,
)
from .ports import allocate_port
from .token_client import TokenExchangeClient

__all__ = [
    # Configuration
    "SungrowConfig",
    "DEFAULT_GATEWAY_URL",
    # Credential Storage
    "Credentials",
    "CredentialStore",
    # Token Exchange
    "TokenExchangeClient",
    # Callback Listener
    "allocate_port",
    "CallbackSignals",
    "OAuthCallbackServer",
    "create_callback_app",
    "build_redirect_uri",
    "build_authorization_url",
    # Coordinator
    "OAuthCoordinator",
    "AuthResult",
    "FlowState",
    # Exceptions
    "SungrowAuthError",
    "ConfigurationError",
    "NoPortAvailableError",
    "InvalidAuthURLError",
    "FlowInProgressError",
    "AuthorizationError",
    "CallbackError",
    "AuthTimeoutError",
    "TokenExchangeError",
    "NetworkError",
    "AuthRejectedError",
    "MalformedResponseError",
    "PersistenceError",
]
