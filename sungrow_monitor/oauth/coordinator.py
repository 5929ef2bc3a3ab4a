"""
OAuth coordinator for the interactive iSolarCloud sign-in.

This module drives one authorization attempt end to end: allocate a
callback port, start the listener, open the browser, wait for the redirect
or the deadline, tear the listener down and exchange the code for tokens.
"""

import logging
import threading
import webbrowser
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from .callback_server import (
    CallbackSignals,
    OAuthCallbackServer,
    build_authorization_url,
    build_redirect_uri,
)
from .config import SungrowConfig
from .credential_store import Credentials, CredentialStore
from .exceptions import (
    AuthTimeoutError,
    CallbackError,
    FlowInProgressError,
    InvalidAuthURLError,
)
from .ports import allocate_port
from .token_client import TokenExchangeClient

logger = logging.getLogger(__name__)


class FlowState(Enum):
    """States of an authorization attempt."""

    IDLE = "idle"
    PORT_ALLOCATED = "port_allocated"
    LISTENING = "listening"
    AWAITING_CALLBACK = "awaiting_callback"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class AuthResult:
    """
    Result of a successful authorization.

    Attributes:
        authenticated: Always True for a returned result
        token_expiry: Access token expiry in epoch milliseconds
    """

    authenticated: bool
    token_expiry: int

    def to_dict(self) -> dict:
        """Shape returned to UI callers."""
        return {"authenticated": self.authenticated, "tokenExpiry": self.token_expiry}


class OAuthCoordinator:
    """
    Runs the interactive authorization-code flow.

    Only one flow runs at a time; a concurrent call fails fast with
    FlowInProgressError.

    Example:
        coordinator = OAuthCoordinator(config, storage)
        result = coordinator.authenticate(credentials)
        print(result.token_expiry)
    """

    def __init__(
        self,
        config: Optional[SungrowConfig] = None,
        storage: Optional[CredentialStore] = None,
        token_client: Optional[TokenExchangeClient] = None,
        browser_opener: Callable[[str], Any] = webbrowser.open,
    ):
        """
        Initialize OAuth coordinator.

        Args:
            config: Configuration (loads from environment if not provided)
            storage: Credential store (created from config if not provided)
            token_client: Token exchange client (created if not provided)
            browser_opener: Called with the authorize URL; failures are logged
        """
        self.config = config or SungrowConfig.from_env()
        self.storage = storage or CredentialStore(self.config.credentials_file)
        self.token_client = token_client or TokenExchangeClient(
            self.storage, timeout=self.config.request_timeout
        )
        self.browser_opener = browser_opener
        self.state = FlowState.IDLE
        self._flow_lock = threading.Lock()

    def authenticate(self, credentials: Credentials) -> AuthResult:
        """
        Run the complete authorization flow for ``credentials``.

        On success the tokens are stored on ``credentials`` and persisted.

        Args:
            credentials: App key, secret key and authorize URL; updated in place

        Returns:
            AuthResult with the new token expiry

        Raises:
            FlowInProgressError: If another flow is running
            NoPortAvailableError: If no callback port could be bound
            InvalidAuthURLError: If the authorize URL is malformed
            CallbackError: If the redirect carried no code
            AuthTimeoutError: If no redirect arrived in time
            TokenExchangeError: If the code could not be exchanged
            PersistenceError: If tokens were obtained but not saved
        """
        if not self._flow_lock.acquire(blocking=False):
            raise FlowInProgressError("An authorization flow is already in progress")

        try:
            self.state = FlowState.IDLE
            try:
                result = self._run_flow(credentials)
            except Exception:
                self.state = FlowState.FAILED
                raise
            self.state = FlowState.SUCCEEDED
            return result
        finally:
            self._flow_lock.release()

    def _run_flow(self, credentials: Credentials) -> AuthResult:
        port, listener = allocate_port(
            self.config.candidate_ports, self.config.callback_host
        )
        self.state = FlowState.PORT_ALLOCATED

        redirect_uri = build_redirect_uri(port, self.config.callback_path)
        try:
            auth_url = build_authorization_url(credentials.auth_url, redirect_uri)
        except InvalidAuthURLError:
            listener.close()
            raise

        signals = CallbackSignals()
        server = OAuthCallbackServer(
            listener,
            signals,
            callback_path=self.config.callback_path,
            shutdown_grace=self.config.shutdown_grace,
        )
        self.state = FlowState.LISTENING

        timeout = self.config.callback_timeout
        try:
            server.start()
            self._open_browser(auth_url)
            self.state = FlowState.AWAITING_CALLBACK

            logger.info(f"Waiting for OAuth callback (timeout: {timeout}s)")
            outcome = signals.wait(timeout)
        finally:
            server.shutdown()

        if outcome is None:
            logger.warning(f"Timeout waiting for callback after {timeout}s")
            raise AuthTimeoutError(
                f"No callback received within {timeout:g} seconds. "
                f"Please ensure you completed the sign-in in your browser."
            )

        kind, value = outcome
        if kind == "error":
            raise CallbackError(value)

        token_expiry = self.token_client.exchange_code(value, redirect_uri, credentials)
        logger.info("Authorization complete")
        return AuthResult(authenticated=True, token_expiry=token_expiry)

    def _open_browser(self, auth_url: str) -> None:
        """Open the authorize URL without waiting for the browser."""

        def run() -> None:
            try:
                self.browser_opener(auth_url)
            except Exception as e:
                logger.warning(f"Could not open browser automatically: {e}")

        logger.debug(f"Opening authorization URL: {auth_url}")
        threading.Thread(target=run, name="oauth-browser", daemon=True).start()
