"""
Application context for the Sungrow Monitor client.

``SungrowApp`` owns the session for the running instance: the current
credentials record, the credential store and the OAuth coordinator. UI
layers query and mutate the session through it rather than holding
credentials themselves.
"""

import logging
import threading
from typing import Optional

from .isolarcloud.client import IsolarCloudClient
from .isolarcloud.exceptions import NotAuthenticatedError
from .oauth.config import SungrowConfig
from .oauth.coordinator import AuthResult, OAuthCoordinator
from .oauth.credential_store import Credentials, CredentialStore
from .oauth.exceptions import FlowInProgressError

logger = logging.getLogger(__name__)


class SungrowApp:
    """
    Top-level application context.

    Example:
        app = SungrowApp()
        app.startup()
        if app.get_stored_credentials() is None:
            app.authenticate(Credentials(app_key, secret_key, auth_url))
        plants = app.api_client().get_plant_list()
    """

    def __init__(
        self,
        config: Optional[SungrowConfig] = None,
        storage: Optional[CredentialStore] = None,
        coordinator: Optional[OAuthCoordinator] = None,
    ):
        """
        Initialize application context.

        Args:
            config: Configuration (loads from environment if not provided)
            storage: Credential store (created from config if not provided)
            coordinator: OAuth coordinator (created if not provided)
        """
        self.config = config or SungrowConfig.from_env()
        self.storage = storage or CredentialStore(self.config.credentials_file)
        self.coordinator = coordinator or OAuthCoordinator(self.config, self.storage)
        self._credentials: Optional[Credentials] = None
        self._loaded = False
        self._flow_lock = threading.Lock()

    def startup(self) -> None:
        """Load stored credentials into the session."""
        self._credentials = self.storage.load()
        self._loaded = True
        if self._credentials is not None:
            logger.info("Restored stored credentials")

    def get_stored_credentials(self) -> Optional[Credentials]:
        """
        Current session credentials.

        Loads from the store on first use if ``startup`` was not called.
        """
        if self._credentials is None and not self._loaded:
            self.startup()
        return self._credentials

    def authenticate(self, credentials: Credentials) -> AuthResult:
        """
        Replace the session credentials and run the sign-in flow.

        Args:
            credentials: App key, secret key, authorize URL and gateway

        Returns:
            AuthResult with the new token expiry

        Raises:
            FlowInProgressError: If a flow is already running; the session
                is left untouched
            SungrowAuthError: Any failure of the flow (see OAuthCoordinator)
        """
        if not self._flow_lock.acquire(blocking=False):
            raise FlowInProgressError("An authorization flow is already in progress")

        try:
            self._credentials = credentials
            self._loaded = True
            return self.coordinator.authenticate(credentials)
        finally:
            self._flow_lock.release()

    def logout(self) -> None:
        """
        Drop the session and delete the stored credentials.

        Raises:
            PersistenceError: If the credentials file cannot be removed
        """
        self._credentials = None
        self._loaded = True
        self.storage.save(None)
        logger.info("Logged out")

    def api_client(self) -> IsolarCloudClient:
        """
        API client bound to the current session.

        Raises:
            NotAuthenticatedError: If the session holds no access token
        """
        credentials = self.get_stored_credentials()
        if credentials is None or not credentials.is_authenticated:
            raise NotAuthenticatedError("Not authenticated")
        return IsolarCloudClient(credentials, timeout=self.config.request_timeout)
