"""
Token exchange for the iSolarCloud OAuth integration.

This module converts the authorization code delivered to the callback
listener into access and refresh tokens, stores them on the session's
credentials and persists the result.
"""

import logging
import time
from typing import Callable

import requests

from ..envelope import ApiResponse
from .credential_store import Credentials, CredentialStore
from .exceptions import (
    AuthRejectedError,
    MalformedResponseError,
    NetworkError,
    PersistenceError,
)

logger = logging.getLogger(__name__)

TOKEN_PATH = "/openapi/apiManage/token"


class TokenExchangeClient:
    """
    Exchanges authorization codes at the gateway token endpoint.

    The request is authenticated with the app secret in the vendor
    ``x-access-key`` header; no bearer token exists yet at this point.
    """

    def __init__(
        self,
        storage: CredentialStore,
        timeout: int = 30,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize token exchange client.

        Args:
            storage: Store the updated credentials are persisted to
            timeout: HTTP timeout in seconds
            clock: Source of the current epoch time in seconds
        """
        self.storage = storage
        self.timeout = timeout
        self._clock = clock

    def exchange_code(
        self, code: str, redirect_uri: str, credentials: Credentials
    ) -> int:
        """
        Exchange an authorization code for tokens.

        On success ``credentials`` is updated in place and saved.

        Args:
            code: Authorization code received by the callback listener
            redirect_uri: Redirect URI used for this authorization
            credentials: Session credentials (app key, secret, gateway)

        Returns:
            New token expiry in epoch milliseconds

        Raises:
            NetworkError: On transport failure
            AuthRejectedError: If the gateway rejects the code
            MalformedResponseError: If the response cannot be decoded
            PersistenceError: If saving fails; tokens are kept in memory
        """
        token_url = f"{credentials.effective_gateway_url}{TOKEN_PATH}"
        logger.info("Exchanging authorization code for tokens")

        try:
            response = requests.post(
                token_url,
                headers={
                    "Content-Type": "application/json",
                    "x-access-key": credentials.secret_key,
                },
                json={
                    "appkey": credentials.app_key,
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": redirect_uri,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Network error during token exchange: {e}")
            raise NetworkError(f"Network error during token exchange: {e}") from e

        try:
            envelope = ApiResponse.from_json(response.json())
        except ValueError as e:
            logger.error(
                f"Invalid response from token endpoint "
                f"(HTTP {response.status_code}): {e}"
            )
            raise MalformedResponseError(
                f"Invalid response from token endpoint "
                f"(HTTP {response.status_code}): {e}"
            ) from e

        if not envelope.ok:
            logger.error(
                f"Token exchange rejected: {envelope.result_code} - {envelope.result_msg}"
            )
            raise AuthRejectedError(envelope.result_msg, envelope.result_code)

        data = envelope.result_data
        try:
            access_token = data["access_token"]
            refresh_token = data["refresh_token"]
            expires_in = int(data["expires_in"])
            if not isinstance(access_token, str) or not access_token:
                raise ValueError("access_token must be a non-empty string")
            if not isinstance(refresh_token, str):
                raise ValueError("refresh_token must be a string")
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Invalid token payload: {e!r}")
            raise MalformedResponseError(f"Invalid token payload: {e!r}") from e

        expiry_ms = (int(self._clock()) + expires_in) * 1000

        credentials.access_token = access_token
        credentials.refresh_token = refresh_token
        credentials.token_expiry = expiry_ms

        try:
            self.storage.save(credentials)
        except PersistenceError as e:
            raise PersistenceError(str(e), token_expiry=expiry_ms) from e

        logger.info(f"Tokens obtained, valid for {expires_in}s")
        return expiry_ms
