"""
Credential storage for the iSolarCloud session.

This module provides file-based persistence of the single credentials
record the application signs in with. The record lives in the per-user
configuration directory and is readable by the owning user only.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import DEFAULT_GATEWAY_URL
from .exceptions import PersistenceError

logger = logging.getLogger(__name__)

# attribute name -> JSON key of the persisted record
_FIELD_KEYS = {
    "app_key": "appKey",
    "secret_key": "secretKey",
    "auth_url": "authUrl",
    "access_token": "accessToken",
    "refresh_token": "refreshToken",
    "token_expiry": "tokenExpiry",
    "gateway_url": "gatewayUrl",
}


@dataclass
class Credentials:
    """
    App credentials and, once signed in, the issued tokens.

    Attributes:
        app_key: iSolarCloud application key
        secret_key: Application secret, sent as ``x-access-key``
        auth_url: Authorization page URL issued for the application
        gateway_url: Gateway base URL (None uses the default gateway)
        access_token: Bearer token for API calls
        refresh_token: Refresh token issued alongside the access token
        token_expiry: Absolute access token expiry in epoch milliseconds
    """

    app_key: str
    secret_key: str
    auth_url: str
    gateway_url: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_expiry: Optional[int] = None

    @property
    def effective_gateway_url(self) -> str:
        """Gateway base URL with the default applied and no trailing slash."""
        return (self.gateway_url or DEFAULT_GATEWAY_URL).rstrip("/")

    @property
    def is_authenticated(self) -> bool:
        """True once a token exchange has stored an access token."""
        return bool(self.access_token)

    def to_dict(self) -> dict:
        """
        Convert to the persisted JSON shape.

        Empty optional fields are omitted.
        """
        data = {
            "appKey": self.app_key,
            "secretKey": self.secret_key,
            "authUrl": self.auth_url,
        }
        for attr in ("access_token", "refresh_token", "token_expiry", "gateway_url"):
            value = getattr(self, attr)
            if value:
                data[_FIELD_KEYS[attr]] = value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Credentials":
        """
        Create Credentials from the persisted JSON shape.

        Raises:
            TypeError: If ``data`` is not an object
            ValueError: If a field has the wrong type
        """
        if not isinstance(data, dict):
            raise TypeError(f"expected a JSON object, got {type(data).__name__}")

        values = {attr: data.get(key) for attr, key in _FIELD_KEYS.items()}
        for attr in ("app_key", "secret_key", "auth_url"):
            values[attr] = values[attr] or ""

        for attr, value in values.items():
            if attr == "token_expiry":
                if value is not None and (
                    isinstance(value, bool) or not isinstance(value, int)
                ):
                    raise ValueError("tokenExpiry must be an integer")
            elif value is not None and not isinstance(value, str):
                raise ValueError(f"{_FIELD_KEYS[attr]} must be a string")

        return cls(**values)


class CredentialStore:
    """
    File-based credential storage (plaintext JSON, mode 600).

    Absence of the file is the normal cold-start state and is never
    reported as an error by ``load``.
    """

    def __init__(self, credentials_file: str):
        """
        Initialize credential storage.

        Args:
            credentials_file: Path to the credentials file
        """
        self.credentials_file = Path(credentials_file)

    def load(self) -> Optional[Credentials]:
        """
        Load the stored credentials.

        Returns:
            Credentials if the file exists and is valid, None otherwise

        Notes:
            - Returns None if the file doesn't exist (logged at debug)
            - Returns None if the file is unreadable or corrupted (logged
              as a warning)
        """
        if not self.credentials_file.exists():
            logger.debug(f"No credentials file at {self.credentials_file}")
            return None

        try:
            with open(self.credentials_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            credentials = Credentials.from_dict(data)
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            logger.warning(
                f"Ignoring malformed credentials file {self.credentials_file}: {e}"
            )
            return None
        except OSError as e:
            logger.warning(f"Could not read credentials file: {e}")
            return None

        logger.debug(f"Credentials loaded from {self.credentials_file}")
        return credentials

    def save(self, credentials: Optional[Credentials]) -> None:
        """
        Persist the credentials record.

        Passing None deletes the file instead of writing an empty record.

        Args:
            credentials: Record to write, or None to clear

        Raises:
            PersistenceError: If the file cannot be written or removed
        """
        if credentials is None:
            self.delete()
            return

        try:
            self.credentials_file.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd = os.open(
                self.credentials_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(credentials.to_dict(), f, indent=2)
            # O_CREAT mode does not apply to a file that already existed
            self.credentials_file.chmod(0o600)
        except OSError as e:
            logger.error(f"Failed to save credentials: {e}")
            raise PersistenceError(f"Failed to save credentials: {e}") from e

        logger.info(f"Credentials saved to {self.credentials_file}")

    def delete(self) -> bool:
        """
        Delete the credentials file.

        Returns:
            True if the file was deleted, False if it didn't exist

        Raises:
            PersistenceError: If the file exists but cannot be removed
        """
        try:
            self.credentials_file.unlink()
        except FileNotFoundError:
            logger.debug(f"Credentials file does not exist: {self.credentials_file}")
            return False
        except OSError as e:
            logger.error(f"Failed to delete credentials file: {e}")
            raise PersistenceError(f"Failed to delete credentials file: {e}") from e

        logger.info(f"Credentials file deleted: {self.credentials_file}")
        return True

    def exists(self) -> bool:
        """Check whether a credentials file is present."""
        return self.credentials_file.exists()
