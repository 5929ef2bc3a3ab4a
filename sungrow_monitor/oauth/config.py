"""
Configuration for the Sungrow Monitor client.

Configuration can be loaded from environment variables or provided
programmatically. Per-user credentials (app key, secret key, authorize
URL) are not part of this configuration; they are supplied at sign-in
and persisted by the credential store.
"""

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

from .exceptions import ConfigurationError

APP_NAME = "SungrowMonitor"
DEFAULT_GATEWAY_URL = "https://augateway.isolarcloud.com"
DEFAULT_PORT_RANGE = (8080, 8090)


def user_config_dir() -> Path:
    """
    Per-user configuration directory for the current platform.

    Returns:
        ``%APPDATA%`` on Windows, ``~/Library/Application Support`` on macOS,
        ``$XDG_CONFIG_HOME`` (or ``~/.config``) elsewhere.
    """
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if not appdata:
            raise ConfigurationError("APPDATA environment variable is not set")
        return Path(appdata)

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".config"


def default_credentials_file() -> str:
    """Default location of the persisted credentials record."""
    return str(user_config_dir() / APP_NAME / "credentials.json")


def parse_port_range(value: str) -> Tuple[int, int]:
    """
    Parse a ``"first-last"`` port range string.

    Args:
        value: Range such as ``"8080-8090"`` or a single port ``"8080"``

    Returns:
        Inclusive (first, last) tuple

    Raises:
        ConfigurationError: If the value is not a valid range
    """
    first, _, last = value.strip().partition("-")
    try:
        start = int(first)
        end = int(last) if last else start
    except ValueError as e:
        raise ConfigurationError(f"Invalid port range: {value!r}") from e
    return start, end


@dataclass
class SungrowConfig:
    """
    Runtime configuration for authentication and API access.

    Attributes:
        port_range: Inclusive range of local ports tried for the callback
        callback_host: Interface the callback listener binds to
        callback_path: URL path of the redirect route
        callback_timeout: Seconds to wait for the browser redirect
        shutdown_grace: Seconds allowed for the listener to stop
        request_timeout: Timeout for gateway HTTP requests in seconds
        credentials_file: Path of the persisted credentials record
    """

    port_range: Tuple[int, int] = DEFAULT_PORT_RANGE
    callback_host: str = "127.0.0.1"
    callback_path: str = "/callback"
    callback_timeout: float = 300.0
    shutdown_grace: float = 5.0
    request_timeout: int = 30
    credentials_file: str = ""

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.credentials_file:
            self.credentials_file = default_credentials_file()

        first, last = self.port_range
        for port in (first, last):
            if not isinstance(port, int) or not (1 <= port <= 65535):
                raise ConfigurationError(
                    f"port_range must be between 1 and 65535, got {self.port_range}"
                )
        if first > last:
            raise ConfigurationError(
                f"port_range must be ascending, got {self.port_range}"
            )

        if not self.callback_path.startswith("/"):
            raise ConfigurationError("callback_path must start with '/'")

        if self.callback_timeout <= 0:
            raise ConfigurationError("callback_timeout must be positive")

        if self.shutdown_grace < 0:
            raise ConfigurationError("shutdown_grace cannot be negative")

        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")

    @property
    def candidate_ports(self) -> range:
        """Callback ports in the order they are tried."""
        first, last = self.port_range
        return range(first, last + 1)

    @classmethod
    def from_env(cls) -> "SungrowConfig":
        """
        Load configuration from environment variables.

        Optional environment variables:
            SUNGROW_CALLBACK_PORTS: Port range, e.g. ``8080-8090``
            SUNGROW_CALLBACK_HOST: Bind address for the callback listener
            SUNGROW_CALLBACK_TIMEOUT: Seconds to wait for the redirect
            SUNGROW_CREDENTIALS_FILE: Credentials file path

        Returns:
            SungrowConfig instance

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        port_range = DEFAULT_PORT_RANGE
        if os.environ.get("SUNGROW_CALLBACK_PORTS"):
            port_range = parse_port_range(os.environ["SUNGROW_CALLBACK_PORTS"])

        try:
            callback_timeout = float(os.environ.get("SUNGROW_CALLBACK_TIMEOUT", "300"))
        except ValueError as e:
            raise ConfigurationError(
                "SUNGROW_CALLBACK_TIMEOUT must be a number of seconds"
            ) from e

        return cls(
            port_range=port_range,
            callback_host=os.environ.get("SUNGROW_CALLBACK_HOST", "127.0.0.1"),
            callback_timeout=callback_timeout,
            credentials_file=os.environ.get("SUNGROW_CREDENTIALS_FILE", ""),
        )
