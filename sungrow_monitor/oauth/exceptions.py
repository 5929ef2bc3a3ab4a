"""
Authentication exception classes for the iSolarCloud sign-in flow.

Every failure of an authentication attempt is surfaced to the caller as one
of these types. Nothing is retried internally: a retry is always a fresh
call to ``authenticate``.
"""

from typing import Optional


class SungrowAuthError(Exception):
    """Base exception for all authentication errors."""

    pass


class ConfigurationError(SungrowAuthError):
    """Invalid or missing configuration."""

    pass


class NoPortAvailableError(SungrowAuthError):
    """Every candidate callback port is already in use."""

    pass


class InvalidAuthURLError(SungrowAuthError):
    """The supplied authorization URL could not be parsed."""

    pass


class FlowInProgressError(SungrowAuthError):
    """An authorization flow is already running in this application."""

    pass


class AuthorizationError(SungrowAuthError):
    """The interactive part of the flow did not produce a code."""

    pass


class CallbackError(AuthorizationError):
    """The redirect arrived without an authorization code (e.g. consent denied)."""

    pass


class AuthTimeoutError(AuthorizationError):
    """No redirect arrived before the deadline."""

    pass


class TokenExchangeError(SungrowAuthError):
    """Failed to exchange the authorization code for tokens."""

    pass


class NetworkError(TokenExchangeError):
    """Transport failure while talking to the token endpoint."""

    pass


class AuthRejectedError(TokenExchangeError):
    """The provider explicitly rejected the code or the app credentials."""

    def __init__(self, result_msg: str, result_code: Optional[str] = None):
        super().__init__(result_msg)
        self.result_msg = result_msg
        self.result_code = result_code


class MalformedResponseError(TokenExchangeError):
    """The token endpoint answered with an unexpected payload."""

    pass


class PersistenceError(SungrowAuthError):
    """
    Writing or deleting the credentials file failed.

    When raised after a successful token exchange the in-memory session
    already holds valid tokens; ``token_expiry`` is set in that case so the
    caller can decide whether to continue with an unpersisted session.
    """

    def __init__(self, message: str, token_expiry: Optional[int] = None):
        super().__init__(message)
        self.token_expiry = token_expiry
