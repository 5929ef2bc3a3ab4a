"""Tests for authentication exceptions."""

import pytest

from sungrow_monitor.oauth.exceptions import (
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


class TestAuthExceptions:
    """Tests for the authentication exception hierarchy."""

    @pytest.mark.parametrize(
        "exc_class",
        [
            ConfigurationError,
            NoPortAvailableError,
            InvalidAuthURLError,
            FlowInProgressError,
            AuthorizationError,
            TokenExchangeError,
            PersistenceError,
        ],
    )
    def test_all_errors_inherit_from_base(self, exc_class):
        """Every error can be caught as SungrowAuthError."""
        error = exc_class("boom")
        assert isinstance(error, SungrowAuthError)
        assert str(error) == "boom"

    def test_callback_level_failures_are_authorization_errors(self):
        """Callback errors and timeouts share AuthorizationError."""
        assert issubclass(CallbackError, AuthorizationError)
        assert issubclass(AuthTimeoutError, AuthorizationError)
        assert not issubclass(CallbackError, TokenExchangeError)

    def test_exchange_failures_are_token_exchange_errors(self):
        """Network, rejection and decoding errors share TokenExchangeError."""
        for exc_class in (NetworkError, AuthRejectedError, MalformedResponseError):
            assert issubclass(exc_class, TokenExchangeError)
            assert not issubclass(exc_class, AuthorizationError)

    def test_auth_rejected_carries_provider_message(self):
        """AuthRejectedError keeps result_msg and result_code."""
        error = AuthRejectedError("invalid code", "E900")

        assert str(error) == "invalid code"
        assert error.result_msg == "invalid code"
        assert error.result_code == "E900"

    def test_persistence_error_token_expiry_defaults_to_none(self):
        """PersistenceError carries the expiry only when tokens were obtained."""
        assert PersistenceError("disk full").token_expiry is None
        assert PersistenceError("disk full", token_expiry=123000).token_expiry == 123000
