"""Tests for the token exchange client module."""

import json
import tempfile
from pathlib import Path
from unittest import mock

import pytest
import requests

from sungrow_monitor.oauth.credential_store import Credentials, CredentialStore
from sungrow_monitor.oauth.exceptions import (
    AuthRejectedError,
    MalformedResponseError,
    NetworkError,
    PersistenceError,
    TokenExchangeError,
)
from sungrow_monitor.oauth.token_client import TOKEN_PATH, TokenExchangeClient

FIXED_NOW = 1767225600.7


def _response(payload, status_code=200):
    """Build a mock requests response returning ``payload``."""
    response = mock.Mock()
    response.status_code = status_code
    response.json.return_value = payload
    return response


def _token_payload(**overrides):
    data = {
        "access_token": "new_access",
        "refresh_token": "new_refresh",
        "expires_in": 172800,
        "token_type": "bearer",
    }
    data.update(overrides)
    return {"result_code": "1", "result_msg": "success", "result_data": data}


class TestTokenExchangeClient:
    """Tests for TokenExchangeClient class."""

    @pytest.fixture
    def temp_dir(self):
        """Create temporary directory for the credentials file."""
        with tempfile.TemporaryDirectory() as d:
            yield Path(d)

    @pytest.fixture
    def storage(self, temp_dir):
        return CredentialStore(temp_dir / "credentials.json")

    @pytest.fixture
    def client(self, storage):
        return TokenExchangeClient(storage, timeout=10, clock=lambda: FIXED_NOW)

    @pytest.fixture
    def credentials(self):
        return Credentials(
            app_key="app_key_123",
            secret_key="secret_456",
            auth_url="https://web3.isolarcloud.com.hk/#/authorized-app",
            gateway_url="https://gateway.example/",
        )

    def test_exchange_success(self, client, storage, credentials):
        """Successful exchange updates, persists and returns the expiry."""
        with mock.patch("requests.post") as mock_post:
            mock_post.return_value = _response(_token_payload())

            expiry = client.exchange_code(
                "abc123", "http://localhost:8080/callback", credentials
            )

        assert expiry == (int(FIXED_NOW) + 172800) * 1000
        assert credentials.access_token == "new_access"
        assert credentials.refresh_token == "new_refresh"
        assert credentials.token_expiry == expiry

        stored = storage.load()
        assert stored == credentials

    def test_exchange_request_shape(self, client, credentials):
        """The request goes to the gateway token endpoint with the secret header."""
        with mock.patch("requests.post") as mock_post:
            mock_post.return_value = _response(_token_payload())

            client.exchange_code("abc123", "http://localhost:8081/callback", credentials)

        args, kwargs = mock_post.call_args
        assert args[0] == f"https://gateway.example{TOKEN_PATH}"
        assert kwargs["headers"]["x-access-key"] == "secret_456"
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert kwargs["json"] == {
            "appkey": "app_key_123",
            "grant_type": "authorization_code",
            "code": "abc123",
            "redirect_uri": "http://localhost:8081/callback",
        }
        assert kwargs["timeout"] == 10
        assert "Authorization" not in kwargs["headers"]

    def test_numeric_result_code_accepted(self, client, credentials):
        """A numeric success code is treated like the string form."""
        payload = _token_payload()
        payload["result_code"] = 1

        with mock.patch("requests.post") as mock_post:
            mock_post.return_value = _response(payload)
            client.exchange_code("abc123", "http://localhost:8080/callback", credentials)

        assert credentials.access_token == "new_access"

    def test_exchange_rejected(self, client, storage, credentials):
        """A non-success result code raises with the provider's message."""
        with mock.patch("requests.post") as mock_post:
            mock_post.return_value = _response(
                {"result_code": "E00003", "result_msg": "invalid code", "result_data": None}
            )

            with pytest.raises(AuthRejectedError) as exc_info:
                client.exchange_code("bad", "http://localhost:8080/callback", credentials)

        assert exc_info.value.result_msg == "invalid code"
        assert exc_info.value.result_code == "E00003"
        assert "invalid code" in str(exc_info.value)
        assert credentials.access_token is None
        assert not storage.exists()

    def test_network_error(self, client, storage, credentials):
        """Transport failures raise NetworkError."""
        with mock.patch("requests.post") as mock_post:
            mock_post.side_effect = requests.ConnectionError("connection refused")

            with pytest.raises(NetworkError) as exc_info:
                client.exchange_code("abc123", "http://localhost:8080/callback", credentials)

        assert "connection refused" in str(exc_info.value)
        assert isinstance(exc_info.value, TokenExchangeError)
        assert not storage.exists()

    def test_timeout_is_network_error(self, client, credentials):
        """A request timeout is a network error."""
        with mock.patch("requests.post") as mock_post:
            mock_post.side_effect = requests.Timeout("read timed out")

            with pytest.raises(NetworkError):
                client.exchange_code("abc123", "http://localhost:8080/callback", credentials)

    def test_non_json_body(self, client, credentials):
        """An undecodable body raises MalformedResponseError with the status."""
        response = mock.Mock()
        response.status_code = 502
        response.json.side_effect = json.JSONDecodeError("Expecting value", "<html>", 0)

        with mock.patch("requests.post") as mock_post:
            mock_post.return_value = response

            with pytest.raises(MalformedResponseError) as exc_info:
                client.exchange_code("abc123", "http://localhost:8080/callback", credentials)

        assert "502" in str(exc_info.value)

    def test_body_without_envelope(self, client, credentials):
        """JSON without a result code is malformed."""
        with mock.patch("requests.post") as mock_post:
            mock_post.return_value = _response({"access_token": "x"})

            with pytest.raises(MalformedResponseError):
                client.exchange_code("abc123", "http://localhost:8080/callback", credentials)

    @pytest.mark.parametrize(
        "result_data",
        [
            None,
            {"refresh_token": "r", "expires_in": 3600},
            {"access_token": "a", "refresh_token": "r"},
            {"access_token": "a", "refresh_token": "r", "expires_in": "soon"},
            {"access_token": "", "refresh_token": "r", "expires_in": 3600},
        ],
    )
    def test_malformed_token_payload(self, client, storage, credentials, result_data):
        """Missing or mistyped token fields raise MalformedResponseError."""
        with mock.patch("requests.post") as mock_post:
            mock_post.return_value = _response(
                {"result_code": "1", "result_msg": "success", "result_data": result_data}
            )

            with pytest.raises(MalformedResponseError):
                client.exchange_code("abc123", "http://localhost:8080/callback", credentials)

        assert credentials.access_token is None
        assert not storage.exists()

    def test_persistence_failure_keeps_tokens(self, credentials):
        """When saving fails the tokens stay in memory and the expiry is reported."""
        storage = mock.Mock(spec=CredentialStore)
        storage.save.side_effect = PersistenceError("disk full")
        client = TokenExchangeClient(storage, clock=lambda: FIXED_NOW)

        with mock.patch("requests.post") as mock_post:
            mock_post.return_value = _response(_token_payload(expires_in=3600))

            with pytest.raises(PersistenceError) as exc_info:
                client.exchange_code("abc123", "http://localhost:8080/callback", credentials)

        expected = (int(FIXED_NOW) + 3600) * 1000
        assert exc_info.value.token_expiry == expected
        assert credentials.access_token == "new_access"
        assert credentials.token_expiry == expected
        assert "disk full" in str(exc_info.value)
