"""Tests for the sungrow command line."""

import json
import tempfile
import time
from pathlib import Path
from unittest import mock

import pytest
from click.testing import CliRunner

from sungrow_monitor.app import SungrowApp
from sungrow_monitor.cli import cli, format_expiry
from sungrow_monitor.isolarcloud.exceptions import IsolarCloudAPIError
from sungrow_monitor.isolarcloud.models import Plant, PlantDevice
from sungrow_monitor.oauth.config import SungrowConfig
from sungrow_monitor.oauth.coordinator import AuthResult
from sungrow_monitor.oauth.credential_store import Credentials, CredentialStore
from sungrow_monitor.oauth.exceptions import (
    AuthRejectedError,
    AuthTimeoutError,
    NoPortAvailableError,
    PersistenceError,
)

CLEAN_ENV = {
    "SUNGROW_APP_KEY": None,
    "SUNGROW_SECRET_KEY": None,
    "SUNGROW_AUTH_URL": None,
    "SUNGROW_GATEWAY_URL": None,
    "SUNGROW_CREDENTIALS_FILE": None,
    "SUNGROW_CALLBACK_PORTS": None,
    "SUNGROW_CALLBACK_TIMEOUT": None,
}


@pytest.fixture
def temp_dir():
    """Create temporary directory for the credentials file."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def storage(temp_dir):
    return CredentialStore(temp_dir / "credentials.json")


@pytest.fixture
def app(temp_dir, storage):
    """App with a mocked coordinator."""
    config = SungrowConfig(credentials_file=str(temp_dir / "credentials.json"))
    coordinator = mock.Mock()
    coordinator.authenticate.return_value = AuthResult(True, int((time.time() + 7200) * 1000))
    return SungrowApp(config, storage, coordinator=coordinator)


@pytest.fixture
def signed_in():
    return Credentials(
        app_key="app_key_123",
        secret_key="secret_456",
        auth_url="https://web3.isolarcloud.com.hk/#/authorized-app",
        access_token="access_abc",
        refresh_token="refresh_def",
        token_expiry=int((time.time() + 3600) * 1000),
    )


def invoke(app, args, **kwargs):
    return CliRunner().invoke(cli, args, obj={"app": app}, env=CLEAN_ENV, **kwargs)


class TestFormatExpiry:
    """Tests for format_expiry."""

    def test_unknown(self):
        assert format_expiry(None) == "unknown"

    def test_expired(self):
        assert format_expiry(1000).endswith("(expired)")

    def test_remaining(self):
        expiry = int((time.time() + 2 * 3600 + 600) * 1000)
        assert "(in 2h" in format_expiry(expiry)


class TestLoginCommand:
    """Tests for the login command."""

    def test_login_with_options(self, app):
        """Options are passed to the flow as a new credentials record."""
        result = invoke(
            app,
            [
                "login",
                "--app-key", "k",
                "--secret-key", "s",
                "--auth-url", "https://idp.example/authorize",
                "--gateway-url", "https://gateway.example",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Signed in successfully" in result.output
        creds = app.coordinator.authenticate.call_args[0][0]
        assert creds.app_key == "k"
        assert creds.secret_key == "s"
        assert creds.auth_url == "https://idp.example/authorize"
        assert creds.gateway_url == "https://gateway.example"

    def test_login_prompts_for_missing_values(self, app):
        """Missing values are prompted for."""
        result = invoke(app, ["login"], input="k\ns\nhttps://idp.example/authorize\n")

        assert result.exit_code == 0, result.output
        creds = app.coordinator.authenticate.call_args[0][0]
        assert (creds.app_key, creds.secret_key) == ("k", "s")

    def test_login_reuses_stored_values(self, app, storage, signed_in):
        """Stored app credentials are reused without prompting."""
        storage.save(signed_in)

        result = invoke(app, ["login"])

        assert result.exit_code == 0, result.output
        creds = app.coordinator.authenticate.call_args[0][0]
        assert creds.app_key == "app_key_123"
        assert creds.auth_url == signed_in.auth_url
        assert creds.access_token is None

    def test_login_no_browser_prints_url(self, app):
        """--no-browser replaces the opener with printing the URL."""
        def fake_authenticate(credentials):
            app.coordinator.browser_opener("https://idp.example/authorize?redirectUrl=x")
            return AuthResult(True, 1767225600000)

        app.coordinator.authenticate.side_effect = fake_authenticate

        result = invoke(
            app,
            ["login", "--app-key", "k", "--secret-key", "s", "--auth-url", "https://idp.example/authorize", "--no-browser"],
        )

        assert result.exit_code == 0, result.output
        assert "https://idp.example/authorize?redirectUrl=x" in result.output

    @pytest.mark.parametrize(
        "error, message",
        [
            (AuthTimeoutError("No callback received within 300 seconds."), "Sign-in was not completed"),
            (AuthRejectedError("invalid code", "E1"), "rejected the credentials: invalid code"),
            (NoPortAvailableError("No available ports found (tried 8080-8090)"), "8080-8090"),
        ],
    )
    def test_login_failures(self, app, error, message):
        """Flow errors exit non-zero with a message."""
        app.coordinator.authenticate.side_effect = error

        result = invoke(
            app,
            ["login", "--app-key", "k", "--secret-key", "s", "--auth-url", "https://idp.example/authorize"],
        )

        assert result.exit_code == 1
        assert message in result.output

    def test_login_persistence_failure(self, app):
        """A save failure after sign-in is reported as a warning."""
        app.coordinator.authenticate.side_effect = PersistenceError(
            "Failed to save credentials: disk full", token_expiry=1000
        )

        result = invoke(
            app,
            ["login", "--app-key", "k", "--secret-key", "s", "--auth-url", "https://idp.example/authorize"],
        )

        assert result.exit_code == 1
        assert "could not be saved" in result.output


class TestLogoutCommand:
    """Tests for the logout command."""

    def test_logout(self, app, storage, signed_in):
        """logout removes the stored credentials."""
        storage.save(signed_in)

        result = invoke(app, ["logout"])

        assert result.exit_code == 0
        assert "Signed out" in result.output
        assert not storage.exists()


class TestStatusCommand:
    """Tests for the status command."""

    def test_status_not_signed_in(self, app):
        """status exits 1 without a session."""
        result = invoke(app, ["status"])

        assert result.exit_code == 1
        assert "Not signed in" in result.output

    def test_status_signed_in(self, app, storage, signed_in):
        """status shows the session."""
        storage.save(signed_in)

        result = invoke(app, ["status"])

        assert result.exit_code == 0
        assert "Signed in" in result.output
        assert "app_key_123" in result.output

    def test_status_json(self, app, storage, signed_in):
        """--json prints the session summary."""
        storage.save(signed_in)

        result = invoke(app, ["status", "--json"])

        data = json.loads(result.output)
        assert data["authenticated"] is True
        assert data["tokenExpiry"] == signed_in.token_expiry


class TestApiCommands:
    """Tests for the plants, devices and points commands."""

    @pytest.fixture
    def api(self, app, storage, signed_in):
        storage.save(signed_in)
        client = mock.Mock()
        with mock.patch.object(SungrowApp, "api_client", return_value=client):
            yield client

    def test_plants(self, app, api):
        api.get_plant_list.return_value = [Plant(ps_id=1234567, ps_name="Home", online_status=1)]

        result = invoke(app, ["plants"])

        assert result.exit_code == 0
        assert "Home" in result.output
        assert "[online]" in result.output

    def test_plants_json(self, app, api):
        api.get_plant_list.return_value = [Plant(ps_id=1, ps_name="Home")]

        result = invoke(app, ["plants", "--json"])

        assert json.loads(result.output)[0]["ps_id"] == 1

    def test_devices(self, app, api):
        api.get_device_list.return_value = [
            PlantDevice(uuid=1, ps_key="1234567_14_1_1", device_name="SH10RT", device_type=14)
        ]

        result = invoke(app, ["devices", "1234567"])

        assert result.exit_code == 0
        api.get_device_list.assert_called_once_with(1234567)
        assert "1234567_14_1_1" in result.output

    def test_points(self, app, api):
        api.get_device_point_data.return_value = [{"p13141": "85.0"}]

        result = invoke(app, ["points", "14", "1234567_14_1_1", "13141", "13142"])

        assert result.exit_code == 0
        api.get_device_point_data.assert_called_once_with(14, "1234567_14_1_1", [13141, 13142])
        assert json.loads(result.output) == [{"p13141": "85.0"}]

    def test_api_error(self, app, api):
        api.get_plant_list.side_effect = IsolarCloudAPIError("API error: token expired")

        result = invoke(app, ["plants"])

        assert result.exit_code == 1
        assert "token expired" in result.output

    def test_plants_not_signed_in(self, app):
        """API commands need a session."""
        result = invoke(app, ["plants"])

        assert result.exit_code == 1
        assert "Not signed in" in result.output
