"""
Click CLI for the Sungrow Monitor client.

This module provides the command-line shell around the application
context: signing in through the browser, signing out, showing the
session status and listing plants, devices and real-time data points.
"""

import json
import logging
import sys
from datetime import datetime
from typing import Optional, Tuple

import click

from .app import SungrowApp
from .isolarcloud.exceptions import IsolarCloudAPIError, NotAuthenticatedError
from .oauth.config import SungrowConfig
from .oauth.credential_store import Credentials
from .oauth.exceptions import (
    AuthorizationError,
    AuthRejectedError,
    ConfigurationError,
    InvalidAuthURLError,
    NoPortAvailableError,
    PersistenceError,
    SungrowAuthError,
)

logger = logging.getLogger(__name__)


def print_error(message: str) -> None:
    """Print error message to stderr."""
    click.secho(f"Error: {message}", fg="red", err=True)


def print_success(message: str) -> None:
    """Print success message."""
    click.secho(message, fg="green")


def print_warning(message: str) -> None:
    """Print warning message."""
    click.secho(f"Warning: {message}", fg="yellow", err=True)


def format_expiry(token_expiry: Optional[int]) -> str:
    """Format an epoch-millisecond expiry with the time remaining."""
    if not token_expiry:
        return "unknown"

    expires_at = datetime.fromtimestamp(token_expiry / 1000)
    remaining = token_expiry / 1000 - datetime.now().timestamp()
    if remaining <= 0:
        return f"{expires_at:%Y-%m-%d %H:%M:%S} (expired)"

    hours = int(remaining // 3600)
    minutes = int((remaining % 3600) // 60)
    return f"{expires_at:%Y-%m-%d %H:%M:%S} (in {hours}h {minutes}m)"


def get_app(ctx: click.Context) -> SungrowApp:
    """Get the SungrowApp from context."""
    return ctx.obj["app"]


def _api_call(ctx: click.Context, call):
    """Run an API call against the session, exiting on failure."""
    try:
        return call(get_app(ctx).api_client())
    except NotAuthenticatedError:
        print_error("Not signed in. Run 'sungrow login' first.")
        sys.exit(1)
    except IsolarCloudAPIError as e:
        print_error(str(e))
        sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option(
    "--credentials-file",
    type=click.Path(dir_okay=False),
    envvar="SUNGROW_CREDENTIALS_FILE",
    help="Credentials file path",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, credentials_file: Optional[str]) -> None:
    """Sungrow Monitor - iSolarCloud sign-in and plant monitoring."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = SungrowConfig.from_env()
    except ConfigurationError as e:
        print_error(f"Configuration error: {e}")
        sys.exit(1)
    if credentials_file:
        config.credentials_file = credentials_file

    ctx.ensure_object(dict)
    if "app" not in ctx.obj:
        ctx.obj["app"] = SungrowApp(config)
    get_app(ctx).startup()


@cli.command()
@click.option("--app-key", envvar="SUNGROW_APP_KEY", help="iSolarCloud app key")
@click.option("--secret-key", envvar="SUNGROW_SECRET_KEY", help="iSolarCloud secret key")
@click.option("--auth-url", envvar="SUNGROW_AUTH_URL", help="Authorization page URL")
@click.option("--gateway-url", envvar="SUNGROW_GATEWAY_URL", help="Gateway base URL")
@click.option("--no-browser", is_flag=True, help="Print the URL instead of opening a browser")
@click.pass_context
def login(
    ctx: click.Context,
    app_key: Optional[str],
    secret_key: Optional[str],
    auth_url: Optional[str],
    gateway_url: Optional[str],
    no_browser: bool,
) -> None:
    """
    Sign in through the browser.

    Values not given as options are taken from the stored credentials
    or prompted for.

    Example: sungrow login --app-key ABC --auth-url https://...
    """
    app = get_app(ctx)
    stored = app.get_stored_credentials()

    app_key = app_key or (stored.app_key if stored else None) or click.prompt("App key")
    secret_key = (
        secret_key
        or (stored.secret_key if stored else None)
        or click.prompt("Secret key", hide_input=True)
    )
    auth_url = auth_url or (stored.auth_url if stored else None) or click.prompt("Auth URL")
    gateway_url = gateway_url or (stored.gateway_url if stored else None)

    if no_browser:
        app.coordinator.browser_opener = lambda url: click.echo(
            f"\nOpen this URL in your browser to sign in:\n\n  {url}\n"
        )

    click.echo("Waiting for sign-in to complete in the browser...")
    try:
        result = app.authenticate(
            Credentials(
                app_key=app_key,
                secret_key=secret_key,
                auth_url=auth_url,
                gateway_url=gateway_url,
            )
        )
    except PersistenceError as e:
        print_warning(f"Signed in, but credentials could not be saved: {e}")
        click.echo(f"Token expires: {format_expiry(e.token_expiry)}")
        sys.exit(1)
    except AuthorizationError as e:
        print_error(f"Sign-in was not completed: {e}")
        sys.exit(1)
    except AuthRejectedError as e:
        print_error(f"The provider rejected the credentials: {e.result_msg}")
        sys.exit(1)
    except (NoPortAvailableError, InvalidAuthURLError) as e:
        print_error(str(e))
        sys.exit(1)
    except SungrowAuthError as e:
        print_error(f"Sign-in failed: {e}")
        sys.exit(1)

    print_success("Signed in successfully")
    click.echo(f"Token expires: {format_expiry(result.token_expiry)}")


@cli.command()
@click.pass_context
def logout(ctx: click.Context) -> None:
    """Sign out and delete stored credentials."""
    try:
        get_app(ctx).logout()
    except PersistenceError as e:
        print_error(str(e))
        sys.exit(1)
    print_success("Signed out")


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="JSON output")
@click.pass_context
def status(ctx: click.Context, output_json: bool) -> None:
    """Show the current session."""
    app = get_app(ctx)
    credentials = app.get_stored_credentials()

    if output_json:
        click.echo(
            json.dumps(
                {
                    "authenticated": bool(credentials and credentials.is_authenticated),
                    "tokenExpiry": credentials.token_expiry if credentials else None,
                    "gatewayUrl": credentials.effective_gateway_url if credentials else None,
                    "credentialsFile": str(app.storage.credentials_file),
                },
                indent=2,
            )
        )
        return

    if credentials is None or not credentials.is_authenticated:
        click.secho("Not signed in", fg="yellow")
        click.echo(f"Credentials file: {app.storage.credentials_file}")
        sys.exit(1)

    click.secho("Signed in", fg="green")
    click.echo(f"App key:       {credentials.app_key}")
    click.echo(f"Gateway:       {credentials.effective_gateway_url}")
    click.echo(f"Token expires: {format_expiry(credentials.token_expiry)}")


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="JSON output")
@click.pass_context
def plants(ctx: click.Context, output_json: bool) -> None:
    """List plants."""
    plant_list = _api_call(ctx, lambda client: client.get_plant_list())

    if output_json:
        click.echo(json.dumps([p.to_dict() for p in plant_list], indent=2))
        return

    if not plant_list:
        click.echo("No plants found")
        return

    for plant in plant_list:
        state = "online" if plant.is_online else "offline"
        click.echo(f"{plant.ps_id:>10}  {plant.ps_name}  [{state}]")


@cli.command()
@click.argument("ps_id", type=int)
@click.option("--json", "output_json", is_flag=True, help="JSON output")
@click.pass_context
def devices(ctx: click.Context, ps_id: int, output_json: bool) -> None:
    """List devices of plant PS_ID."""
    device_list = _api_call(ctx, lambda client: client.get_device_list(ps_id))

    if output_json:
        click.echo(json.dumps([d.to_dict() for d in device_list], indent=2))
        return

    if not device_list:
        click.echo("No devices found")
        return

    for device in device_list:
        click.echo(
            f"{device.ps_key:<20}  {device.device_name}  "
            f"({device.type_name}, type {device.device_type})"
        )


@cli.command()
@click.argument("device_type", type=int)
@click.argument("ps_key")
@click.argument("point_ids", type=int, nargs=-1, required=True)
@click.pass_context
def points(
    ctx: click.Context, device_type: int, ps_key: str, point_ids: Tuple[int, ...]
) -> None:
    """
    Show real-time data points of a device.

    Example: sungrow points 14 1234567_14_1_1 13141 13142
    """
    data = _api_call(
        ctx,
        lambda client: client.get_device_point_data(device_type, ps_key, list(point_ids)),
    )
    click.echo(json.dumps(data, indent=2))


def main() -> None:
    """Entry point for the sungrow command."""
    cli(obj={})


if __name__ == "__main__":
    main()
