"""
OAuth callback listener for the iSolarCloud sign-in flow.

This module provides the short-lived local HTTP endpoint that catches the
identity provider's redirect. It serves a single route on a socket that
was bound by the port allocator, publishes what it receives to a pair of
single-slot signals, and can be stopped from any thread within a bounded
grace period.

IMPORTANT: The listener is single-use. One instance exists per
authorization attempt and is closed when the attempt ends.
"""

import logging
import socket
import threading
import time
from typing import Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from flask import Flask, Response, request
from werkzeug.serving import BaseWSGIServer, make_server

from .exceptions import InvalidAuthURLError

logger = logging.getLogger(__name__)

REDIRECT_PARAM = "redirectUrl"

SUCCESS_PAGE = """<html>
<head><title>Authentication Successful</title></head>
<body style="font-family: sans-serif; display: flex; align-items: center; justify-content: center; height: 100vh; margin: 0; background: linear-gradient(135deg, #0f172a 0%, #1e293b 100%); color: white;">
    <div style="text-align: center;">
        <h1 style="color: #10b981;">&#10003; Authentication Successful</h1>
        <p>You can close this window and return to the app.</p>
    </div>
</body>
</html>"""


def build_redirect_uri(port: int, path: str = "/callback") -> str:
    """Redirect URI registered with the provider for an allocated port."""
    return f"http://localhost:{port}{path}"


def build_authorization_url(auth_url: str, redirect_uri: str) -> str:
    """
    Point the provider's authorize URL at our callback.

    The ``redirectUrl`` query parameter is set, replacing any existing
    value; other parameters keep their order.

    Args:
        auth_url: Authorization URL supplied with the app credentials
        redirect_uri: Callback URI of the local listener

    Returns:
        Authorization URL to open in the browser

    Raises:
        InvalidAuthURLError: If ``auth_url`` is not an absolute URL or has
            an invalid port
    """
    try:
        parts = urlsplit(auth_url)
        # raises for a non-numeric or out-of-range port
        parts.port
    except ValueError as e:
        raise InvalidAuthURLError(f"Invalid auth URL: {e}") from e

    if not parts.scheme or not parts.netloc:
        raise InvalidAuthURLError(f"Invalid auth URL: {auth_url!r}")

    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key != REDIRECT_PARAM
    ]
    query.append((REDIRECT_PARAM, redirect_uri))
    return urlunsplit(parts._replace(query=urlencode(query)))


class CallbackSignals:
    """
    Single-slot code and error signals fed by the callback route.

    Each slot keeps its first value; later deliveries are dropped. The
    first publication on either slot wakes ``wait``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._arrived = threading.Event()
        self._first: Optional[Tuple[str, str]] = None
        self.code: Optional[str] = None
        self.error: Optional[str] = None

    def publish_code(self, code: str) -> bool:
        """Store the authorization code. Returns False if one was already stored."""
        return self._publish("code", code)

    def publish_error(self, message: str) -> bool:
        """Store a callback error. Returns False if one was already stored."""
        return self._publish("error", message)

    def _publish(self, kind: str, value: str) -> bool:
        with self._lock:
            if getattr(self, kind) is not None:
                return False
            setattr(self, kind, value)
            if self._first is None:
                self._first = (kind, value)
        self._arrived.set()
        return True

    def wait(self, timeout: Optional[float] = None) -> Optional[Tuple[str, str]]:
        """
        Block until a code or an error is published.

        Args:
            timeout: Maximum seconds to wait

        Returns:
            ``("code", value)`` or ``("error", message)`` for whichever
            arrived first, or None on timeout
        """
        if not self._arrived.wait(timeout):
            return None
        with self._lock:
            return self._first


def create_callback_app(signals: CallbackSignals, callback_path: str = "/callback") -> Flask:
    """
    Build the Flask app serving the redirect route.

    Args:
        signals: Signals the route publishes to
        callback_path: Route path of the redirect URI

    Returns:
        Flask application with a single GET route
    """
    app = Flask(__name__)
    app.logger.setLevel(logging.WARNING)  # Suppress Flask logs

    def oauth_callback() -> Response:
        code = request.args.get("code")
        if not code:
            error = request.args.get("error")
            if error:
                description = request.args.get("error_description", "")
                message = f"authorization failed: {error} {description}".strip()
            else:
                message = "no authorization code received"
            logger.error(f"OAuth callback without code: {message}")
            if not signals.publish_error(message):
                logger.debug("Callback error already recorded, dropping")
            return Response(
                "Authentication failed: no code received",
                status=400,
                content_type="text/plain",
            )

        logger.info("Authorization code received")
        if not signals.publish_code(code):
            logger.debug("Authorization code already recorded, dropping duplicate")
        return Response(SUCCESS_PAGE, status=200, content_type="text/html")

    app.add_url_rule(callback_path, "oauth_callback", oauth_callback, methods=["GET"])
    return app


class OAuthCallbackServer:
    """
    Serves the callback app on an already-bound listener.

    The server takes ownership of the listener passed in: it is closed by
    ``shutdown`` (or immediately, if the WSGI server cannot be created).

    The server:
    1. Adopts the listening socket from the port allocator
    2. Serves the callback route on a background thread
    3. Stops on request, waiting at most the grace period for the
       serve loop and in-flight responses before forcing the socket closed
    """

    def __init__(
        self,
        listener: socket.socket,
        signals: CallbackSignals,
        callback_path: str = "/callback",
        shutdown_grace: float = 5.0,
    ):
        """
        Initialize callback server.

        Args:
            listener: Bound, listening socket (ownership transfers here)
            signals: Signals the callback route publishes to
            callback_path: Route path of the redirect URI
            shutdown_grace: Default seconds allowed for shutdown
        """
        self.signals = signals
        self.shutdown_grace = shutdown_grace
        self.app = create_callback_app(signals, callback_path)
        self.app.before_request(self._request_started)
        self.app.after_request(self._finish_on_close)

        self._lock = threading.Lock()
        self._idle = threading.Condition()
        self._inflight = 0
        self._stopped = False
        self._thread: Optional[threading.Thread] = None

        host, port = listener.getsockname()[:2]
        self.port = port
        try:
            self._server: BaseWSGIServer = make_server(
                host, port, self.app, threaded=True, fd=listener.fileno()
            )
        finally:
            # make_server duplicates the descriptor
            listener.close()
        logging.getLogger("werkzeug").setLevel(logging.WARNING)

    def _request_started(self) -> None:
        with self._idle:
            self._inflight += 1

    def _finish_on_close(self, response: Response) -> Response:
        response.call_on_close(self._request_finished)
        return response

    def _request_finished(self) -> None:
        with self._idle:
            self._inflight -= 1
            self._idle.notify_all()

    def start(self) -> None:
        """Start serving on a background daemon thread."""
        with self._lock:
            if self._stopped:
                raise RuntimeError("Callback server already shut down")
            self._thread = threading.Thread(
                target=self._server.serve_forever,
                kwargs={"poll_interval": 0.1},
                name=f"oauth-callback-{self.port}",
                daemon=True,
            )
            self._thread.start()
        logger.info(f"OAuth callback server listening on port {self.port}")

    def shutdown(self, grace: Optional[float] = None) -> None:
        """
        Stop the server and release the port.

        Safe to call from any thread and more than once; only the first
        call does anything. Never blocks longer than ``grace`` seconds.

        Args:
            grace: Seconds to wait before forcing (default: shutdown_grace)
        """
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            thread = self._thread

        grace = self.shutdown_grace if grace is None else grace
        deadline = time.monotonic() + grace

        if thread is not None:
            stopper = threading.Thread(target=self._server.shutdown, daemon=True)
            stopper.start()
            stopper.join(grace)

            with self._idle:
                drained = self._idle.wait_for(
                    lambda: self._inflight == 0,
                    timeout=max(0.0, deadline - time.monotonic()),
                )

            if stopper.is_alive() or not drained:
                logger.warning(
                    f"OAuth callback server did not stop within {grace}s, forcing"
                )

        self._server.server_close()
        logger.info("OAuth callback server shut down")
