"""
Local port allocation for the OAuth callback listener.

Candidates are tried strictly in order so that the redirect URI of an
attempt is reproducible; there is no retry and no randomization.

The redirect URI names ``localhost``, which a browser may resolve to the
IPv6 loopback first. A candidate held by another process on ``[::1]`` is
therefore treated as busy even when the IPv4 bind succeeds.
"""

import errno
import logging
import os
import socket
from typing import Iterable, Tuple

from .exceptions import NoPortAvailableError

logger = logging.getLogger(__name__)

_ADDR_IN_USE = {errno.EADDRINUSE, getattr(errno, "WSAEADDRINUSE", errno.EADDRINUSE)}


def _new_socket(family: int) -> socket.socket:
    sock = socket.socket(family, socket.SOCK_STREAM)
    if os.name != "nt":
        # lets a port left in TIME_WAIT by a previous flow be reused;
        # an active listener still makes bind fail
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    return sock


def _ipv6_loopback_in_use(port: int) -> bool:
    """
    Check whether another socket holds ``port`` on the IPv6 loopback.

    Hosts without IPv6 report False.
    """
    if not socket.has_ipv6:
        return False

    try:
        sock = _new_socket(socket.AF_INET6)
    except OSError:
        return False

    try:
        sock.bind(("::1", port))
    except OSError as e:
        if e.errno in _ADDR_IN_USE:
            return True
        logger.debug(f"IPv6 loopback unavailable for port {port}: {e}")
        return False
    finally:
        sock.close()
    return False


def allocate_port(
    ports: Iterable[int], host: str = "127.0.0.1"
) -> Tuple[int, socket.socket]:
    """
    Bind a listening socket on the first free candidate port.

    Candidates after the first successful bind are never touched.

    Args:
        ports: Ordered candidate ports
        host: Interface to bind

    Returns:
        Tuple of (port, listening socket). The caller owns the socket.

    Raises:
        NoPortAvailableError: If every candidate is in use
    """
    tried = []
    for port in ports:
        tried.append(port)
        sock = _new_socket(socket.AF_INET)
        try:
            sock.bind((host, port))
            sock.listen()
        except OSError as e:
            sock.close()
            logger.debug(f"Port {port} unavailable: {e}")
            continue

        bound_port = sock.getsockname()[1]
        if _ipv6_loopback_in_use(bound_port):
            sock.close()
            logger.debug(f"Port {port} unavailable: in use on [::1]")
            continue

        logger.info(f"Allocated callback port {bound_port}")
        return port, sock

    if tried:
        span = f"{tried[0]}-{tried[-1]}" if len(tried) > 1 else str(tried[0])
    else:
        span = "empty range"
    raise NoPortAvailableError(f"No available ports found (tried {span})")
