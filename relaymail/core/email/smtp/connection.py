"""Endpoint parsing and socket setup for a single SMTP send."""

import socket
from typing import Optional, Tuple

from relaymail.utils.errors import SMTPConnectionError
from relaymail.utils.logging import get_logger, log_call

logger = get_logger(__name__)


class AddressError(ValueError):
    """A host:port string could not be split."""


def split_host_port(host_and_port: str) -> Tuple[str, str]:
    """Split ``host:port`` (or ``[ipv6]:port``) into host and port.

    Raises:
        AddressError: If the port is missing or the host part is malformed
    """
    if host_and_port.startswith("["):
        end = host_and_port.find("]")
        if end < 0:
            raise AddressError(f"missing ']' in address {host_and_port!r}")
        rest = host_and_port[end + 1:]
        if not rest:
            raise AddressError(f"missing port in address {host_and_port!r}")
        if not rest.startswith(":") or ":" in rest[1:]:
            raise AddressError(f"unexpected text after ']' in address {host_and_port!r}")
        host, port = host_and_port[1:end], rest[1:]
    else:
        host, sep, port = host_and_port.rpartition(":")
        if not sep:
            raise AddressError(f"missing port in address {host_and_port!r}")
        if ":" in host:
            raise AddressError(f"too many colons in address {host_and_port!r}")

    if "[" in host or "]" in host:
        raise AddressError(f"unexpected bracket in address {host_and_port!r}")

    return host, port


def derive_hostname(host_and_port: str) -> str:
    """Hostname used for TLS identity and the AUTH plaintext policy.

    Falls back to the raw string when it cannot be split. Such a value
    almost certainly fails to dial, which is where the caller sees the error.
    """
    try:
        host, _ = split_host_port(host_and_port)
    except AddressError:
        logger.debug(f"Could not split {host_and_port!r}, using it as hostname")
        return host_and_port
    return host


def _port_number(port: str) -> int:
    """Numeric port, or the TCP port registered for a service name like "smtp"."""
    if port.isdigit():
        number = int(port)
        if number > 65535:
            raise AddressError(f"invalid port {port!r}")
        return number
    try:
        return socket.getservbyname(port, "tcp")
    except OSError as e:
        raise AddressError(f"unknown port {port!r}") from e


@log_call
def dial(host_and_port: str, timeout: Optional[float] = None) -> socket.socket:
    """Open a blocking TCP connection to ``host:port``.

    The port may be a number or a service name such as ``smtp``.

    Raises:
        SMTPConnectionError: If the address is invalid or the connection fails
    """
    try:
        host, port = split_host_port(host_and_port)
        port_number = _port_number(port)
    except ValueError as e:
        raise SMTPConnectionError(
            f"Invalid SMTP server address: {host_and_port}",
            details={"address": host_and_port, "error": str(e)},
        ) from e

    try:
        conn = socket.create_connection((host, port_number), timeout=timeout)
    except OSError as e:
        raise SMTPConnectionError(
            f"Failed to connect to SMTP server {host_and_port}",
            details={"address": host_and_port, "error": str(e)},
        ) from e

    logger.debug(f"Connected to {host_and_port}")
    return conn
