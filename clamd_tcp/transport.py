"""Address resolution and blocking TCP connect for clamd."""

from __future__ import annotations

import logging
import socket
from typing import Any, Optional, Tuple, Union

from clamd_tcp.exceptions import ClamdConnectionError, ClamdInvalidAddressError, ClamdTimeoutError

logger = logging.getLogger(__name__)

Address = Union[str, Tuple[str, int]]
Endpoint = Tuple[int, int, int, Any]

DEFAULT_ADDRESS = "localhost:3310"


def parse_address(address: Address) -> tuple[str, int]:
    """Split *address* into ``(host, port)``.

    Accepts ``"host:port"``, ``"[ipv6]:port"`` or a ``(host, port)`` tuple.

    Raises:
        ClamdInvalidAddressError: If *address* is not one of those forms.
    """
    if isinstance(address, tuple):
        if len(address) != 2:
            raise ClamdInvalidAddressError(f"expected (host, port), got {address!r}")
        host, port = address
    elif isinstance(address, str):
        host, sep, port = address.strip().rpartition(":")
        if not sep:
            raise ClamdInvalidAddressError(f"missing port in address {address!r}")
        if host.startswith("[") and host.endswith("]"):
            host = host[1:-1]
    else:
        raise ClamdInvalidAddressError(f"unsupported address type {type(address).__name__}")

    if not isinstance(host, str) or not host or any(ch.isspace() for ch in host):
        raise ClamdInvalidAddressError(f"invalid host in address {address!r}")
    try:
        port = int(port)
    except (TypeError, ValueError) as exc:
        raise ClamdInvalidAddressError(f"invalid port in address {address!r}") from exc
    if not 0 < port < 65536:
        raise ClamdInvalidAddressError(f"port out of range in address {address!r}")
    return host, port


def first_endpoint(address: Address, infos: list) -> Endpoint:
    if not infos:
        raise ClamdInvalidAddressError(f"address {address!r} resolved to no endpoints")
    family, type_, proto, _canonname, sockaddr = infos[0]
    return family, type_, proto, sockaddr


def resolve(address: Address) -> Endpoint:
    """Resolve *address* and return its first endpoint.

    Returns:
        ``(family, type, proto, sockaddr)`` suitable for :func:`socket.socket`.

    Raises:
        ClamdInvalidAddressError: If the address is malformed or does not resolve.
    """
    host, port = parse_address(address)
    try:
        infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError) as exc:
        raise ClamdInvalidAddressError(f"cannot resolve {address!r}: {exc}") from exc
    return first_endpoint(address, infos)


def connect(address: Address, timeout: Optional[float] = None) -> socket.socket:
    """Open a TCP connection to the first endpoint *address* resolves to.

    Args:
        address: Daemon address.
        timeout: Socket timeout in seconds for connect and later I/O;
            ``None`` blocks indefinitely.

    Raises:
        ClamdInvalidAddressError: If *address* cannot be resolved.
        ClamdTimeoutError: If the connect times out.
        ClamdConnectionError: If the connection is refused or fails.
    """
    family, type_, proto, sockaddr = resolve(address)
    sock = socket.socket(family, type_, proto)
    try:
        sock.settimeout(timeout)
        sock.connect(sockaddr)
    except socket.timeout as exc:
        sock.close()
        raise ClamdTimeoutError(f"timed out connecting to {address!r}") from exc
    except OSError as exc:
        sock.close()
        raise ClamdConnectionError(f"cannot connect to {address!r}: {exc}") from exc
    logger.debug("Connected to clamd at %s", sockaddr)
    return sock
