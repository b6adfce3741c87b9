"""Synchronous client for the clamd TCP protocol."""

from __future__ import annotations

import logging
import socket
from pathlib import Path
from typing import Optional, Union

from clamd_tcp.exceptions import ClamdConnectionError, ClamdTimeoutError, ClamdWriteError
from clamd_tcp.models import HealthCheckResult, ScanResult, VersionInfo
from clamd_tcp.protocol import (
    DEFAULT_CHUNK_SIZE,
    INSTREAM_COMMAND,
    PING_COMMAND,
    VERSION_COMMAND,
    Source,
    as_source,
    decode_reply,
    iter_frames,
    parse_ping_reply,
    parse_scan_reply,
    parse_version_reply,
    validate_chunk_size,
)
from clamd_tcp.transport import DEFAULT_ADDRESS, Address, connect

logger = logging.getLogger(__name__)

_RECV_SIZE = 4096


class ClamdClient:
    """Synchronous client for a clamd daemon listening on TCP.

    Every call opens its own connection and closes it before returning, so
    one instance can be shared between threads.

    Args:
        address: Daemon address, ``"host:port"`` or ``(host, port)``.
        timeout: Socket timeout in seconds; ``None`` blocks indefinitely.
        chunk_size: Default ``INSTREAM`` chunk size in bytes.

    Example::

        client = ClamdClient("localhost:3310")
        result = client.scan_file("/tmp/sample.txt")
        print(result.is_infected)
    """

    def __init__(
        self,
        address: Address = DEFAULT_ADDRESS,
        timeout: Optional[float] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._address = address
        self._timeout = timeout
        self._chunk_size = validate_chunk_size(chunk_size)

    def ping(self) -> str:
        """Send ``PING`` and return the raw reply (normally ``"PONG\\0"``).

        Raises:
            ClamdInvalidAddressError: If the address cannot be resolved.
            ClamdConnectionError: If the daemon is unreachable.
        """
        return self._command(PING_COMMAND)

    def version(self) -> str:
        """Send ``VERSION`` and return the raw reply text."""
        return self._command(VERSION_COMMAND)

    def health_check(self) -> HealthCheckResult:
        """Check whether the daemon answers ``PING`` with ``PONG``.

        Returns:
            A :class:`HealthCheckResult`; transport failures still raise.
        """
        return parse_ping_reply(self.ping())

    def version_info(self) -> VersionInfo:
        """Retrieve the engine and signature database versions.

        Raises:
            ClamdResponseError: If the reply is not a version string.
        """
        return parse_version_reply(self.version())

    def scan(self, source: Source, chunk_size: Optional[int] = None) -> ScanResult:
        """Stream *source* to the daemon with ``INSTREAM`` and parse the verdict.

        Args:
            source: Raw bytes or a readable binary object.
            chunk_size: Bytes per chunk; defaults to the client's chunk size.

        Returns:
            A :class:`ScanResult` with the verdict.

        Raises:
            ValueError: If *chunk_size* is not a positive 32-bit integer.
            ClamdInvalidAddressError: If the address cannot be resolved.
            ClamdConnectionError: If the daemon is unreachable or drops the reply.
            ClamdWriteError: If sending the command or payload fails.
            ClamdSourceReadError: If reading *source* fails.
            ClamdEncodingError: If the reply is not UTF-8.
            ClamdResponseError: If the reply is not a scan result.
        """
        size = self._chunk_size if chunk_size is None else validate_chunk_size(chunk_size)
        stream = as_source(source)

        with connect(self._address, self._timeout) as sock:
            _send(sock, INSTREAM_COMMAND)
            chunks = 0
            for frame in iter_frames(stream, size):
                _send(sock, frame)
                chunks += 1
            logger.debug("Sent INSTREAM body in %d chunks to %r", chunks - 1, self._address)
            reply = _read_reply(sock)

        result = parse_scan_reply(decode_reply(reply))
        if result.is_infected:
            logger.warning(
                "clamd detected infections",
                extra={"infections": list(result.detected_infections)},
            )
        return result

    def scan_bytes(self, data: bytes) -> ScanResult:
        """Scan in-memory bytes."""
        return self.scan(data)

    def scan_file(self, file_path: Union[str, Path]) -> ScanResult:
        """Stream a file on disk to the daemon.

        Raises:
            FileNotFoundError: If *file_path* does not exist.
        """
        path = Path(file_path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        with open(path, "rb") as fh:
            return self.scan(fh)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _command(self, command: bytes) -> str:
        with connect(self._address, self._timeout) as sock:
            _send(sock, command)
            reply = _read_reply(sock)
        return decode_reply(reply)


def _send(sock: socket.socket, data: bytes) -> None:
    try:
        sock.sendall(data)
    except OSError as exc:
        raise ClamdWriteError(f"failed to write to clamd: {exc}") from exc


def _read_reply(sock: socket.socket) -> bytes:
    buf = bytearray()
    try:
        while True:
            data = sock.recv(_RECV_SIZE)
            if not data:
                break
            buf += data
    except socket.timeout as exc:
        raise ClamdTimeoutError("timed out waiting for clamd reply") from exc
    except OSError as exc:
        raise ClamdConnectionError(f"failed to read clamd reply: {exc}") from exc
    logger.debug("Received %d-byte reply from clamd", len(buf))
    return bytes(buf)


# ------------------------------------------------------------------
# Module-level shortcuts
# ------------------------------------------------------------------


def ping(address: Address, timeout: Optional[float] = None) -> str:
    """Send ``PING`` to *address* and return the raw reply."""
    return ClamdClient(address, timeout=timeout).ping()


def version(address: Address, timeout: Optional[float] = None) -> str:
    """Send ``VERSION`` to *address* and return the raw reply."""
    return ClamdClient(address, timeout=timeout).version()


def scan(
    address: Address,
    source: Source,
    chunk_size: Optional[int] = None,
    timeout: Optional[float] = None,
) -> ScanResult:
    """Scan *source* on the daemon at *address*; see :meth:`ClamdClient.scan`."""
    return ClamdClient(address, timeout=timeout).scan(source, chunk_size)
