"""Asynchronous client for the clamd TCP protocol (asyncio streams)."""

from __future__ import annotations

import asyncio
import inspect
import logging
import socket
from pathlib import Path
from typing import Any, Optional, Union

from clamd_tcp.exceptions import (
    ClamdConnectionError,
    ClamdInvalidAddressError,
    ClamdSourceReadError,
    ClamdTimeoutError,
    ClamdWriteError,
)
from clamd_tcp.models import HealthCheckResult, ScanResult, VersionInfo
from clamd_tcp.protocol import (
    DEFAULT_CHUNK_SIZE,
    FOOTER,
    INSTREAM_COMMAND,
    PING_COMMAND,
    VERSION_COMMAND,
    as_source,
    check_chunk,
    decode_reply,
    encode_chunk,
    parse_ping_reply,
    parse_scan_reply,
    parse_version_reply,
    validate_chunk_size,
)
from clamd_tcp.transport import DEFAULT_ADDRESS, Address, first_endpoint, parse_address

logger = logging.getLogger(__name__)


class AsyncClamdClient:
    """Asynchronous client for a clamd daemon listening on TCP.

    Every call opens its own connection, so concurrent tasks may share one
    instance.

    Args:
        address: Daemon address, ``"host:port"`` or ``(host, port)``.
        timeout: Timeout in seconds for connecting, each write and the reply
            read; ``None`` waits indefinitely.
        chunk_size: Default ``INSTREAM`` chunk size in bytes.

    Example::

        client = AsyncClamdClient("localhost:3310")
        result = await client.scan_bytes(payload)
        print(result.detected_infections)
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

    async def ping(self) -> str:
        """Send ``PING`` and return the raw reply."""
        return await self._command(PING_COMMAND)

    async def version(self) -> str:
        """Send ``VERSION`` and return the raw reply text."""
        return await self._command(VERSION_COMMAND)

    async def health_check(self) -> HealthCheckResult:
        return parse_ping_reply(await self.ping())

    async def version_info(self) -> VersionInfo:
        return parse_version_reply(await self.version())

    async def scan(self, source: Any, chunk_size: Optional[int] = None) -> ScanResult:
        """Stream *source* to the daemon with ``INSTREAM`` and parse the verdict.

        Args:
            source: Raw bytes, a readable binary object, or an object whose
                ``read(n)`` is a coroutine (e.g. :class:`asyncio.StreamReader`).
            chunk_size: Bytes per chunk; defaults to the client's chunk size.

        Returns:
            A :class:`ScanResult` with the verdict.
        """
        size = self._chunk_size if chunk_size is None else validate_chunk_size(chunk_size)
        stream = as_source(source)

        reader, writer = await self._open()
        try:
            await self._send(writer, INSTREAM_COMMAND)
            chunks = 0
            while True:
                chunk = await _read_chunk(stream, size)
                if not chunk:
                    break
                await self._send(writer, encode_chunk(chunk))
                chunks += 1
            await self._send(writer, FOOTER)
            logger.debug("Sent INSTREAM body in %d chunks to %r", chunks, self._address)
            reply = await self._read_reply(reader)
        finally:
            await _close(writer)

        result = parse_scan_reply(decode_reply(reply))
        if result.is_infected:
            logger.warning(
                "clamd detected infections",
                extra={"infections": list(result.detected_infections)},
            )
        return result

    async def scan_bytes(self, data: bytes) -> ScanResult:
        """Scan in-memory bytes."""
        return await self.scan(data)

    async def scan_file(self, file_path: Union[str, Path]) -> ScanResult:
        """Stream a file on disk to the daemon.

        File reads run in a worker thread, one chunk at a time.

        Raises:
            FileNotFoundError: If *file_path* does not exist.
        """
        path = Path(file_path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        with open(path, "rb") as fh:
            return await self.scan(_ThreadedReader(fh))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _command(self, command: bytes) -> str:
        reader, writer = await self._open()
        try:
            await self._send(writer, command)
            reply = await self._read_reply(reader)
        finally:
            await _close(writer)
        return decode_reply(reply)

    async def _open(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        host, port = parse_address(self._address)
        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        except (socket.gaierror, UnicodeError) as exc:
            raise ClamdInvalidAddressError(f"cannot resolve {self._address!r}: {exc}") from exc
        family, _type, _proto, sockaddr = first_endpoint(self._address, infos)

        try:
            reader, writer = await asyncio.wait_for(
                _open_stream(sockaddr[0], sockaddr[1], family),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            raise ClamdTimeoutError(f"timed out connecting to {self._address!r}") from exc
        except OSError as exc:
            raise ClamdConnectionError(f"cannot connect to {self._address!r}: {exc}") from exc
        logger.debug("Connected to clamd at %s", sockaddr)
        return reader, writer

    async def _send(self, writer: asyncio.StreamWriter, data: bytes) -> None:
        try:
            writer.write(data)
            await asyncio.wait_for(writer.drain(), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise ClamdWriteError("timed out writing to clamd") from exc
        except (OSError, RuntimeError) as exc:
            raise ClamdWriteError(f"failed to write to clamd: {exc}") from exc

    async def _read_reply(self, reader: asyncio.StreamReader) -> bytes:
        try:
            data = await asyncio.wait_for(reader.read(), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise ClamdTimeoutError("timed out waiting for clamd reply") from exc
        except OSError as exc:
            raise ClamdConnectionError(f"failed to read clamd reply: {exc}") from exc
        logger.debug("Received %d-byte reply from clamd", len(data))
        return data


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


async def _open_stream(
    host: str, port: int, family: int
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    return await asyncio.open_connection(host, port, family=family)


async def _read_chunk(source: Any, chunk_size: int) -> bytes:
    try:
        chunk = source.read(chunk_size)
        if inspect.isawaitable(chunk):
            chunk = await chunk
    except (OSError, ValueError) as exc:
        raise ClamdSourceReadError(f"failed to read scan source: {exc}") from exc
    return check_chunk(chunk, chunk_size)


async def _close(writer: asyncio.StreamWriter) -> None:
    writer.close()
    try:
        await writer.wait_closed()
    except OSError as exc:
        logger.debug("Error while closing clamd connection: %s", exc)


class _ThreadedReader:
    """Adapts a blocking file so each ``read`` runs in a worker thread."""

    def __init__(self, fh: Any) -> None:
        self._fh = fh

    async def read(self, size: int) -> bytes:
        return await asyncio.to_thread(self._fh.read, size)


# ------------------------------------------------------------------
# Module-level shortcuts
# ------------------------------------------------------------------


async def ping(address: Address, timeout: Optional[float] = None) -> str:
    return await AsyncClamdClient(address, timeout=timeout).ping()


async def version(address: Address, timeout: Optional[float] = None) -> str:
    return await AsyncClamdClient(address, timeout=timeout).version()


async def scan(
    address: Address,
    source: Any,
    chunk_size: Optional[int] = None,
    timeout: Optional[float] = None,
) -> ScanResult:
    return await AsyncClamdClient(address, timeout=timeout).scan(source, chunk_size)
