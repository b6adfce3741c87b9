"""Wire format of the clamd TCP protocol.

Commands use the ``z`` prefix and a NUL terminator. ``INSTREAM`` payloads are
sent as chunks, each preceded by its length as a big-endian unsigned 32-bit
integer, and terminated by a zero-length chunk. The daemon closes the
connection after replying, so replies are read to end-of-stream.
"""

from __future__ import annotations

import io
import struct
from typing import BinaryIO, Iterator, Union

from clamd_tcp.exceptions import ClamdEncodingError, ClamdResponseError, ClamdSourceReadError
from clamd_tcp.models import HealthCheckResult, ScanResult, VersionInfo

PING_COMMAND = b"zPING\0"
VERSION_COMMAND = b"zVERSION\0"
INSTREAM_COMMAND = b"zINSTREAM\0"

DEFAULT_CHUNK_SIZE = 4096
MAX_CHUNK_SIZE = 0xFFFFFFFF

_LENGTH = struct.Struct("!I")
FOOTER = _LENGTH.pack(0)

STREAM_MARKER = "stream: "
OK_STATUS = "OK"
FOUND_SUFFIX = " FOUND\0"

_REPLY_STRIP = "\0\r\n\t "

Source = Union[bytes, bytearray, memoryview, BinaryIO]


def validate_chunk_size(chunk_size: int) -> int:
    """Return *chunk_size* if it can be framed, else raise :class:`ValueError`.

    A zero chunk size would read nothing forever, so it is rejected before
    any connection is opened.
    """
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int):
        raise ValueError(f"chunk_size must be an int, got {type(chunk_size).__name__}")
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be greater than 0, got {chunk_size}")
    if chunk_size > MAX_CHUNK_SIZE:
        raise ValueError(f"chunk_size must fit in 32 bits, got {chunk_size}")
    return chunk_size


def as_source(data: Source) -> BinaryIO:
    """Wrap in-memory buffers so every input exposes ``read(n)``."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        return io.BytesIO(data)
    if not callable(getattr(data, "read", None)):
        raise TypeError(f"expected bytes or a readable binary object, got {type(data).__name__}")
    return data


def encode_chunk(payload: bytes) -> bytes:
    """Return the length prefix and *payload* as a single frame."""
    return _LENGTH.pack(len(payload)) + payload


def check_chunk(chunk: object, chunk_size: int) -> bytes:
    """Validate one read from a source and return it as ``bytes``."""
    if chunk is None:
        raise ClamdSourceReadError("source returned no data; non-blocking sources are not supported")
    if not isinstance(chunk, (bytes, bytearray, memoryview)):
        raise ClamdSourceReadError(f"source returned {type(chunk).__name__}, expected bytes")
    chunk = bytes(chunk)
    if len(chunk) > chunk_size:
        raise ClamdSourceReadError(f"source returned {len(chunk)} bytes for a {chunk_size}-byte read")
    return chunk


def iter_frames(source: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield the ``INSTREAM`` body for *source*, one frame per read.

    Each non-empty read of at most *chunk_size* bytes becomes one frame
    (length prefix followed by the payload). The final item is always
    :data:`FOOTER`. Only one chunk is held in memory at a time.

    Raises:
        ClamdSourceReadError: If reading *source* fails; no footer follows.
    """
    while True:
        try:
            chunk = source.read(chunk_size)
        except (OSError, ValueError) as exc:
            raise ClamdSourceReadError(f"failed to read scan source: {exc}") from exc
        chunk = check_chunk(chunk, chunk_size)
        if not chunk:
            yield FOOTER
            return
        yield encode_chunk(chunk)


def decode_reply(data: bytes) -> str:
    """Decode a raw daemon reply as UTF-8."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ClamdEncodingError(f"reply is not valid UTF-8: {exc}") from exc


def parse_scan_reply(text: str) -> ScanResult:
    """Parse the decoded reply of an ``INSTREAM`` command.

    The reply holds one or more ``stream: `` segments. Any segment starting
    with ``OK`` makes the result clean, even if other segments report a
    signature. Otherwise each segment, minus a trailing ``" FOUND\\0"``, is a
    detected signature name.

    Raises:
        ClamdResponseError: If *text* contains no ``stream: `` marker.
    """
    segments = text.split(STREAM_MARKER)[1:]
    if not segments:
        raise ClamdResponseError(f"not a scan reply: {text!r}")

    if any(segment.startswith(OK_STATUS) for segment in segments):
        return ScanResult(is_infected=False, detected_infections=())

    names = tuple(segment.removesuffix(FOUND_SUFFIX) for segment in segments)
    return ScanResult(is_infected=True, detected_infections=names)


def parse_ping_reply(text: str) -> HealthCheckResult:
    message = text.strip(_REPLY_STRIP)
    return HealthCheckResult(healthy=message in ("PONG", "zPONG"), message=message)


def parse_version_reply(text: str) -> VersionInfo:
    """Parse a ``VERSION`` reply such as ``ClamAV 1.0.0/26734/Mon Nov 28 08:17:05 2022``.

    Raises:
        ClamdResponseError: If the reply does not start with ``ClamAV``.
    """
    raw = text.strip(_REPLY_STRIP)
    engine, _, rest = raw.partition("/")
    if not engine.startswith("ClamAV "):
        raise ClamdResponseError(f"not a version reply: {text!r}")
    database_version, _, database_date = rest.partition("/")
    return VersionInfo(
        version=engine[len("ClamAV "):].strip(),
        database_version=database_version,
        database_date=database_date,
        raw=raw,
    )
