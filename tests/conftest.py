"""Shared test fixtures."""

from __future__ import annotations

import socketserver
import struct
import threading
from dataclasses import dataclass, field
from typing import Optional

import pytest

EICAR = b"X5O!P%@AP[4\\PZX54(P^)7CC)7}$EICAR-STANDARD-ANTIVIRUS-TEST-FILE!$H+H*"
EICAR_SIGNATURE = "Win.Test.EICAR_HDB-1"
VERSION_REPLY = b"ClamAV 1.0.0/26734/Mon Nov 28 08:17:05 2022\0"


@dataclass
class ReceivedRequest:
    command: bytes
    body: bytes = b""
    chunk_sizes: list[int] = field(default_factory=list)
    chunks: list[bytes] = field(default_factory=list)

    @property
    def payload(self) -> bytes:
        return b"".join(self.chunks)


class _FakeClamdHandler(socketserver.StreamRequestHandler):
    """Speaks just enough of the clamd protocol for the client tests."""

    def handle(self) -> None:
        server: FakeClamd = self.server  # type: ignore[assignment]
        command = self._read_command()
        request = ReceivedRequest(command=command)

        if server.hang:
            self.rfile.read()
            return

        if command == b"zINSTREAM\0":
            self._read_instream(request)
        server.requests.append(request)

        if server.reply is not None:
            reply = server.reply
        elif command == b"zPING\0":
            reply = b"PONG\0"
        elif command == b"zVERSION\0":
            reply = VERSION_REPLY
        elif EICAR in request.payload:
            reply = f"stream: {EICAR_SIGNATURE} FOUND\0".encode()
        else:
            reply = b"stream: OK\0"
        self.wfile.write(reply)

    def _read_command(self) -> bytes:
        buf = bytearray()
        while True:
            ch = self.rfile.read(1)
            if not ch:
                break
            buf += ch
            if ch == b"\0":
                break
        return bytes(buf)

    def _read_instream(self, request: ReceivedRequest) -> None:
        body = bytearray()
        while True:
            prefix = self.rfile.read(4)
            body += prefix
            if len(prefix) < 4:
                break
            (size,) = struct.unpack("!I", prefix)
            if size == 0:
                break
            payload = self.rfile.read(size)
            body += payload
            request.chunk_sizes.append(size)
            request.chunks.append(payload)
        request.body = bytes(body)


class FakeClamd(socketserver.ThreadingTCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self) -> None:
        super().__init__(("127.0.0.1", 0), _FakeClamdHandler)
        self.requests: list[ReceivedRequest] = []
        self.reply: Optional[bytes] = None
        self.hang = False

    @property
    def address(self) -> str:
        host, port = self.server_address[:2]
        return f"{host}:{port}"


@pytest.fixture()
def fake_clamd():
    server = FakeClamd()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture()
def sample_bytes() -> bytes:
    return b"This is not a virus."


@pytest.fixture()
def eicar_bytes() -> bytes:
    """EICAR anti-malware test string (safe; every AV recognises it)."""
    return EICAR
