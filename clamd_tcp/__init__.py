"""clamd-tcp: Python client for the ClamAV daemon's TCP protocol."""

from clamd_tcp.async_client import AsyncClamdClient
from clamd_tcp.client import ClamdClient, ping, scan, version
from clamd_tcp.exceptions import (
    ClamdConnectionError,
    ClamdEncodingError,
    ClamdError,
    ClamdInvalidAddressError,
    ClamdResponseError,
    ClamdSourceReadError,
    ClamdTimeoutError,
    ClamdWriteError,
)
from clamd_tcp.models import HealthCheckResult, ScanResult, VersionInfo
from clamd_tcp.protocol import DEFAULT_CHUNK_SIZE, parse_scan_reply

__all__ = [
    "ClamdClient",
    "AsyncClamdClient",
    "ping",
    "version",
    "scan",
    "parse_scan_reply",
    "DEFAULT_CHUNK_SIZE",
    "ScanResult",
    "HealthCheckResult",
    "VersionInfo",
    "ClamdError",
    "ClamdInvalidAddressError",
    "ClamdConnectionError",
    "ClamdTimeoutError",
    "ClamdWriteError",
    "ClamdSourceReadError",
    "ClamdEncodingError",
    "ClamdResponseError",
]
