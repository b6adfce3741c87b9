"""Exception hierarchy for the clamd TCP client."""

from __future__ import annotations


class ClamdError(Exception):
    """Base exception for all clamd client errors."""


class ClamdInvalidAddressError(ClamdError):
    """Raised when an address cannot be parsed or resolved to an endpoint.

    No connection has been attempted when this is raised.
    """


class ClamdConnectionError(ClamdError):
    """Raised when the daemon cannot be reached or the connection drops
    while the reply is being read.
    """


class ClamdTimeoutError(ClamdConnectionError):
    """Raised when connecting or reading the reply exceeds the configured timeout."""


class ClamdWriteError(ClamdError):
    """Raised when writing a command, a chunk or the footer fails.

    The connection is left in an undefined state and is closed; retry with a
    fresh call.
    """


class ClamdSourceReadError(ClamdError):
    """Raised when reading the caller-supplied input fails.

    The stream footer is never written after this error.
    """


class ClamdEncodingError(ClamdError):
    """Raised when the daemon reply is not valid UTF-8."""


class ClamdResponseError(ClamdError):
    """Raised when a reply cannot be mapped to a result.

    For scans this means the reply carried no ``stream: `` marker, e.g.
    ``INSTREAM size limit exceeded. ERROR``.
    """
