"""Data models for clamd replies."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ScanResult:
    """Verdict of an ``INSTREAM`` scan.

    Attributes:
        is_infected: ``True`` when the daemon reported at least one signature.
        detected_infections: Signature names in the order the daemon sent them
            (e.g. ``("Win.Test.EICAR_HDB-1",)``); empty when clean.
    """

    is_infected: bool
    detected_infections: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class HealthCheckResult:
    """Liveness of the clamd daemon.

    Attributes:
        healthy: ``True`` when the daemon answered ``PONG``.
        message: The reply with NUL terminator and whitespace stripped.
    """

    healthy: bool
    message: str


@dataclass(frozen=True, slots=True)
class VersionInfo:
    """Engine and signature database version reported by clamd.

    Attributes:
        version: Engine version (e.g. ``"1.0.0"``).
        database_version: Signature database version (e.g. ``"26734"``), or
            empty when the daemon did not report one.
        database_date: Signature database build date, or empty.
        raw: The full reply with NUL terminator and whitespace stripped.
    """

    version: str
    database_version: str = ""
    database_date: str = ""
    raw: str = ""
