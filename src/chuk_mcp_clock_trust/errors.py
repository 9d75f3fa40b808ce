"""Exceptions raised by clock trust analysis."""

from chuk_mcp_clock_trust.models import NTPError


class ClockTrustError(Exception):
    """Base class for clock trust errors."""


class UnsupportedPlatformError(ClockTrustError):
    """No auto-time probe exists here and no fallback strategy is available."""


class ProbeError(ClockTrustError):
    """The platform auto-time probe failed unexpectedly."""


class NetworkError(ClockTrustError):
    """Fetching the reference time from an NTP server failed."""

    def __init__(self, server: str, kind: NTPError, message: str) -> None:
        super().__init__(f"NTP time fetch from {server} failed ({kind.value}): {message}")
        self.server = server
        self.kind = kind


class InvalidArgumentError(ClockTrustError, ValueError):
    """A threshold, timeout or server argument is malformed."""
