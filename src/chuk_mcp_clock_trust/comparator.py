"""Device/reference time comparison."""

from datetime import UTC, datetime, timedelta

from chuk_mcp_clock_trust.errors import InvalidArgumentError
from chuk_mcp_clock_trust.models import TimeSyncResult

_ONE_MS = timedelta(milliseconds=1)


def validate_threshold(threshold_ms: int) -> int:
    """Reject thresholds that are not non-negative integers.

    Raises:
        InvalidArgumentError: If threshold_ms is negative or not an int
    """
    if isinstance(threshold_ms, bool) or not isinstance(threshold_ms, int):
        raise InvalidArgumentError(f"threshold_ms must be an integer, got {threshold_ms!r}")
    if threshold_ms < 0:
        raise InvalidArgumentError(f"threshold_ms must be non-negative, got {threshold_ms}")
    return threshold_ms


def to_utc(instant: datetime) -> datetime:
    """Normalize a datetime to UTC.

    Naive datetimes are interpreted as local time, which is what
    datetime.now() returns.
    """
    return instant.astimezone(UTC)


def difference_ms(first: datetime, second: datetime) -> int:
    """Absolute difference between two instants in whole milliseconds."""
    return abs(to_utc(first) - to_utc(second)) // _ONE_MS


def compare_times(
    device_time: datetime,
    reference_time: datetime,
    threshold_ms: int,
    reference_source: str = "",
) -> TimeSyncResult:
    """Compare device time against a reference time.

    Both instants are normalized to UTC before comparing. A difference
    exactly equal to the threshold counts as synchronized.

    Args:
        device_time: Device clock reading
        reference_time: Trusted reference reading (usually NTP)
        threshold_ms: Maximum tolerated absolute difference in milliseconds
        reference_source: Identifier of the reference (server address)

    Returns:
        TimeSyncResult with the measured difference
    """
    validate_threshold(threshold_ms)
    device_utc = to_utc(device_time)
    reference_utc = to_utc(reference_time)

    return TimeSyncResult(
        device_time=device_utc,
        reference_time=reference_utc,
        difference_ms=difference_ms(device_utc, reference_utc),
        threshold_ms=threshold_ms,
        reference_source=reference_source,
    )
