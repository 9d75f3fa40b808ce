"""Classification of date/time changes between two observations."""

import logging
from datetime import datetime, timedelta

from chuk_mcp_clock_trust.comparator import difference_ms, validate_threshold
from chuk_mcp_clock_trust.models import (
    DEFAULT_TIME_THRESHOLD_MS,
    DateTimeChangeResult,
    DateTimeChangeType,
    Observation,
)

logger = logging.getLogger(__name__)

_DAY_MS = 24 * 60 * 60 * 1000


def expected_time(previous: Observation, current: Observation) -> datetime:
    """Where the current reading should be if nobody touched the clock."""
    if previous.monotonic_s is None or current.monotonic_s is None:
        return previous.observed_at
    return previous.observed_at + timedelta(seconds=current.monotonic_s - previous.monotonic_s)


def _time_of_day_ms(instant: datetime) -> int:
    return (
        (instant.hour * 60 + instant.minute) * 60 + instant.second
    ) * 1000 + instant.microsecond // 1000


def classify_change(
    previous: Observation,
    current: Observation,
    tolerance_ms: int = DEFAULT_TIME_THRESHOLD_MS,
    auto_enabled: bool | None = None,
) -> DateTimeChangeResult:
    """Classify how the current reading differs from the previous one.

    The previous observation is projected forward by the monotonic time
    elapsed between the two readings. Date and time-of-day components are
    then compared independently, both in the current reading's timezone.

    Args:
        previous: Trusted or earlier observation
        current: Observation of the device clock
        tolerance_ms: Gap tolerated before anything counts as changed
        auto_enabled: Auto date/time status if known; derived from the
            classification otherwise

    Returns:
        DateTimeChangeResult tagged with the current observation's detection method
    """
    validate_threshold(tolerance_ms)

    expected = expected_time(previous, current)
    actual = current.observed_at
    gap_ms = difference_ms(actual, expected)

    date_changed = False
    time_changed = False
    if gap_ms > tolerance_ms:
        tz = actual.tzinfo if actual.tzinfo is not None else expected.astimezone().tzinfo
        expected_local = expected.astimezone(tz)
        date_changed = expected_local.date() != actual.date()

        clock_gap = abs(_time_of_day_ms(actual) - _time_of_day_ms(expected_local))
        time_changed = min(clock_gap, _DAY_MS - clock_gap) > tolerance_ms

        if not date_changed and not time_changed:
            # Same date, opposite ends of the day: the wrapped gap hides the jump
            time_changed = True

    change_type = DateTimeChangeType.from_flags(date_changed, time_changed)
    logger.debug(
        "Classified %s change (gap %dms, tolerance %dms, method %s)",
        change_type.value,
        gap_ms,
        tolerance_ms,
        current.detection_method.value,
    )

    return DateTimeChangeResult(
        change_type=change_type,
        is_auto_date_time_enabled=(
            auto_enabled if auto_enabled is not None else change_type is DateTimeChangeType.NO_CHANGE
        ),
        has_date_changed=date_changed,
        has_time_changed=time_changed,
        detection_method=current.detection_method.value,
        time_difference_ms=gap_ms,
    )
