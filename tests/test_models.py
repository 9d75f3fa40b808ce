"""Tests for result models."""

import itertools
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from chuk_mcp_clock_trust.models import (
    AutoDateTimeStatus,
    ComprehensiveTimeAnalysis,
    DateTimeChangeResult,
    DateTimeChangeType,
    TimeSyncResult,
)

NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)


def _sync_result(difference_ms: int, threshold_ms: int = 30000) -> TimeSyncResult:
    return TimeSyncResult(
        device_time=NOW,
        reference_time=NOW,
        difference_ms=difference_ms,
        threshold_ms=threshold_ms,
        reference_source="pool.ntp.org",
    )


@pytest.mark.parametrize(
    "value,expected",
    [
        ("noChange", DateTimeChangeType.NO_CHANGE),
        ("dateOnly", DateTimeChangeType.DATE_ONLY),
        ("TIMEONLY", DateTimeChangeType.TIME_ONLY),
        ("date_and_time", DateTimeChangeType.DATE_AND_TIME),
        ("DATE_ONLY", DateTimeChangeType.DATE_ONLY),
        ("time-only", DateTimeChangeType.TIME_ONLY),
    ],
)
def test_change_type_parse_known_values(value: str, expected: DateTimeChangeType) -> None:
    assert DateTimeChangeType.parse(value) is expected


@pytest.mark.parametrize("value", ["", "garbage", "dateOnlyish", None, 42, ["dateOnly"]])
def test_change_type_parse_unknown_values_default_to_no_change(value: object) -> None:
    assert DateTimeChangeType.parse(value) is DateTimeChangeType.NO_CHANGE


@pytest.mark.parametrize("date_changed,time_changed", itertools.product([False, True], repeat=2))
def test_change_result_consistency(date_changed: bool, time_changed: bool) -> None:
    """Change type matches the flags for every flag combination."""
    result = DateTimeChangeResult(
        change_type=DateTimeChangeType.from_flags(date_changed, time_changed),
        is_auto_date_time_enabled=True,
        has_date_changed=date_changed,
        has_time_changed=time_changed,
        detection_method="network",
    )

    assert (result.change_type is DateTimeChangeType.DATE_AND_TIME) == (
        date_changed and time_changed
    )
    assert (result.change_type is DateTimeChangeType.NO_CHANGE) == (
        not date_changed and not time_changed
    )
    assert result.has_any_changes == (date_changed or time_changed)


def test_change_result_rejects_inconsistent_fields() -> None:
    with pytest.raises(ValidationError):
        DateTimeChangeResult(
            change_type=DateTimeChangeType.NO_CHANGE,
            is_auto_date_time_enabled=True,
            has_date_changed=True,
            has_time_changed=False,
            detection_method="network",
        )


def test_from_mapping_unknown_change_type_is_no_change() -> None:
    result = DateTimeChangeResult.from_mapping(
        {"changeType": "somethingElse", "hasDateChanged": True, "hasTimeChanged": True}
    )

    assert result.change_type is DateTimeChangeType.NO_CHANGE
    assert result.has_date_changed is False
    assert result.has_time_changed is False


def test_from_mapping_empty_uses_defaults() -> None:
    result = DateTimeChangeResult.from_mapping({})

    assert result.change_type is DateTimeChangeType.NO_CHANGE
    assert result.is_auto_date_time_enabled is False
    assert result.detection_method == "unknown"
    assert result.time_difference_ms is None


def test_from_mapping_native_payload() -> None:
    """Payload keys as produced by a native bridge decode correctly."""
    result = DateTimeChangeResult.from_mapping(
        {
            "changeType": "dateOnly",
            "isAutoDateTimeEnabled": False,
            "dateChanged": True,
            "timeChanged": False,
            "timeDifference": -86400000.0,
            "detectionMethod": "offline",
        }
    )

    assert result.is_date_only_change
    assert result.has_date_changed is True
    assert result.has_time_changed is False
    assert result.detection_method == "offline"
    assert result.time_difference_ms == 86400000


def test_from_mapping_ignores_wrongly_typed_values() -> None:
    result = DateTimeChangeResult.from_mapping(
        {"changeType": 7, "isAutoDateTimeEnabled": "yes", "detectionMethod": None}
    )

    assert result.change_type is DateTimeChangeType.NO_CHANGE
    assert result.is_auto_date_time_enabled is False
    assert result.detection_method == "unknown"


def test_mapping_round_trip_keeps_change_type() -> None:
    original = DateTimeChangeResult(
        change_type=DateTimeChangeType.DATE_AND_TIME,
        is_auto_date_time_enabled=False,
        has_date_changed=True,
        has_time_changed=True,
        detection_method="network",
        time_difference_ms=90061000,
    )

    assert DateTimeChangeResult.from_mapping(original.to_mapping()) == original


def test_time_sync_result_is_frozen() -> None:
    result = _sync_result(10)

    with pytest.raises(ValidationError):
        result.difference_ms = 5  # type: ignore[misc]


def test_time_sync_result_rejects_negative_difference() -> None:
    with pytest.raises(ValidationError):
        _sync_result(-1)


def test_time_sync_result_serializes_verdict() -> None:
    dumped = _sync_result(45000).model_dump()

    assert dumped["is_synchronized"] is False


@pytest.mark.parametrize(
    "status,difference_ms",
    itertools.product(list(AutoDateTimeStatus), [10000, 45000]),
)
def test_comprehensive_analysis_derived_fields(
    status: AutoDateTimeStatus, difference_ms: int
) -> None:
    analysis = ComprehensiveTimeAnalysis(
        auto_date_time_status=status,
        time_sync_result=_sync_result(difference_ms),
        analysis_timestamp=NOW,
    )

    assert analysis.is_auto_date_time_enabled == (status is AutoDateTimeStatus.AUTO_DATE_TIME_ON)
    assert analysis.is_time_synchronized == (difference_ms <= 30000)
    assert analysis.has_time_issues == (
        not analysis.is_auto_date_time_enabled or not analysis.is_time_synchronized
    )


@pytest.mark.parametrize("difference", [float("nan"), float("inf"), float("-inf")])
def test_from_mapping_non_finite_difference_is_dropped(difference: float) -> None:
    result = DateTimeChangeResult.from_mapping(
        {"changeType": "dateOnly", "timeDifferenceMs": difference}
    )

    assert result.is_date_only_change
    assert result.time_difference_ms is None


def test_from_mapping_non_finite_native_difference_is_dropped() -> None:
    result = DateTimeChangeResult.from_mapping({"timeDifference": float("nan")})

    assert result.time_difference_ms is None
