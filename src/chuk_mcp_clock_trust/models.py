"""Pydantic models for clock trust analysis."""

import math
from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

DEFAULT_NTP_SERVER = "pool.ntp.org"
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_TIME_THRESHOLD_MS = 30000


class AutoDateTimeStatus(str, Enum):
    """Status of the device's automatic date/time setting."""

    AUTO_DATE_TIME_ON = "auto_date_time_on"  # No manual override detected
    AUTO_DATE_TIME_OFF = "auto_date_time_off"  # Manual override suspected or confirmed


class DetectionMethod(str, Enum):
    """How a date/time change was detected."""

    NETWORK = "network"  # Compared against an NTP reference
    OFFLINE = "offline"  # Compared against an earlier device observation


class NTPError(str, Enum):
    """NTP error types."""

    TIMEOUT = "timeout"
    DNS_ERROR = "dns_error"
    NETWORK_ERROR = "network_error"
    PARSE_ERROR = "parse_error"


def _lenient_difference_ms(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if not math.isfinite(value):
        return None
    return int(abs(value))


def _normalize_token(value: str) -> str:
    return value.replace("_", "").replace("-", "").strip().lower()


class DateTimeChangeType(str, Enum):
    """Kind of date/time change detected."""

    NO_CHANGE = "noChange"
    DATE_ONLY = "dateOnly"
    TIME_ONLY = "timeOnly"
    DATE_AND_TIME = "dateAndTime"

    @classmethod
    def parse(cls, value: Any) -> "DateTimeChangeType":
        """Decode a change type from untrusted input.

        Matching ignores case, underscores and dashes, so "dateOnly",
        "DATE_ONLY" and "date-only" all decode the same way. Anything that
        does not match (including non-strings) decodes to NO_CHANGE.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.NO_CHANGE
        token = _normalize_token(value)
        for member in cls:
            if token in (_normalize_token(member.value), _normalize_token(member.name)):
                return member
        return cls.NO_CHANGE

    @classmethod
    def from_flags(cls, date_changed: bool, time_changed: bool) -> "DateTimeChangeType":
        if date_changed and time_changed:
            return cls.DATE_AND_TIME
        if date_changed:
            return cls.DATE_ONLY
        if time_changed:
            return cls.TIME_ONLY
        return cls.NO_CHANGE


class NTPResponse(BaseModel):
    """Response from an NTP server."""

    server: str = Field(description="NTP server hostname or IP")
    timestamp: float = Field(description="Unix timestamp from NTP server")
    rtt_ms: float = Field(description="Round-trip time in milliseconds")
    stratum: int = Field(description="NTP stratum (quality indicator, 0-16)")
    success: bool = Field(description="Whether the query was successful")
    error: str | None = Field(None, description="Error message if query failed")
    error_type: NTPError | None = Field(None, description="Type of error if query failed")


class Observation(BaseModel):
    """A single reading of wall-clock time."""

    model_config = ConfigDict(frozen=True)

    observed_at: datetime = Field(description="Wall-clock reading (timezone-aware)")
    monotonic_s: float | None = Field(
        None, description="Monotonic clock reading taken with observed_at (seconds)"
    )
    detection_method: DetectionMethod = Field(
        DetectionMethod.NETWORK, description="Source of the reading: network or offline"
    )


class TimeSyncResult(BaseModel):
    """Result of comparing device time against a reference time."""

    model_config = ConfigDict(frozen=True)

    device_time: datetime = Field(description="Device clock time (UTC)")
    reference_time: datetime = Field(description="Reference time from NTP (UTC)")
    difference_ms: int = Field(ge=0, description="Absolute difference in milliseconds")
    threshold_ms: int = Field(ge=0, description="Threshold used for the check (ms)")
    reference_source: str = Field(description="NTP server used as the reference")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_synchronized(self) -> bool:
        """Whether the difference is within the threshold (inclusive)."""
        return self.difference_ms <= self.threshold_ms

    @property
    def time_difference_seconds(self) -> float:
        return self.difference_ms / 1000.0

    @property
    def time_difference_minutes(self) -> float:
        return self.time_difference_seconds / 60.0


class DateTimeChangeResult(BaseModel):
    """Result of date/time change classification."""

    model_config = ConfigDict(frozen=True)

    change_type: DateTimeChangeType = Field(description="Type of change detected")
    is_auto_date_time_enabled: bool = Field(description="Whether automatic date/time is enabled")
    has_date_changed: bool = Field(description="Whether the date has changed")
    has_time_changed: bool = Field(description="Whether the time of day has changed")
    detection_method: str = Field(description="Method used for detection (network or offline)")
    time_difference_ms: int | None = Field(
        None, description="Measured gap that produced the classification (ms)"
    )

    @model_validator(mode="after")
    def _check_consistency(self) -> "DateTimeChangeResult":
        expected = DateTimeChangeType.from_flags(self.has_date_changed, self.has_time_changed)
        if self.change_type is not expected:
            raise ValueError(
                f"change_type {self.change_type.value!r} is inconsistent with "
                f"has_date_changed={self.has_date_changed}, "
                f"has_time_changed={self.has_time_changed}"
            )
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DateTimeChangeResult":
        """Build a result from an untyped mapping without ever failing.

        The change type is decoded leniently and the date/time flags are
        derived from it, so the result is always internally consistent.
        """
        change_type = DateTimeChangeType.parse(data.get("changeType", "noChange"))
        date_changed = change_type in (DateTimeChangeType.DATE_ONLY, DateTimeChangeType.DATE_AND_TIME)
        time_changed = change_type in (DateTimeChangeType.TIME_ONLY, DateTimeChangeType.DATE_AND_TIME)

        auto_enabled = data.get("isAutoDateTimeEnabled", False)
        method = data.get("detectionMethod", "unknown")
        difference = data.get("timeDifferenceMs", data.get("timeDifference"))

        return cls(
            change_type=change_type,
            is_auto_date_time_enabled=auto_enabled if isinstance(auto_enabled, bool) else False,
            has_date_changed=date_changed,
            has_time_changed=time_changed,
            detection_method=method if isinstance(method, str) else "unknown",
            time_difference_ms=_lenient_difference_ms(difference),
        )

    def to_mapping(self) -> dict[str, Any]:
        """Serialize to the camelCase mapping read by from_mapping."""
        return {
            "changeType": self.change_type.value,
            "isAutoDateTimeEnabled": self.is_auto_date_time_enabled,
            "hasDateChanged": self.has_date_changed,
            "hasTimeChanged": self.has_time_changed,
            "detectionMethod": self.detection_method,
            "timeDifferenceMs": self.time_difference_ms,
        }

    @property
    def has_any_changes(self) -> bool:
        return self.change_type is not DateTimeChangeType.NO_CHANGE

    @property
    def is_date_only_change(self) -> bool:
        return self.change_type is DateTimeChangeType.DATE_ONLY

    @property
    def is_time_only_change(self) -> bool:
        return self.change_type is DateTimeChangeType.TIME_ONLY

    @property
    def is_both_changed(self) -> bool:
        return self.change_type is DateTimeChangeType.DATE_AND_TIME


class ComprehensiveTimeAnalysis(BaseModel):
    """Auto date/time status combined with an NTP synchronization check."""

    model_config = ConfigDict(frozen=True)

    auto_date_time_status: AutoDateTimeStatus = Field(description="Automatic date/time status")
    time_sync_result: TimeSyncResult = Field(description="NTP synchronization result")
    analysis_timestamp: datetime = Field(description="When the analysis was captured (UTC)")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_auto_date_time_enabled(self) -> bool:
        return self.auto_date_time_status is AutoDateTimeStatus.AUTO_DATE_TIME_ON

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_time_synchronized(self) -> bool:
        return self.time_sync_result.is_synchronized

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_time_issues(self) -> bool:
        return not self.is_auto_date_time_enabled or not self.is_time_synchronized


class ClockCheckResponse(BaseModel):
    """Response for the is_date_time_changed tool."""

    is_date_time_changed: bool = Field(
        description="True if the device clock appears to have been changed manually"
    )
    auto_date_time_status: AutoDateTimeStatus = Field(
        description="Equivalent auto date/time status (OFF when changed)"
    )
    checked_at: str = Field(description="When the check completed (ISO 8601, UTC)")
