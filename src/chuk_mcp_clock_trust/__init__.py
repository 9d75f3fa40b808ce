"""Device clock trust analysis: auto date/time probing and NTP corroboration."""

__version__ = "1.0.0"

from chuk_mcp_clock_trust.checker import DateChangeChecker
from chuk_mcp_clock_trust.classifier import classify_change
from chuk_mcp_clock_trust.comparator import compare_times
from chuk_mcp_clock_trust.errors import (
    ClockTrustError,
    InvalidArgumentError,
    NetworkError,
    ProbeError,
    UnsupportedPlatformError,
)
from chuk_mcp_clock_trust.models import (
    AutoDateTimeStatus,
    ComprehensiveTimeAnalysis,
    DateTimeChangeResult,
    DateTimeChangeType,
    DetectionMethod,
    Observation,
    TimeSyncResult,
)
from chuk_mcp_clock_trust.ntp_client import NTPClient
from chuk_mcp_clock_trust.probe import (
    AdbAutoTimeProbe,
    AutoTimeProbe,
    SettingValueProbe,
    TimedatectlProbe,
    UnsupportedProbe,
)

__all__ = [
    "DateChangeChecker",
    "classify_change",
    "compare_times",
    "NTPClient",
    "AutoTimeProbe",
    "UnsupportedProbe",
    "SettingValueProbe",
    "AdbAutoTimeProbe",
    "TimedatectlProbe",
    "AutoDateTimeStatus",
    "DateTimeChangeType",
    "DateTimeChangeResult",
    "DetectionMethod",
    "Observation",
    "TimeSyncResult",
    "ComprehensiveTimeAnalysis",
    "ClockTrustError",
    "NetworkError",
    "ProbeError",
    "UnsupportedPlatformError",
    "InvalidArgumentError",
    "__version__",
]
