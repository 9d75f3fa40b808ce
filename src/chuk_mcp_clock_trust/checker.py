"""Decision engine: is the device clock trustworthy?"""

import asyncio
import logging
import time
import warnings
from collections.abc import Callable
from datetime import datetime

from chuk_mcp_clock_trust.classifier import classify_change
from chuk_mcp_clock_trust.comparator import compare_times, to_utc, validate_threshold
from chuk_mcp_clock_trust.config import ClockTrustConfig
from chuk_mcp_clock_trust.errors import (
    NetworkError,
    ProbeError,
    UnsupportedPlatformError,
)
from chuk_mcp_clock_trust.models import (
    DEFAULT_NTP_SERVER,
    DEFAULT_TIME_THRESHOLD_MS,
    DEFAULT_TIMEOUT_MS,
    AutoDateTimeStatus,
    ComprehensiveTimeAnalysis,
    DateTimeChangeResult,
    DetectionMethod,
    Observation,
    TimeSyncResult,
)
from chuk_mcp_clock_trust.ntp_client import (
    NTPClient,
    ReferenceTimeSource,
    validate_server,
    validate_timeout,
)
from chuk_mcp_clock_trust.probe import AutoTimeProbe, UnsupportedProbe, create_probe

logger = logging.getLogger(__name__)


def local_now() -> datetime:
    """Current device time as an aware datetime in the local timezone."""
    return datetime.now().astimezone()


class DateChangeChecker:
    """Decides whether the device clock has been changed manually.

    Two strategies are available: asking the platform probe for the
    automatic date/time setting, and comparing the device clock against
    an NTP reference. The probe is preferred when it supports the current
    platform; NTP is the fallback.

    Only is_date_time_changed() absorbs network failures (reporting the
    clock as changed). Every other operation surfaces errors unchanged.
    """

    def __init__(
        self,
        probe: AutoTimeProbe | None = None,
        reference_source: ReferenceTimeSource | None = None,
        clock: Callable[[], datetime] = local_now,
        monotonic: Callable[[], float] = time.monotonic,
        *,
        threshold_ms: int = DEFAULT_TIME_THRESHOLD_MS,
        ntp_server: str = DEFAULT_NTP_SERVER,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        probe_timeout: float = 2.0,
        ntp_fallback: bool = True,
    ) -> None:
        self.threshold_ms = validate_threshold(threshold_ms)
        self.ntp_server = validate_server(ntp_server)
        self.timeout_ms = validate_timeout(timeout_ms)
        self.probe_timeout = probe_timeout
        self.ntp_fallback = ntp_fallback

        self.probe: AutoTimeProbe = probe if probe is not None else UnsupportedProbe()
        self.reference_source: ReferenceTimeSource = (
            reference_source if reference_source is not None else NTPClient(timeout_ms / 1000.0)
        )
        self._clock = clock
        self._monotonic = monotonic

    @classmethod
    def from_config(cls, config: ClockTrustConfig, **kwargs: object) -> "DateChangeChecker":
        """Build a checker from configuration; keyword arguments override it."""
        options: dict[str, object] = {
            "probe": create_probe(config.probe),
            "threshold_ms": config.threshold_ms,
            "ntp_server": config.ntp_server,
            "timeout_ms": config.ntp_timeout_ms,
            "probe_timeout": config.probe_timeout,
            "ntp_fallback": config.ntp_fallback,
        }
        options.update(kwargs)
        return cls(**options)  # type: ignore[arg-type]

    def get_device_time(self) -> datetime:
        """Get the current device time (local timezone)."""
        return self._clock()

    def observe(self) -> Observation:
        """Take an offline observation of the device clock.

        Callers can keep it and pass it to detect_date_time_change() later
        to classify changes while the network is unavailable.
        """
        return Observation(
            observed_at=self.get_device_time(),
            monotonic_s=self._monotonic(),
            detection_method=DetectionMethod.OFFLINE,
        )

    async def fetch_reference_time(
        self, server: str | None = None, timeout_ms: int | None = None
    ) -> datetime:
        """Fetch the current UTC time from an NTP server.

        Raises:
            InvalidArgumentError: If server or timeout_ms is malformed
            NetworkError: If the NTP fetch fails
        """
        server = validate_server(self.ntp_server if server is None else server)
        timeout_ms = validate_timeout(self.timeout_ms if timeout_ms is None else timeout_ms)
        return await self.reference_source.fetch_reference_time(server, timeout_ms)

    async def _probe_auto_time(self) -> bool:
        if not self.probe.supports_probe():
            raise UnsupportedPlatformError("Auto date/time probe is not supported here")
        try:
            return await asyncio.wait_for(
                self.probe.probe_auto_time_enabled(), timeout=self.probe_timeout
            )
        except TimeoutError as e:
            raise ProbeError(f"Auto date/time probe did not answer within {self.probe_timeout}s") from e

    async def _auto_time_if_known(self) -> bool | None:
        try:
            return await self._probe_auto_time()
        except (UnsupportedPlatformError, ProbeError) as e:
            logger.debug("Auto date/time status unknown: %s", e)
            return None

    async def is_date_time_changed(self) -> bool:
        """Check whether the device date/time has been changed manually.

        Returns:
            True if the date/time appears changed (automatic date/time OFF),
            False if it appears automatic (ON). When the NTP fallback cannot
            reach its server the answer is True.

        Raises:
            UnsupportedPlatformError: If the probe is unavailable and the NTP
                fallback is disabled
            InvalidArgumentError: If the configured defaults are malformed
        """
        probe_error: UnsupportedPlatformError | ProbeError | None = None

        if self.probe.supports_probe():
            try:
                enabled = await self._probe_auto_time()
            except (UnsupportedPlatformError, ProbeError) as e:
                logger.warning("Auto date/time probe failed, falling back to NTP: %s", e)
                probe_error = e
            else:
                logger.info("Auto date/time setting reported %s", "ON" if enabled else "OFF")
                return not enabled

        if not self.ntp_fallback:
            if probe_error is not None:
                raise probe_error
            raise UnsupportedPlatformError(
                "No auto date/time probe on this platform and NTP fallback is disabled"
            )

        try:
            result = await self.detect_time_sync_issues()
        except NetworkError as e:
            logger.warning("NTP check failed, assuming date/time was changed: %s", e)
            return True

        return not result.is_synchronized

    async def check_auto_date_time_status(self) -> AutoDateTimeStatus:
        """Deprecated: use is_date_time_changed() instead."""
        warnings.warn(
            "check_auto_date_time_status() is deprecated, use is_date_time_changed()",
            DeprecationWarning,
            stacklevel=2,
        )
        return await self._auto_date_time_status()

    async def _auto_date_time_status(self) -> AutoDateTimeStatus:
        if await self.is_date_time_changed():
            return AutoDateTimeStatus.AUTO_DATE_TIME_OFF
        return AutoDateTimeStatus.AUTO_DATE_TIME_ON

    async def detect_time_sync_issues(
        self,
        threshold_ms: int | None = None,
        server: str | None = None,
        timeout_ms: int | None = None,
    ) -> TimeSyncResult:
        """Compare the device clock with NTP time.

        Args:
            threshold_ms: Max tolerated difference (defaults to 30 seconds)
            server: NTP server (defaults to pool.ntp.org)
            timeout_ms: NTP timeout (defaults to 5000ms)

        Raises:
            InvalidArgumentError: If an argument is malformed
            NetworkError: If the NTP fetch fails
        """
        threshold_ms = validate_threshold(self.threshold_ms if threshold_ms is None else threshold_ms)
        server = self.ntp_server if server is None else server

        reference_time = await self.fetch_reference_time(server, timeout_ms)
        device_time = self.get_device_time()
        result = compare_times(device_time, reference_time, threshold_ms, reference_source=server)

        if result.is_synchronized:
            logger.info(
                "Time is synchronized. Difference: %dms (threshold: %dms)",
                result.difference_ms,
                threshold_ms,
            )
        else:
            logger.warning(
                "Time synchronization issue detected! Difference: %dms (threshold: %dms)",
                result.difference_ms,
                threshold_ms,
            )
        return result

    async def detect_time_modification(
        self,
        threshold_ms: int | None = None,
        server: str | None = None,
        timeout_ms: int | None = None,
    ) -> bool:
        """Return True if the device clock disagrees with NTP beyond the threshold."""
        result = await self.detect_time_sync_issues(threshold_ms, server, timeout_ms)
        return not result.is_synchronized

    async def perform_comprehensive_time_analysis(
        self,
        threshold_ms: int | None = None,
        server: str | None = None,
        timeout_ms: int | None = None,
    ) -> ComprehensiveTimeAnalysis:
        """Combine the auto date/time status with an NTP synchronization check.

        Fails as a whole if either part fails.
        """
        logger.debug("Starting comprehensive time analysis")
        auto_status = await self._auto_date_time_status()
        sync_result = await self.detect_time_sync_issues(threshold_ms, server, timeout_ms)

        return ComprehensiveTimeAnalysis(
            auto_date_time_status=auto_status,
            time_sync_result=sync_result,
            analysis_timestamp=to_utc(self.get_device_time()),
        )

    async def detect_date_time_change(
        self,
        previous: Observation | None = None,
        threshold_ms: int | None = None,
        server: str | None = None,
        timeout_ms: int | None = None,
    ) -> DateTimeChangeResult:
        """Detect whether the date, the time, or both have been modified.

        Compares the device clock against NTP. If NTP is unreachable and a
        previous observation is given, compares against that observation
        projected forward by the monotonic time elapsed since.

        Raises:
            InvalidArgumentError: If an argument is malformed
            NetworkError: If NTP fails and no previous observation is given
        """
        tolerance_ms = validate_threshold(self.threshold_ms if threshold_ms is None else threshold_ms)
        auto_enabled = await self._auto_time_if_known()

        try:
            reference_time = await self.fetch_reference_time(server, timeout_ms)
        except NetworkError as e:
            if previous is None:
                raise
            logger.info("NTP unavailable, classifying against previous observation: %s", e)
            return classify_change(previous, self.observe(), tolerance_ms, auto_enabled)

        now = self._monotonic()
        reference = Observation(
            observed_at=reference_time, monotonic_s=now, detection_method=DetectionMethod.NETWORK
        )
        current = Observation(
            observed_at=self.get_device_time(),
            monotonic_s=now,
            detection_method=DetectionMethod.NETWORK,
        )
        return classify_change(reference, current, tolerance_ms, auto_enabled)

    async def detect_date_only_change(
        self,
        previous: Observation | None = None,
        threshold_ms: int | None = None,
        server: str | None = None,
        timeout_ms: int | None = None,
    ) -> bool:
        """Return True if only the date (not the time of day) was changed."""
        result = await self.detect_date_time_change(previous, threshold_ms, server, timeout_ms)
        return result.is_date_only_change
