"""MCP server exposing device clock trust checks."""

import logging
import sys
from datetime import UTC, datetime

from chuk_mcp_server import run, tool

from chuk_mcp_clock_trust.checker import DateChangeChecker
from chuk_mcp_clock_trust.config import get_config
from chuk_mcp_clock_trust.models import (
    AutoDateTimeStatus,
    ClockCheckResponse,
    ComprehensiveTimeAnalysis,
    DateTimeChangeResult,
    TimeSyncResult,
)

# Initialize components
_config = get_config()
_checker = DateChangeChecker.from_config(_config)


@tool  # type: ignore[arg-type]
async def is_date_time_changed() -> ClockCheckResponse:
    """Check whether this machine's date/time has been changed manually.

    Asks the platform's automatic date/time setting when a probe is
    configured, otherwise compares the system clock against NTP. If NTP
    cannot be reached the clock is reported as changed.

    Returns:
        ClockCheckResponse with the verdict and equivalent auto date/time status
    """
    changed = await _checker.is_date_time_changed()
    return ClockCheckResponse(
        is_date_time_changed=changed,
        auto_date_time_status=(
            AutoDateTimeStatus.AUTO_DATE_TIME_OFF if changed else AutoDateTimeStatus.AUTO_DATE_TIME_ON
        ),
        checked_at=datetime.now(UTC).isoformat(),
    )


@tool  # type: ignore[arg-type]
async def check_time_sync(
    threshold_ms: int | None = None,
    ntp_server: str | None = None,
    timeout_ms: int | None = None,
) -> TimeSyncResult:
    """Compare the system clock with an NTP server.

    Args:
        threshold_ms: Max tolerated difference in milliseconds (default 30000)
        ntp_server: NTP server to query (default pool.ntp.org)
        timeout_ms: NTP timeout in milliseconds (default 5000)

    Returns:
        TimeSyncResult with device time, NTP time and their difference
    """
    return await _checker.detect_time_sync_issues(threshold_ms, ntp_server, timeout_ms)


@tool  # type: ignore[arg-type]
async def analyze_time(
    threshold_ms: int | None = None,
    ntp_server: str | None = None,
    timeout_ms: int | None = None,
) -> ComprehensiveTimeAnalysis:
    """Combine the auto date/time status with an NTP synchronization check.

    Args:
        threshold_ms: Max tolerated difference in milliseconds (default 30000)
        ntp_server: NTP server to query (default pool.ntp.org)
        timeout_ms: NTP timeout in milliseconds (default 5000)

    Returns:
        ComprehensiveTimeAnalysis including has_time_issues
    """
    return await _checker.perform_comprehensive_time_analysis(threshold_ms, ntp_server, timeout_ms)


@tool  # type: ignore[arg-type]
async def detect_date_time_change(
    threshold_ms: int | None = None,
    ntp_server: str | None = None,
    timeout_ms: int | None = None,
) -> DateTimeChangeResult:
    """Detect whether the date, the time of day, or both differ from NTP time.

    Args:
        threshold_ms: Gap tolerated before anything counts as changed (default 30000)
        ntp_server: NTP server to query (default pool.ntp.org)
        timeout_ms: NTP timeout in milliseconds (default 5000)

    Returns:
        DateTimeChangeResult with the change type
    """
    return await _checker.detect_date_time_change(
        threshold_ms=threshold_ms, server=ntp_server, timeout_ms=timeout_ms
    )


def main() -> None:
    """Main entry point for the server."""
    # Default to stdio for MCP compatibility (Claude Desktop, mcp-cli)
    transport = "stdio"

    if len(sys.argv) > 1 and sys.argv[1] in ["http", "--http"]:
        transport = "http"
        logging.basicConfig(
            level=logging.INFO,
            format="%(levelname)s:%(name)s:%(message)s",
            stream=sys.stderr,
        )
        logging.getLogger(__name__).info("Starting Chuk MCP Clock Trust Server in HTTP mode")

    # Suppress logging in STDIO mode to avoid polluting JSON-RPC stream
    if transport == "stdio":
        logging.basicConfig(
            level=logging.WARNING,
            format="%(levelname)s:%(name)s:%(message)s",
            stream=sys.stderr,
        )
        logging.getLogger("chuk_mcp_server").setLevel(logging.ERROR)
        logging.getLogger("chuk_mcp_server.core").setLevel(logging.ERROR)
        logging.getLogger("chuk_mcp_server.stdio_transport").setLevel(logging.ERROR)

    run(transport=transport)


if __name__ == "__main__":
    main()
