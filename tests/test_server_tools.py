"""Tests for the MCP server tools."""

from unittest.mock import patch

import pytest

from chuk_mcp_clock_trust.checker import DateChangeChecker
from chuk_mcp_clock_trust.errors import NetworkError
from chuk_mcp_clock_trust.models import AutoDateTimeStatus, DateTimeChangeType

from .fakes import DEVICE_NOW, FakeProbe, FakeReferenceSource, timeout_error


def _checker(source: FakeReferenceSource, probe: FakeProbe | None = None) -> DateChangeChecker:
    return DateChangeChecker(probe=probe, reference_source=source, clock=lambda: DEVICE_NOW)


def test_server_main_exists() -> None:
    """Test that server main function exists."""
    from chuk_mcp_clock_trust.server import main

    assert callable(main)


def test_main_stdio_mode() -> None:
    """Test main function in stdio mode."""
    with patch("chuk_mcp_clock_trust.server.run") as mock_run:
        with patch("sys.argv", ["chuk-mcp-clock-trust"]):
            from chuk_mcp_clock_trust.server import main

            main()
            mock_run.assert_called_once_with(transport="stdio")


@pytest.mark.parametrize("flag", ["http", "--http"])
def test_main_http_mode(flag: str) -> None:
    """Test main function in http mode."""
    with patch("chuk_mcp_clock_trust.server.run") as mock_run:
        with patch("sys.argv", ["chuk-mcp-clock-trust", flag]):
            from chuk_mcp_clock_trust.server import main

            main()
            mock_run.assert_called_once_with(transport="http")


@pytest.mark.asyncio
async def test_is_date_time_changed_tool_reports_fallback() -> None:
    """An unreachable NTP server is reported as a change."""
    from chuk_mcp_clock_trust.server import is_date_time_changed

    with patch(
        "chuk_mcp_clock_trust.server._checker",
        _checker(FakeReferenceSource(error=timeout_error())),
    ):
        response = await is_date_time_changed()

    assert response.is_date_time_changed is True
    assert response.auto_date_time_status is AutoDateTimeStatus.AUTO_DATE_TIME_OFF
    assert response.checked_at


@pytest.mark.asyncio
async def test_is_date_time_changed_tool_probe_on() -> None:
    from chuk_mcp_clock_trust.server import is_date_time_changed

    with patch(
        "chuk_mcp_clock_trust.server._checker",
        _checker(FakeReferenceSource(), FakeProbe(enabled=True)),
    ):
        response = await is_date_time_changed()

    assert response.is_date_time_changed is False
    assert response.auto_date_time_status is AutoDateTimeStatus.AUTO_DATE_TIME_ON


@pytest.mark.asyncio
async def test_check_time_sync_tool() -> None:
    from chuk_mcp_clock_trust.server import check_time_sync

    source = FakeReferenceSource(offset_ms=45000)
    with patch("chuk_mcp_clock_trust.server._checker", _checker(source)):
        result = await check_time_sync(threshold_ms=60000, ntp_server="time.google.com")

    assert result.is_synchronized is True
    assert source.calls == [("time.google.com", 5000)]


@pytest.mark.asyncio
async def test_check_time_sync_tool_surfaces_network_error() -> None:
    from chuk_mcp_clock_trust.server import check_time_sync

    with patch(
        "chuk_mcp_clock_trust.server._checker",
        _checker(FakeReferenceSource(error=timeout_error())),
    ):
        with pytest.raises(NetworkError):
            await check_time_sync()


@pytest.mark.asyncio
async def test_analyze_time_tool() -> None:
    from chuk_mcp_clock_trust.server import analyze_time

    with patch(
        "chuk_mcp_clock_trust.server._checker",
        _checker(FakeReferenceSource(offset_ms=45000), FakeProbe(enabled=True)),
    ):
        analysis = await analyze_time()

    assert analysis.is_auto_date_time_enabled is True
    assert analysis.has_time_issues is True


@pytest.mark.asyncio
async def test_detect_date_time_change_tool() -> None:
    from chuk_mcp_clock_trust.server import detect_date_time_change

    with patch(
        "chuk_mcp_clock_trust.server._checker",
        _checker(FakeReferenceSource(offset_ms=-3 * 3600 * 1000)),
    ):
        result = await detect_date_time_change()

    assert result.change_type is DateTimeChangeType.TIME_ONLY


@pytest.mark.asyncio
@pytest.mark.network
async def test_check_time_sync_against_pool() -> None:
    """Compare this machine's clock with the real NTP pool."""
    from chuk_mcp_clock_trust.server import check_time_sync

    result = await check_time_sync(threshold_ms=3_600_000)

    assert result.reference_source == "pool.ntp.org"
    assert result.difference_ms >= 0
