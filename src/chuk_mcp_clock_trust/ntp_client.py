"""Async SNTP client for fetching a trusted reference time."""

import asyncio
import logging
import socket
import struct
import time
from datetime import UTC, datetime
from typing import Protocol

from chuk_mcp_clock_trust.errors import InvalidArgumentError, NetworkError
from chuk_mcp_clock_trust.models import NTPError, NTPResponse

logger = logging.getLogger(__name__)

NTP_PORT = 123
NTP_PACKET_SIZE = 48
# Seconds between the NTP era start (1900-01-01) and the Unix epoch
NTP_EPOCH_OFFSET = 2208988800
# LI=0 (no warning), VN=4, Mode=3 (client)
_CLIENT_HEADER = 0x23
_SERVER_MODES = (4, 5)
_FRACTION = 2**32


class ReferenceTimeSource(Protocol):
    """Anything that can supply a trusted UTC time."""

    async def fetch_reference_time(self, server: str, timeout_ms: int) -> datetime: ...


def to_ntp_timestamp(unix_time: float) -> bytes:
    """Encode a Unix time as a 64-bit NTP timestamp."""
    ntp_time = unix_time + NTP_EPOCH_OFFSET
    seconds = int(ntp_time)
    fraction = int((ntp_time - seconds) * _FRACTION)
    return struct.pack("!II", seconds & 0xFFFFFFFF, fraction & 0xFFFFFFFF)


def from_ntp_timestamp(raw: bytes) -> float:
    """Decode a 64-bit NTP timestamp into a Unix time."""
    seconds, fraction = struct.unpack("!II", raw)
    return seconds - NTP_EPOCH_OFFSET + fraction / _FRACTION


def build_request(transmit_time: float) -> bytes:
    """Build a client-mode SNTP request carrying our transmit timestamp."""
    return bytes([_CLIENT_HEADER]) + b"\0" * 39 + to_ntp_timestamp(transmit_time)


def parse_response(
    data: bytes, expected_originate: bytes | None = None
) -> tuple[float, float, int]:
    """Parse an SNTP response.

    Args:
        data: Raw response datagram
        expected_originate: Transmit timestamp of our request, echoed back by the server

    Returns:
        Tuple of (receive_time, transmit_time, stratum) with Unix timestamps

    Raises:
        ValueError: If the response is truncated or not a usable server reply
    """
    if len(data) < NTP_PACKET_SIZE:
        raise ValueError(f"Truncated NTP response ({len(data)} bytes)")

    mode = data[0] & 0x07
    if mode not in _SERVER_MODES:
        raise ValueError(f"Unexpected NTP mode {mode}")

    stratum = data[1]
    if stratum == 0:
        kiss_code = data[12:16].decode("ascii", errors="replace").strip("\x00")
        raise ValueError(f"Kiss-o'-death response ({kiss_code or 'unknown'})")
    if stratum > 15:
        raise ValueError(f"Server is unsynchronized (stratum {stratum})")

    if expected_originate is not None and data[24:32] != expected_originate:
        raise ValueError("Originate timestamp does not match request")

    if data[40:48] == b"\0" * 8:
        raise ValueError("Zero transmit timestamp")

    receive_time = from_ntp_timestamp(data[32:40])
    transmit_time = from_ntp_timestamp(data[40:48])
    return receive_time, transmit_time, stratum


class _SNTPProtocol(asyncio.DatagramProtocol):
    def __init__(self, future: "asyncio.Future[bytes]") -> None:
        self._future = future

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        if not self._future.done():
            self._future.set_result(data)

    def error_received(self, exc: Exception) -> None:
        if not self._future.done():
            self._future.set_exception(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None and not self._future.done():
            self._future.set_exception(exc)


class NTPClient:
    """Queries a single NTP server over UDP.

    No retries and no caching: every call performs exactly one round trip.
    """

    def __init__(self, timeout: float = 5.0, port: int = NTP_PORT) -> None:
        self.timeout = timeout
        self.port = port

    async def _exchange(self, server: str) -> tuple[bytes, bytes, float, float]:
        loop = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(server, self.port, type=socket.SOCK_DGRAM)
        family, _, _, _, address = infos[0]

        future: asyncio.Future[bytes] = loop.create_future()
        transport, _ = await loop.create_datagram_endpoint(
            lambda: _SNTPProtocol(future), remote_addr=address, family=family
        )
        try:
            sent_at = time.time()
            request = build_request(sent_at)
            transport.sendto(request)
            data = await future
            received_at = time.time()
        finally:
            transport.close()

        return data, request[40:48], sent_at, received_at

    async def _fetch(self, server: str, timeout: float) -> NTPResponse:
        try:
            data, originate, sent_at, received_at = await asyncio.wait_for(
                self._exchange(server), timeout=timeout
            )
        except TimeoutError as e:
            raise NetworkError(server, NTPError.TIMEOUT, f"no response within {timeout:.3f}s") from e
        except (socket.gaierror, UnicodeError) as e:
            raise NetworkError(server, NTPError.DNS_ERROR, str(e)) from e
        except OSError as e:
            raise NetworkError(server, NTPError.NETWORK_ERROR, str(e)) from e

        try:
            server_received, server_transmitted, stratum = parse_response(data, originate)
        except ValueError as e:
            raise NetworkError(server, NTPError.PARSE_ERROR, str(e)) from e

        # Standard SNTP clock offset, applied to our receive time
        offset = ((server_received - sent_at) + (server_transmitted - received_at)) / 2
        rtt_ms = (received_at - sent_at) * 1000

        logger.debug(
            "NTP %s: stratum=%d rtt=%.1fms offset=%.1fms", server, stratum, rtt_ms, offset * 1000
        )

        return NTPResponse(
            server=server,
            timestamp=received_at + offset,
            rtt_ms=rtt_ms,
            stratum=stratum,
            success=True,
        )

    async def query_server(self, server: str, timeout: float | None = None) -> NTPResponse:
        """Query a single NTP server.

        Never raises for network problems; failures are reported in the
        returned NTPResponse.

        Args:
            server: NTP server hostname or IP
            timeout: Timeout in seconds (defaults to the client timeout)

        Returns:
            NTPResponse describing the outcome
        """
        try:
            return await self._fetch(server, self.timeout if timeout is None else timeout)
        except NetworkError as e:
            logger.debug("NTP query failed: %s", e)
            return NTPResponse(
                server=server,
                timestamp=0.0,
                rtt_ms=0.0,
                stratum=16,
                success=False,
                error=str(e),
                error_type=e.kind,
            )

    async def fetch_reference_time(self, server: str, timeout_ms: int) -> datetime:
        """Fetch the current UTC time from an NTP server.

        Args:
            server: NTP server hostname or IP
            timeout_ms: Timeout in milliseconds, must be positive

        Returns:
            Timezone-aware UTC datetime with millisecond resolution

        Raises:
            InvalidArgumentError: If server is empty or timeout_ms is not positive
            NetworkError: If the server is unreachable, times out or replies with garbage
        """
        validate_server(server)
        validate_timeout(timeout_ms)

        logger.debug("Fetching NTP time from server: %s", server)
        response = await self._fetch(server, timeout_ms / 1000.0)

        reference = datetime.fromtimestamp(response.timestamp, tz=UTC)
        return reference.replace(microsecond=reference.microsecond // 1000 * 1000)


def validate_server(server: str) -> str:
    if not isinstance(server, str) or not server.strip():
        raise InvalidArgumentError(f"server must be a non-empty host name, got {server!r}")
    try:
        server.encode("idna")
    except UnicodeError as e:
        raise InvalidArgumentError(f"server is not a valid host name: {server!r} ({e})") from e
    return server


def validate_timeout(timeout_ms: int) -> int:
    if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int):
        raise InvalidArgumentError(f"timeout_ms must be an integer, got {timeout_ms!r}")
    if timeout_ms <= 0:
        raise InvalidArgumentError(f"timeout_ms must be positive, got {timeout_ms}")
    return timeout_ms
