"""Platform probes for the automatic date/time setting."""

import asyncio
import contextlib
import logging
import shutil
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Protocol

from chuk_mcp_clock_trust.errors import ProbeError, UnsupportedPlatformError

logger = logging.getLogger(__name__)

# Android Settings.Global.AUTO_TIME value meaning "enabled"
AUTO_TIME_ENABLED = 1


class AutoTimeProbe(Protocol):
    """Reports whether the platform synchronizes its clock automatically."""

    def supports_probe(self) -> bool: ...

    async def probe_auto_time_enabled(self) -> bool: ...


class UnsupportedProbe:
    """Probe for platforms without an automatic time setting."""

    def supports_probe(self) -> bool:
        return False

    async def probe_auto_time_enabled(self) -> bool:
        raise UnsupportedPlatformError("No automatic date/time setting on this platform")


class SettingValueProbe:
    """Probe backed by a callable returning the raw auto-time setting.

    A value of 1 means enabled. Any other value, or a missing setting
    (None or LookupError), means disabled.
    """

    def __init__(self, read_setting: Callable[[], int | None]) -> None:
        self._read_setting = read_setting

    def supports_probe(self) -> bool:
        return True

    async def probe_auto_time_enabled(self) -> bool:
        try:
            value = self._read_setting()
        except LookupError:
            logger.debug("Auto-time setting not found, treating as disabled")
            return False
        except Exception as e:
            raise ProbeError(f"Failed to read auto-time setting: {e}") from e
        return value == AUTO_TIME_ENABLED


class CommandProbe(ABC):
    """Base for probes that read the setting from a command's output."""

    command: tuple[str, ...] = ()

    def supports_probe(self) -> bool:
        return bool(self.command) and shutil.which(self.command[0]) is not None

    @abstractmethod
    def parse_output(self, output: str) -> bool: ...

    async def probe_auto_time_enabled(self) -> bool:
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise UnsupportedPlatformError(f"{self.command[0]} is not available") from e
        except OSError as e:
            raise ProbeError(f"Failed to run {self.command[0]}: {e}") from e

        try:
            stdout, stderr = await process.communicate()
        finally:
            # Cancelled by a bounded wait: do not leave the child running
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        if process.returncode != 0:
            raise ProbeError(
                f"{' '.join(self.command)} exited with {process.returncode}: "
                f"{stderr.decode(errors='replace').strip()}"
            )
        return self.parse_output(stdout.decode(errors="replace").strip())


class AdbAutoTimeProbe(CommandProbe):
    """Reads Settings.Global.AUTO_TIME from an attached Android device."""

    def __init__(self, serial: str | None = None) -> None:
        target = ("-s", serial) if serial else ()
        self.command = ("adb", *target, "shell", "settings", "get", "global", "auto_time")

    def parse_output(self, output: str) -> bool:
        # "null" is printed when the setting does not exist
        if output == "null":
            return False
        try:
            return int(output) == AUTO_TIME_ENABLED
        except ValueError as e:
            raise ProbeError(f"Unexpected auto_time value: {output!r}") from e


class TimedatectlProbe(CommandProbe):
    """Reads systemd's NTP synchronization flag."""

    command = ("timedatectl", "show", "--property=NTP", "--value")

    def parse_output(self, output: str) -> bool:
        if output == "yes":
            return True
        if output == "no":
            return False
        raise ProbeError(f"Unexpected timedatectl NTP value: {output!r}")


def create_probe(name: str) -> AutoTimeProbe:
    """Build a probe by name ("none", "adb" or "timedatectl")."""
    probes: dict[str, Callable[[], AutoTimeProbe]] = {
        "none": UnsupportedProbe,
        "adb": AdbAutoTimeProbe,
        "timedatectl": TimedatectlProbe,
    }
    try:
        return probes[name]()
    except KeyError:
        raise ValueError(f"Unknown probe {name!r}, expected one of {sorted(probes)}") from None
