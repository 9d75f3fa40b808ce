"""Configuration for clock trust checks."""

import os
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field

from chuk_mcp_clock_trust.models import (
    DEFAULT_NTP_SERVER,
    DEFAULT_TIME_THRESHOLD_MS,
    DEFAULT_TIMEOUT_MS,
)

ENV_PREFIX = "CLOCK_TRUST_"


class ClockTrustConfig(BaseModel):
    """Settings for the date change checker."""

    ntp_server: str = Field(DEFAULT_NTP_SERVER, min_length=1, description="NTP server to query")
    ntp_timeout_ms: int = Field(DEFAULT_TIMEOUT_MS, gt=0, description="NTP timeout (ms)")
    threshold_ms: int = Field(
        DEFAULT_TIME_THRESHOLD_MS, ge=0, description="Max tolerated device/NTP difference (ms)"
    )
    probe_timeout: float = Field(2.0, gt=0, description="Bounded wait for the platform probe (s)")
    ntp_fallback: bool = Field(True, description="Fall back to NTP when the probe is unavailable")
    probe: Literal["none", "adb", "timedatectl"] = Field(
        "none", description="Platform probe used to read the auto date/time setting"
    )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "ClockTrustConfig":
        """Load configuration, overriding defaults with CLOCK_TRUST_* variables."""
        environ = dict(os.environ) if environ is None else environ
        overrides = {
            name: environ[ENV_PREFIX + name.upper()]
            for name in cls.model_fields
            if ENV_PREFIX + name.upper() in environ
        }
        return cls.model_validate(overrides)


@lru_cache(maxsize=1)
def get_config() -> ClockTrustConfig:
    """Get the process-wide configuration."""
    return ClockTrustConfig.from_env()


def reset_config() -> None:
    """Forget the cached configuration (used by tests)."""
    get_config.cache_clear()
