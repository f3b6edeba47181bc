"""
Structured configuration for the Riddle client using typed dataclasses.

This is the AUTHORITATIVE source of truth for all configuration values.
``config.py`` derives its flat constants from here.

A ``RiddleConfig`` is an explicit value handed to ``RiddleRunner`` at
construction.  Precedence for the API key is:

    RIDDLE_API_KEY environment variable  >  RiddleConfig.api.api_key

The base URL is never read from the environment; it comes from the config
value (default ``https://api.riddledc.com``) and is always checked by the
domain guard before any request is sent.

Usage:
    from riddle_client.config_structured import RiddleConfig, resolve_api_key
    cfg = RiddleConfig(api=ApiConfig(api_key="..."), workspace=Path("/tmp/ws"))
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings

DEFAULT_BASE_URL = "https://api.riddledc.com"
ALLOWED_HOST = "api.riddledc.com"


# ── Environment ──────────────────────────────────────────────────────


class RiddleEnvSettings(BaseSettings):
    """Values loaded from the environment (``RIDDLE_*``)."""

    api_key: Optional[str] = None

    model_config = {"env_prefix": "RIDDLE_"}


# ── Subsystems ───────────────────────────────────────────────────────


@dataclass
class ApiConfig:
    """Remote API endpoint and credential."""

    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    request_timeout_seconds: float = 120.0

    def __post_init__(self):
        self.base_url = str(self.base_url or DEFAULT_BASE_URL).rstrip("/")
        if self.request_timeout_seconds <= 0:
            raise ValueError(
                f"request_timeout_seconds must be positive, got {self.request_timeout_seconds}"
            )


@dataclass
class PollConfig:
    """Job polling cadence and wait bound."""

    interval_seconds: float = 2.0
    default_timeout_sec: int = 60
    buffer_ms: int = 30_000

    def __post_init__(self):
        if self.interval_seconds < 0:
            raise ValueError(f"interval_seconds must be >= 0, got {self.interval_seconds}")
        if self.buffer_ms < 0:
            raise ValueError(f"buffer_ms must be >= 0, got {self.buffer_ms}")

    def max_wait_ms(self, timeout_sec: Optional[float] = None) -> int:
        """Poll bound: caller timeout plus the fixed buffer."""
        base = self.default_timeout_sec if timeout_sec is None else timeout_sec
        return int(float(base) * 1000) + self.buffer_ms


@dataclass
class SpoolConfig:
    """Inline-vs-file policy for artifacts."""

    inline_cap_bytes: int = 50 * 1024
    root_dirname: str = "riddle"
    placeholder_job_id: str = "unknown"

    def __post_init__(self):
        if self.inline_cap_bytes < 0:
            raise ValueError(f"inline_cap_bytes must be >= 0, got {self.inline_cap_bytes}")


@dataclass
class LoggingConfig:
    """Structured JSON logging for the ``riddle_client`` logger tree."""

    structured: bool = False
    level: str = "INFO"

    def __post_init__(self):
        if self.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"level must be a logging level name, got {self.level!r}")


@dataclass
class RiddleConfig:
    """Top-level configuration aggregating all subsystems."""

    api: ApiConfig = field(default_factory=ApiConfig)
    poll: PollConfig = field(default_factory=PollConfig)
    spool: SpoolConfig = field(default_factory=SpoolConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    workspace: Path = field(default_factory=Path.cwd)

    def __post_init__(self):
        if isinstance(self.workspace, str):
            self.workspace = Path(self.workspace)


def resolve_api_key(cfg: RiddleConfig, env: Optional[RiddleEnvSettings] = None) -> Optional[str]:
    """Environment wins over the configured key."""
    env = env if env is not None else RiddleEnvSettings()
    return env.api_key or cfg.api.api_key or None


# ── Module-level singleton ──────────────────────────────────────────

_CONFIG: Optional[RiddleConfig] = None


def get_config() -> RiddleConfig:
    """Return the default RiddleConfig instance.

    Used only when a caller does not pass its own config; subsequent
    calls return the same instance.
    """
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = RiddleConfig()
    return _CONFIG
