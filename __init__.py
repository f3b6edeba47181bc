"""
Riddle client: submit headless-browser jobs to the hosted Riddle API and
turn whatever comes back into a small, safe, structured result.

Usage::

    import asyncio
    from riddle_client import RiddleRunner

    runner = RiddleRunner()
    result = asyncio.run(runner.run({"url": "https://example.com"}))

JSON log lines for the whole ``riddle_client`` logger tree are switched on with
``RiddleConfig(logging=LoggingConfig(structured=True))``, or directly with
``get_logger("riddle_client")``.
"""

from .config_structured import ApiConfig, LoggingConfig, PollConfig, RiddleConfig, SpoolConfig
from .errors import (
    ArtifactFetchError,
    ConfigError,
    InvalidTransitionError,
    PollError,
    PollTimeoutError,
    RiddleError,
    TransportError,
)
from .jobs.models import JobStatus, RunMode, RunPayload, RunResult
from .orchestrator import RiddleRunner
from .utils.logging import StructuredFormatter, get_logger

__all__ = [
    "ApiConfig",
    "ArtifactFetchError",
    "ConfigError",
    "InvalidTransitionError",
    "LoggingConfig",
    "JobStatus",
    "PollConfig",
    "PollError",
    "PollTimeoutError",
    "RiddleConfig",
    "RiddleError",
    "RiddleRunner",
    "RunMode",
    "RunPayload",
    "RunResult",
    "SpoolConfig",
    "StructuredFormatter",
    "TransportError",
    "get_logger",
]
