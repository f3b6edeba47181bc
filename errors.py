"""Custom exceptions and their mapping onto result status strings."""
from __future__ import annotations

from typing import Any, Optional


# ── Custom Exceptions ────────────────────────────────────────────────


class RiddleError(Exception):
    """Base class for all client errors."""


class ConfigError(RiddleError):
    """Missing credential or a base URL outside the allowed host."""


class TransportError(RiddleError):
    """The remote API answered with a non-2xx status."""

    def __init__(self, status_code: int, body: Any = None, message: Optional[str] = None) -> None:
        self.status_code = int(status_code)
        self.body = body
        super().__init__(message or f"HTTP {self.status_code}")


class PollTimeoutError(RiddleError):
    """The job did not reach a terminal state within the wait bound."""

    def __init__(self, job_id: str, max_wait_ms: int) -> None:
        self.job_id = job_id
        self.max_wait_ms = int(max_wait_ms)
        super().__init__(f"Job {job_id} did not complete within {self.max_wait_ms}ms")


class PollError(TransportError):
    """The job status endpoint answered with a non-2xx status."""


class ArtifactFetchError(RiddleError):
    """A single artifact could not be downloaded or parsed."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Artifact {name}: {reason}")


class InvalidTransitionError(RiddleError):
    """A job status update would move the job backwards."""


# ── Error → status mapping ──────────────────────────────────────────

ERROR_STATUS = {
    PollTimeoutError: "poll_timeout",
    PollError: "poll_error",
}


def status_for(exc: BaseException) -> Optional[str]:
    """Pseudo-status string for a poll exception, else None."""
    for exc_cls, status in ERROR_STATUS.items():
        if isinstance(exc, exc_cls):
            return status
    return None
