"""Job, payload and result data models."""
from __future__ import annotations

import enum
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..errors import InvalidTransitionError

logger = logging.getLogger(__name__)


class RunMode(str, enum.Enum):
    url = "url"
    urls = "urls"
    steps = "steps"
    script = "script"


# First truthy field wins.
MODE_PRIORITY = (RunMode.url, RunMode.urls, RunMode.steps, RunMode.script)


def detect_mode(payload: Mapping[str, Any]) -> Optional[RunMode]:
    """Return the work mode of ``payload`` (url > urls > steps > script)."""
    present = [m for m in MODE_PRIORITY if payload.get(m.value)]
    if not present:
        return None
    if len(present) > 1:
        logger.debug(
            "Payload carries several mode fields %s; using %s",
            [m.value for m in present], present[0].value,
        )
    return present[0]


class JobStatus(str, enum.Enum):
    submitted = "submitted"
    running = "running"
    completed = "completed"
    completed_timeout = "completed_timeout"
    completed_error = "completed_error"
    failed = "failed"
    poll_timeout = "poll_timeout"
    poll_error = "poll_error"

    @classmethod
    def parse(cls, value: Any) -> "JobStatus":
        """Map a server status string; anything non-terminal counts as running."""
        try:
            return cls(str(value))
        except ValueError:
            return cls.running

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def rank(self) -> int:
        if self is JobStatus.submitted:
            return 0
        if self is JobStatus.running:
            return 1
        return 2


SERVER_TERMINAL_STATUSES = frozenset({
    JobStatus.completed,
    JobStatus.completed_timeout,
    JobStatus.completed_error,
    JobStatus.failed,
})
TERMINAL_STATUSES = SERVER_TERMINAL_STATUSES | {JobStatus.poll_timeout, JobStatus.poll_error}


class Job(BaseModel):
    """Client-side view of one remote job, mutated only by the poller."""

    job_id: str
    mode: Optional[RunMode] = None
    status: JobStatus = JobStatus.submitted
    timeout: Optional[Any] = None
    duration_ms: Optional[Union[int, float]] = None
    error: Optional[Any] = None

    def advance(self, status: JobStatus) -> "Job":
        """Move forward to ``status``.

        Raises
        ------
        InvalidTransitionError
            If the move would regress the job or leave a terminal state.
        """
        if status == self.status:
            return self
        if self.status.is_terminal or status.rank < self.status.rank:
            raise InvalidTransitionError(
                f"Job {self.job_id}: cannot move from {self.status.value} to {status.value}"
            )
        self.status = status
        return self

    def absorb(self, data: Mapping[str, Any]) -> "Job":
        """Copy status-endpoint fields onto the job.

        A stale status report (e.g. ``submitted`` after ``running``) is
        ignored rather than moving the job backwards.
        """
        status = JobStatus.parse(data.get("status"))
        if status.rank >= self.status.rank:
            self.advance(status)
        if data.get("error") is not None:
            self.error = data["error"]
        if data.get("duration_ms") is not None:
            self.duration_ms = data["duration_ms"]
        if data.get("timeout") is not None:
            self.timeout = data["timeout"]
        return self


class RunPayload(BaseModel):
    """Work specification for ``POST /v1/run``.

    Exactly one of ``url``, ``urls``, ``steps`` or ``script`` selects the
    mode.  Unknown keys are kept and forwarded to the API untouched.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    url: Optional[str] = None
    urls: Optional[List[str]] = None
    steps: Optional[List[Dict[str, Any]]] = None
    script: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)
    include: List[str] = Field(default_factory=list)
    har_inline: bool = Field(default=False, alias="harInline")
    sync: Optional[bool] = None
    timeout_sec: Optional[float] = None

    @model_validator(mode="after")
    def _require_mode(self) -> "RunPayload":
        if self.mode is None:
            raise ValueError("payload needs one of url, urls, steps or script")
        return self

    @property
    def mode(self) -> Optional[RunMode]:
        return detect_mode({m.value: getattr(self, m.value) for m in MODE_PRIORITY})

    @property
    def har_requested(self) -> bool:
        return "har" in self.include

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "RunPayload":
        return cls.model_validate(dict(payload))


class RunResult(BaseModel):
    """Caller-facing result of a run or poll."""

    ok: bool = True
    mode: Optional[RunMode] = None
    sync: Optional[bool] = None
    job_id: Optional[str] = None
    status: Optional[str] = None
    duration_ms: Optional[Union[int, float]] = None
    screenshot: Optional[Any] = None
    screenshots: Optional[List[Any]] = None
    console: Optional[Any] = None
    har: Optional[Any] = None
    result: Optional[Any] = None
    data: Optional[Any] = None
    urls: Optional[Any] = None
    dataset: Optional[Any] = None
    sitemap: Optional[Any] = None
    visual_diff: Optional[Any] = None
    artifacts_status: Optional[str] = None
    timeout: Optional[Any] = None
    message: Optional[str] = None
    error: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe dict with absent fields dropped."""
        dumped = self.model_dump(mode="json")
        return {k: v for k, v in dumped.items() if v is not None}


class SubmittedResult(BaseModel):
    """Fire-and-forget result: the job was accepted and is still running."""

    ok: bool = True
    mode: Optional[RunMode] = None
    job_id: str
    status: str = JobStatus.submitted.value

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


RESULT_FIELDS = frozenset(RunResult.model_fields)
