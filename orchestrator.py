"""Run orchestrator: guard -> submit -> (poll) -> materialize -> spool -> result.

Every public coroutine returns a JSON-serializable dict.  Configuration
problems (missing key, disallowed host, malformed payload) raise before any
I/O; everything after the first request resolves into ``ok: False``.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, Union

import requests
from pydantic import ValidationError

from .artifacts.materializer import materialize_artifacts
from .artifacts.spooler import ArtifactSpooler
from .client.guard import assert_allowed_base_url
from .client.transport import RiddleTransport
from .config_structured import RiddleConfig, RiddleEnvSettings, get_config, resolve_api_key
from .errors import ConfigError, PollError, PollTimeoutError, status_for
from .jobs.models import (
    RESULT_FIELDS,
    JobStatus,
    RunMode,
    RunPayload,
    RunResult,
    SubmittedResult,
)
from .jobs.poller import fetch_job_status, is_terminal_status, poll_job
from .jobs.submitter import OutcomeKind, SubmitOutcome, build_run_request, submit_job
from .presets import RUN_INCLUDE
from .utils.logging import PACKAGE_LOGGER_NAME, JobEventEmitter, get_logger


STILL_RUNNING_MESSAGE = "Job still running. Call poll again later."

_NOT_OK_STATUSES = frozenset({
    JobStatus.completed_timeout.value,
    JobStatus.completed_error.value,
    JobStatus.failed.value,
})


class RiddleRunner:
    """Submits Riddle jobs and returns small, safe, structured results."""

    def __init__(
        self,
        config: Optional[RiddleConfig] = None,
        transport: Optional[RiddleTransport] = None,
        session: Optional[requests.Session] = None,
        env: Optional[RiddleEnvSettings] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or get_config()
        self.api_key = resolve_api_key(self.config, env)
        self.transport = transport or RiddleTransport(
            api_key=self.api_key,
            base_url=self.config.api.base_url,
            session=session,
            timeout_seconds=self.config.api.request_timeout_seconds,
        )
        self.spooler = ArtifactSpooler(
            self.config.workspace,
            inline_cap_bytes=self.config.spool.inline_cap_bytes,
            root_dirname=self.config.spool.root_dirname,
            placeholder_job_id=self.config.spool.placeholder_job_id,
        )
        self._poll_kwargs: Dict[str, Any] = {"interval_seconds": self.config.poll.interval_seconds}
        if clock is not None:
            self._poll_kwargs["clock"] = clock
        if sleep is not None:
            self._poll_kwargs["sleep"] = sleep
        if self.config.logging.structured:
            get_logger(PACKAGE_LOGGER_NAME, level=self.config.logging.level)
        self.logger = logger or logging.getLogger(__name__)
        self.events = JobEventEmitter()

    def _preflight(self) -> None:
        if not self.transport.available():
            raise ConfigError(
                "Missing Riddle API key. Set RIDDLE_API_KEY env var or configure api.api_key.",
            )
        assert_allowed_base_url(self.transport.base_url)

    def _finish(self, raw: Mapping[str, Any], har_inline: bool) -> Dict[str, Any]:
        try:
            spooled = self.spooler.spool(raw, har_inline=har_inline)
            result = RunResult.model_validate({k: v for k, v in spooled.items() if k in RESULT_FIELDS})
        except (ValidationError, OSError) as exc:
            self.logger.error("Assembling result for job %s failed: %s", raw.get("job_id"), exc)
            mode = raw.get("mode")
            status = raw.get("status")
            return RunResult(
                ok=False,
                mode=mode if isinstance(mode, RunMode) else None,
                job_id=raw.get("job_id"),
                status=None if status is None else str(status),
                error=str(exc),
            ).to_dict()
        self.events.emit(
            "run_finished", job_id=result.job_id, status=result.status, ok=result.ok,
            mode=result.mode.value if result.mode else None,
        )
        return result.to_dict()

    # ── Run ──────────────────────────────────────────────────────────

    async def run(
        self,
        payload: Union[RunPayload, Mapping[str, Any]],
        include_defaults: Optional[Iterable[str]] = RUN_INCLUDE,
        return_async: bool = False,
    ) -> Dict[str, Any]:
        """Submit one run and drive it to a caller-facing result.

        Parameters
        ----------
        payload : RunPayload or mapping
            Work specification with exactly one of url/urls/steps/script.
        include_defaults : iterable of str, optional
            Call-site artifact kinds merged after the caller's ``include``.
        return_async : bool
            Fire-and-forget: if the job is deferred, return
            ``{job_id, status: "submitted"}`` without polling.

        Raises
        ------
        ConfigError
            Missing API key or disallowed base URL.
        ValueError
            Payload has no work mode.
        """
        self._preflight()
        req = payload if isinstance(payload, RunPayload) else RunPayload.from_dict(payload)
        mode = req.mode
        body = build_run_request(req, include_defaults=include_defaults, return_async=return_async)

        try:
            outcome = await submit_job(self.transport, body)
        except requests.RequestException as exc:
            self.logger.error("Run submission failed: %s", exc)
            return RunResult(ok=False, mode=mode, error=str(exc)).to_dict()

        self.events.emit(
            "submitted", job_id=outcome.job_id, mode=mode.value, http_status=outcome.http_status,
            outcome=outcome.kind.value,
        )

        if outcome.kind is OutcomeKind.error:
            return RunResult(ok=False, mode=mode, job_id=outcome.job_id, error=outcome.error).to_dict()

        if outcome.kind is OutcomeKind.binary:
            raw = {
                "ok": True,
                "mode": mode,
                "sync": True,
                "job_id": outcome.job_id,
                "duration_ms": outcome.duration_ms,
                "screenshot": outcome.content,
            }
            return self._finish(raw, req.har_inline)

        if outcome.kind is OutcomeKind.deferred:
            if return_async:
                return SubmittedResult(mode=mode, job_id=outcome.job_id).to_dict()
            return await self._complete(
                outcome.job_id, mode, body["include"], req.timeout_sec, req.har_inline,
            )

        return self._finish(self._sync_json(outcome, mode), req.har_inline)

    def _sync_json(self, outcome: SubmitOutcome, mode: RunMode) -> Dict[str, Any]:
        raw = {k: v for k, v in outcome.body.items() if k in RESULT_FIELDS}
        raw["ok"] = outcome.body.get("ok") is not False
        raw["mode"] = mode
        raw["job_id"] = outcome.job_id
        if raw.get("status") is not None:
            raw["status"] = str(raw["status"])
        if raw.get("status") in _NOT_OK_STATUSES:
            raw["ok"] = False
        return raw

    async def _complete(
        self,
        job_id: str,
        mode: Optional[RunMode],
        include: Iterable[str],
        timeout_sec: Optional[float],
        har_inline: bool,
    ) -> Dict[str, Any]:
        """Poll a deferred job, then fetch and spool its artifacts."""
        max_wait_ms = self.config.poll.max_wait_ms(timeout_sec)
        try:
            job = await poll_job(self.transport, job_id, max_wait_ms, mode=mode, **self._poll_kwargs)
        except (PollTimeoutError, PollError) as exc:
            return RunResult(ok=False, mode=mode, job_id=job_id, status=status_for(exc), error=str(exc)).to_dict()
        except requests.RequestException as exc:
            self.logger.error("Polling job %s failed: %s", job_id, exc)
            return RunResult(
                ok=False, mode=mode, job_id=job_id, status=JobStatus.poll_error.value, error=str(exc),
            ).to_dict()

        if job.status is JobStatus.failed:
            return RunResult(
                ok=False, mode=mode, job_id=job_id, status=job.status.value,
                duration_ms=job.duration_ms, error=job.error or "Job failed",
            ).to_dict()

        return await self._collect(job_id, mode, job.status.value, job.duration_ms,
                                   job.timeout, job.error, include, har_inline)

    async def _collect(
        self,
        job_id: str,
        mode: Optional[RunMode],
        status: str,
        duration_ms: Any,
        timeout: Any,
        error: Any,
        include: Iterable[str],
        har_inline: bool,
    ) -> Dict[str, Any]:
        """Materialize artifacts for a terminal job and assemble the result."""
        raw: Dict[str, Any] = {
            "ok": status == JobStatus.completed.value,
            "mode": mode,
            "job_id": job_id,
            "status": status,
            "duration_ms": duration_ms,
        }
        try:
            artifacts = await materialize_artifacts(self.transport, job_id, include)
        except requests.RequestException as exc:
            self.logger.error("Artifact index for job %s failed: %s", job_id, exc)
            raw["error"] = f"Artifacts fetch failed: {exc}"
        else:
            raw.update(artifacts.as_fields())
            raw["artifacts_status"] = artifacts.status
            if artifacts.error:
                raw["error"] = artifacts.error
            timeout = timeout or artifacts.timeout

        if not raw["ok"]:
            raw["timeout"] = timeout
            if error:
                raw["error"] = error
        return self._finish(raw, har_inline)

    # ── Poll once ────────────────────────────────────────────────────

    async def poll(
        self,
        job_id: str,
        include: Optional[Iterable[str]] = RUN_INCLUDE,
        har_inline: bool = False,
    ) -> Dict[str, Any]:
        """Check a job once; if it is terminal, fetch and spool its artifacts."""
        if not job_id or not isinstance(job_id, str):
            raise ValueError("job_id must be a string")
        self._preflight()
        try:
            data = await fetch_job_status(self.transport, job_id)
        except PollError as exc:
            return RunResult(ok=False, job_id=job_id, error=str(exc)).to_dict()
        except requests.RequestException as exc:
            return RunResult(ok=False, job_id=job_id, error=str(exc)).to_dict()

        status = data.get("status")
        if not is_terminal_status(status):
            return RunResult(
                ok=True, job_id=job_id, status=None if status is None else str(status),
                message=STILL_RUNNING_MESSAGE,
            ).to_dict()

        if status == JobStatus.failed.value:
            return RunResult(
                ok=False, job_id=job_id, status=status, duration_ms=data.get("duration_ms"),
                error=data.get("error") or "Job failed",
            ).to_dict()

        return await self._collect(
            job_id, None, str(status), data.get("duration_ms"), data.get("timeout"),
            data.get("error"), list(include or []), har_inline,
        )
