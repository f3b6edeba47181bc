"""
Job submission and response classification for ``POST /v1/run``.

The same logical run can come back four ways, decided purely by server-side
timing:

    error     4xx/5xx other than 408
    deferred  408 (sync budget exceeded) or 202 with job_id + status_url
    binary    2xx with an image body (the screenshot itself)
    json      2xx with a structured body

Callers branch on ``SubmitOutcome.kind`` and never on raw status codes.
"""
from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Union

import requests

from ..config import DEFAULT_INCLUDE
from .models import RunPayload

logger = logging.getLogger(__name__)

NO_JOB_ID_408 = "Sync poll timed out but no job_id in 408 response"

# Keys that configure the client and never go over the wire.
CLIENT_ONLY_KEYS = ("har_inline", "harInline")
AUTH_OPTION_KEYS = ("cookies", "localStorage", "headers")


class OutcomeKind(str, enum.Enum):
    error = "error"
    deferred = "deferred"
    binary = "binary"
    json = "json"


@dataclass
class SubmitOutcome:
    """Classified response from ``POST /v1/run``."""

    kind: OutcomeKind
    http_status: int
    job_id: Optional[str] = None
    body: Dict[str, Any] = field(default_factory=dict)
    content: bytes = b""
    content_type: Optional[str] = None
    duration_ms: Optional[Union[int, float]] = None
    error: Any = None

    @property
    def is_deferred(self) -> bool:
        return self.kind is OutcomeKind.deferred


def merge_include(user_include: Iterable[str], defaults: Optional[Iterable[str]] = None) -> list:
    """Ordered union: caller's kinds first, then call-site defaults."""
    merged: list = []
    for kind in list(user_include or []) + list(DEFAULT_INCLUDE if defaults is None else defaults):
        if kind not in merged:
            merged.append(kind)
    return merged


def merge_auth_options(
    options: Optional[Dict[str, Any]] = None,
    cookies: Optional[list] = None,
    local_storage: Optional[Dict[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Fold session-auth parameters into the ``options`` object."""
    opts = dict(options or {})
    for key, value in zip(AUTH_OPTION_KEYS, (cookies, local_storage, headers)):
        if value:
            opts[key] = value
    return opts


def build_run_request(
    payload: RunPayload,
    include_defaults: Optional[Iterable[str]] = None,
    return_async: bool = False,
) -> Dict[str, Any]:
    """Build the JSON body for ``POST /v1/run``.

    Parameters
    ----------
    payload : RunPayload
        Validated work specification.
    include_defaults : iterable of str, optional
        Artifact kinds the call site always wants.  Never contains ``har``;
        HAR is opt-in by the caller only.
    return_async : bool
        Force ``sync=false`` so the API answers 202 immediately.
    """
    body = payload.model_dump(exclude_none=True, by_alias=False)
    for key in CLIENT_ONLY_KEYS:
        body.pop(key, None)
    if not body.get("options"):
        body.pop("options", None)

    body["include"] = merge_include(payload.include, include_defaults)
    body.setdefault("inlineConsole", True)
    body.setdefault("inlineResult", True)
    if payload.har_requested:
        body["inlineHar"] = True
    if return_async:
        body["sync"] = False
    return body


def _parse_json(content: bytes) -> Any:
    return json.loads(content.decode("utf-8"))


def _number_header(value: Optional[str]) -> Optional[Union[int, float]]:
    if value is None or value == "":
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    return int(num) if num.is_integer() else num


def classify_response(resp: requests.Response) -> SubmitOutcome:
    """Sort a ``/v1/run`` response into one of the four outcome kinds."""
    status = int(resp.status_code)
    content = resp.content or b""
    content_type = resp.headers.get("content-type")

    if status == 408:
        try:
            data = _parse_json(content)
        except ValueError:
            data = None
        job_id = data.get("job_id") if isinstance(data, dict) else None
        if not job_id:
            return SubmitOutcome(OutcomeKind.error, status, error=NO_JOB_ID_408, content_type=content_type)
        return SubmitOutcome(
            OutcomeKind.deferred, status, job_id=str(job_id), body=data, content_type=content_type,
        )

    if status >= 400:
        try:
            error: Any = _parse_json(content)
        except ValueError:
            error = f"HTTP {status}"
        return SubmitOutcome(OutcomeKind.error, status, error=error, content_type=content_type)

    if content_type and content_type.lower().startswith("image/"):
        return SubmitOutcome(
            OutcomeKind.binary,
            status,
            job_id=resp.headers.get("x-job-id") or None,
            content=content,
            content_type=content_type,
            duration_ms=_number_header(resp.headers.get("x-duration-ms")),
        )

    try:
        data = _parse_json(content)
    except ValueError:
        return SubmitOutcome(
            OutcomeKind.error, status, error=f"Invalid JSON response (HTTP {status})", content_type=content_type,
        )
    if not isinstance(data, dict):
        data = {"result": data}

    raw_job_id = data.get("job_id") or data.get("jobId")
    job_id = str(raw_job_id) if raw_job_id else None
    if status == 202 and job_id and data.get("status_url"):
        return SubmitOutcome(OutcomeKind.deferred, status, job_id=job_id, body=data, content_type=content_type)
    return SubmitOutcome(OutcomeKind.json, status, job_id=job_id, body=data, content_type=content_type)


async def submit_job(transport, body: Dict[str, Any]) -> SubmitOutcome:
    """POST the run request and classify the answer."""
    resp = await transport.post_run(body)
    outcome = classify_response(resp)
    logger.info(
        "Submitted run: http_status=%s outcome=%s job_id=%s",
        outcome.http_status, outcome.kind.value, outcome.job_id,
    )
    return outcome
