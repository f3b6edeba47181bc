"""Drive a running job to a terminal state within a bounded wait."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from ..config import POLL_INTERVAL_SECONDS
from ..errors import PollError, PollTimeoutError
from .models import SERVER_TERMINAL_STATUSES, Job, JobStatus, RunMode

logger = logging.getLogger(__name__)


async def fetch_job_status(transport, job_id: str) -> Dict[str, Any]:
    """Single ``GET /v1/jobs/{id}``.

    Raises
    ------
    PollError
        On a non-2xx answer or a body that is not a JSON object.
    """
    resp = await transport.get_job(job_id)
    if not resp.ok:
        raise PollError(resp.status_code, body=resp.content)
    try:
        data = resp.json()
    except ValueError as exc:
        raise PollError(resp.status_code, message=f"Invalid job status payload: {exc}") from exc
    if not isinstance(data, dict):
        raise PollError(resp.status_code, message="Invalid job status payload")
    return data


async def poll_job(
    transport,
    job_id: str,
    max_wait_ms: int,
    interval_seconds: float = POLL_INTERVAL_SECONDS,
    mode: Optional[RunMode] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Job:
    """Poll until the job reports a terminal status.

    Parameters
    ----------
    max_wait_ms : int
        Bound on total wall time, normally ``timeout_sec*1000 + 30000``.
    clock, sleep : callables
        Injected so the loop can be driven without real waiting.

    Returns
    -------
    Job
        In one of ``completed``, ``completed_timeout``, ``completed_error``
        or ``failed``.

    Raises
    ------
    PollTimeoutError
        The bound elapsed without a terminal status.
    PollError
        The status endpoint failed; no retry.
    """
    job = Job(job_id=job_id, mode=mode)
    start = clock()
    polls = 0
    while (clock() - start) * 1000.0 < max_wait_ms:
        data = await fetch_job_status(transport, job_id)
        polls += 1
        job.absorb(data)
        if job.status.is_terminal:
            logger.info(
                "Job %s reached %s after %d poll(s)", job_id, job.status.value, polls,
                extra={"metrics": {"job_id": job_id, "status": job.status.value, "polls": polls}},
            )
            return job
        await sleep(interval_seconds)

    logger.warning("Job %s still %s after %dms", job_id, job.status.value, max_wait_ms)
    raise PollTimeoutError(job_id, max_wait_ms)


def is_terminal_status(value: Any) -> bool:
    """True for the four server-reported terminal statuses."""
    try:
        return JobStatus(str(value)) in SERVER_TERMINAL_STATUSES
    except ValueError:
        return False
