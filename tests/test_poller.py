"""Tests for the bounded job poller."""

import pytest

from riddle_client.errors import PollError, PollTimeoutError
from riddle_client.jobs.models import JobStatus
from riddle_client.jobs.poller import fetch_job_status, is_terminal_status, poll_job

from conftest import make_response

JOB = "/v1/jobs/job_1"


@pytest.mark.asyncio
async def test_returns_on_completed(session, transport, clock):
    session.add(
        "GET", JOB,
        make_response(200, {"status": "submitted"}),
        make_response(200, {"status": "running"}),
        make_response(200, {"status": "completed", "duration_ms": 4200}),
    )
    job = await poll_job(transport, "job_1", 90_000, clock=clock, sleep=clock.sleep)
    assert job.status is JobStatus.completed
    assert job.duration_ms == 4200
    assert len(session.calls_to(JOB)) == 3
    assert clock.sleeps == [2.0, 2.0]


@pytest.mark.asyncio
async def test_completed_timeout_is_terminal(session, transport, clock):
    session.add("GET", JOB, make_response(200, {"status": "completed_timeout", "timeout": {"after_ms": 60000}}))
    job = await poll_job(transport, "job_1", 90_000, clock=clock, sleep=clock.sleep)
    assert job.status is JobStatus.completed_timeout
    assert job.timeout == {"after_ms": 60000}


@pytest.mark.asyncio
async def test_failed_carries_error(session, transport, clock):
    session.add("GET", JOB, make_response(200, {"status": "failed", "error": "Navigation failed"}))
    job = await poll_job(transport, "job_1", 90_000, clock=clock, sleep=clock.sleep)
    assert job.status is JobStatus.failed
    assert job.error == "Navigation failed"


@pytest.mark.asyncio
async def test_times_out_within_bound(session, transport, clock):
    # timeout_sec=10 -> 10_000 + 30_000 ms bound, one poll every 2 s
    session.add("GET", JOB, make_response(200, {"status": "running"}))
    with pytest.raises(PollTimeoutError) as excinfo:
        await poll_job(transport, "job_1", 40_000, clock=clock, sleep=clock.sleep)
    assert excinfo.value.job_id == "job_1"
    assert "40000ms" in str(excinfo.value)
    assert len(session.calls_to(JOB)) == 20
    assert clock.now == pytest.approx(40.0)


@pytest.mark.asyncio
async def test_http_error_stops_polling(session, transport, clock):
    session.add("GET", JOB, make_response(200, {"status": "running"}), make_response(500, content=b"oops"))
    with pytest.raises(PollError) as excinfo:
        await poll_job(transport, "job_1", 90_000, clock=clock, sleep=clock.sleep)
    assert excinfo.value.status_code == 500
    assert len(session.calls_to(JOB)) == 2


@pytest.mark.asyncio
async def test_stale_status_is_ignored(session, transport, clock):
    session.add(
        "GET", JOB,
        make_response(200, {"status": "running"}),
        make_response(200, {"status": "submitted"}),
        make_response(200, {"status": "completed"}),
    )
    job = await poll_job(transport, "job_1", 90_000, clock=clock, sleep=clock.sleep)
    assert job.status is JobStatus.completed


@pytest.mark.asyncio
async def test_fetch_rejects_non_object_payload(session, transport):
    session.add("GET", JOB, make_response(200, ["running"]))
    with pytest.raises(PollError, match="Invalid job status payload"):
        await fetch_job_status(transport, "job_1")


def test_is_terminal_status():
    assert is_terminal_status("completed")
    assert is_terminal_status("completed_error")
    assert is_terminal_status("failed")
    assert not is_terminal_status("running")
    assert not is_terminal_status("poll_timeout")
    assert not is_terminal_status(None)
