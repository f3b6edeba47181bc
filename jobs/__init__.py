"""
Job lifecycle: payload models, submission and classification, polling.
"""

from .models import Job, JobStatus, RunMode, RunPayload, RunResult, SubmittedResult, detect_mode
from .poller import fetch_job_status, poll_job
from .submitter import (
    OutcomeKind,
    SubmitOutcome,
    build_run_request,
    classify_response,
    merge_include,
    submit_job,
)

__all__ = [
    "Job",
    "JobStatus",
    "OutcomeKind",
    "RunMode",
    "RunPayload",
    "RunResult",
    "SubmitOutcome",
    "SubmittedResult",
    "build_run_request",
    "classify_response",
    "detect_mode",
    "fetch_job_status",
    "merge_include",
    "poll_job",
    "submit_job",
]
