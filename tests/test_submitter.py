"""Tests for request building and response classification."""

import pytest
from pydantic import ValidationError

from riddle_client.jobs.models import RunMode, RunPayload, detect_mode
from riddle_client.jobs.submitter import (
    NO_JOB_ID_408,
    OutcomeKind,
    build_run_request,
    classify_response,
    merge_auth_options,
    merge_include,
    submit_job,
)

from conftest import PNG_BYTES, make_response


class TestModeDetection:
    def test_each_mode_detected(self):
        assert detect_mode({"url": "https://a"}) is RunMode.url
        assert detect_mode({"urls": ["https://a"]}) is RunMode.urls
        assert detect_mode({"steps": [{"goto": "https://a"}]}) is RunMode.steps
        assert detect_mode({"script": "await page.goto('x')"}) is RunMode.script

    def test_priority_when_several_present(self):
        assert detect_mode({"script": "x", "steps": [{}], "url": "https://a"}) is RunMode.url
        assert detect_mode({"script": "x", "urls": ["https://a"]}) is RunMode.urls

    def test_empty_values_do_not_count(self):
        assert detect_mode({"url": "", "urls": [], "script": "x"}) is RunMode.script
        assert detect_mode({}) is None

    def test_payload_without_mode_rejected(self):
        with pytest.raises(ValidationError):
            RunPayload.from_dict({"options": {"viewport": {"width": 10}}})


class TestIncludeMerge:
    def test_union_keeps_caller_order(self):
        assert merge_include(["har", "console"], ["screenshot", "console"]) == [
            "har", "console", "screenshot",
        ]

    def test_none_defaults_fall_back(self):
        assert merge_include([]) == ["screenshot", "console"]

    def test_empty_defaults_respected(self):
        assert merge_include(["data"], []) == ["data"]


class TestBuildRunRequest:
    def test_defaults_and_inline_flags(self):
        body = build_run_request(RunPayload.from_dict({"url": "https://a"}), ["screenshot", "console"])
        assert body["url"] == "https://a"
        assert body["include"] == ["screenshot", "console"]
        assert body["inlineConsole"] is True
        assert body["inlineResult"] is True
        assert "inlineHar" not in body
        assert "options" not in body
        assert "sync" not in body

    def test_har_inline_is_client_only(self):
        payload = RunPayload.from_dict({"url": "https://a", "harInline": True, "include": ["har"]})
        assert payload.har_inline is True
        body = build_run_request(payload, ["screenshot"])
        assert "harInline" not in body
        assert "har_inline" not in body
        assert body["inlineHar"] is True
        assert body["include"] == ["har", "screenshot"]

    def test_har_never_added_by_defaults(self):
        body = build_run_request(RunPayload.from_dict({"url": "https://a"}), None)
        assert "har" not in body["include"]
        assert "inlineHar" not in body

    def test_return_async_forces_sync_false(self):
        body = build_run_request(RunPayload.from_dict({"url": "https://a", "sync": True}), return_async=True)
        assert body["sync"] is False

    def test_unknown_keys_forwarded(self):
        body = build_run_request(RunPayload.from_dict({"script": "x", "inlineConsole": False, "extra": 1}))
        assert body["extra"] == 1
        assert body["inlineConsole"] is False

    def test_auth_options_folded(self):
        opts = merge_auth_options({"viewport": {"width": 1}}, cookies=[{"name": "s"}], headers={"X": "1"})
        assert opts == {"viewport": {"width": 1}, "cookies": [{"name": "s"}], "headers": {"X": "1"}}


class TestClassifyResponse:
    def test_408_with_job_id_is_deferred(self):
        out = classify_response(make_response(408, {"job_id": "job_1"}))
        assert out.kind is OutcomeKind.deferred
        assert out.is_deferred
        assert out.job_id == "job_1"

    def test_408_without_job_id_is_error(self):
        out = classify_response(make_response(408, {"message": "slow"}))
        assert out.kind is OutcomeKind.error
        assert out.error == NO_JOB_ID_408

    def test_408_with_non_json_body_is_error(self):
        out = classify_response(make_response(408, content=b"<html>"))
        assert out.kind is OutcomeKind.error
        assert out.error == NO_JOB_ID_408

    def test_4xx_json_body_is_error_payload(self):
        out = classify_response(make_response(402, {"error": "Insufficient balance"}))
        assert out.kind is OutcomeKind.error
        assert out.error == {"error": "Insufficient balance"}

    def test_5xx_text_body_is_http_error(self):
        out = classify_response(make_response(502, content=b"Bad gateway"))
        assert out.error == "HTTP 502"

    def test_image_body_is_binary(self):
        resp = make_response(200, content=PNG_BYTES, headers={
            "content-type": "image/png", "x-job-id": "job_9", "x-duration-ms": "1234",
        })
        out = classify_response(resp)
        assert out.kind is OutcomeKind.binary
        assert out.content == PNG_BYTES
        assert out.job_id == "job_9"
        assert out.duration_ms == 1234

    def test_202_with_status_url_is_deferred(self):
        out = classify_response(make_response(202, {"job_id": "job_2", "status_url": "/v1/jobs/job_2"}))
        assert out.kind is OutcomeKind.deferred

    def test_202_without_status_url_is_json(self):
        out = classify_response(make_response(202, {"job_id": "job_2"}))
        assert out.kind is OutcomeKind.json

    def test_json_body_reads_camel_job_id(self):
        out = classify_response(make_response(200, {"jobId": "job_3", "status": "completed"}))
        assert out.kind is OutcomeKind.json
        assert out.job_id == "job_3"

    def test_non_object_json_wrapped(self):
        out = classify_response(make_response(200, [1, 2]))
        assert out.body == {"result": [1, 2]}

    def test_invalid_json_is_error(self):
        out = classify_response(make_response(200, content=b"not json", headers={"content-type": "text/plain"}))
        assert out.kind is OutcomeKind.error
        assert out.error == "Invalid JSON response (HTTP 200)"


@pytest.mark.asyncio
async def test_submit_job_posts_and_classifies(session, transport):
    session.add("POST", "/v1/run", make_response(408, {"job_id": "job_1"}))
    out = await submit_job(transport, {"url": "https://a"})
    assert out.kind is OutcomeKind.deferred
    assert session.calls[0]["json"] == {"url": "https://a"}
