"""Tests for the HTTP transport: auth headers, URLs and the guard."""

import pytest
import requests

from riddle_client.client.transport import RiddleTransport
from riddle_client.errors import ArtifactFetchError, ConfigError

from conftest import CDN, FakeSession, make_response


@pytest.mark.asyncio
async def test_post_run_sends_bearer_and_json(session, transport):
    session.add("POST", "/v1/run", make_response(200, {"ok": True}))
    resp = await transport.post_run({"url": "https://example.com"})
    assert resp.status_code == 200
    call = session.calls[0]
    assert call["url"] == "https://api.riddledc.com/v1/run"
    assert call["headers"]["Authorization"] == "Bearer test-key"
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["json"] == {"url": "https://example.com"}


@pytest.mark.asyncio
async def test_get_job_quotes_id(session, transport):
    session.add("GET", "/v1/jobs/a%2Fb", make_response(200, {"status": "running"}))
    await transport.get_job("a/b")
    assert session.calls[0]["path"] == "/v1/jobs/a%2Fb"
    assert "Content-Type" not in session.calls[0]["headers"]


@pytest.mark.asyncio
async def test_get_artifacts_passes_include(session, transport):
    session.add("GET", "/v1/jobs/job_1/artifacts", make_response(200, {"artifacts": []}))
    await transport.get_artifacts("job_1", ["screenshot", "console", "har"])
    assert session.calls[0]["query"] == "include=screenshot,console,har"


@pytest.mark.asyncio
async def test_missing_key_raises_before_request():
    session = FakeSession()
    transport = RiddleTransport(api_key=None, session=session)
    assert not transport.available()
    with pytest.raises(ConfigError):
        await transport.post_run({"url": "https://example.com"})
    assert session.calls == []


@pytest.mark.asyncio
async def test_disallowed_base_url_raises_before_request():
    session = FakeSession()
    transport = RiddleTransport(api_key="k", base_url="https://evil.example.com", session=session)
    with pytest.raises(ConfigError):
        await transport.get_job("job_1")
    assert session.calls == []


@pytest.mark.asyncio
async def test_download_has_no_auth_header(session, transport):
    session.add("GET", "/job_1/console.json", make_response(200, content=b"[]"))
    content = await transport.download(f"{CDN}/job_1/console.json")
    assert content == b"[]"
    assert "Authorization" not in session.calls[0]["headers"]


@pytest.mark.asyncio
async def test_download_non_2xx_raises(session, transport):
    session.add("GET", "/job_1/console.json", make_response(404, content=b"nope"))
    with pytest.raises(ArtifactFetchError, match="HTTP 404"):
        await transport.download(f"{CDN}/job_1/console.json")


@pytest.mark.asyncio
async def test_network_errors_propagate(session, transport):
    session.add("POST", "/v1/run", requests.ConnectionError("boom"))
    with pytest.raises(requests.ConnectionError):
        await transport.post_run({"url": "https://example.com"})
