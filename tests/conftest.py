"""Shared test fixtures for the riddle_client test suite."""
from __future__ import annotations

import base64
import json
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import pytest
import requests

from riddle_client.client.transport import RiddleTransport
from riddle_client.config_structured import (
    ApiConfig,
    PollConfig,
    RiddleConfig,
    RiddleEnvSettings,
)
from riddle_client.orchestrator import RiddleRunner

API = "https://api.riddledc.com"
CDN = "https://cdn.riddledc.com"

# 1x1 transparent PNG
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)


def pytest_sessionfinish(session, exitstatus):
    """Spawn a watchdog that force-exits if the process hangs at shutdown.

    ``asyncio.to_thread`` leaves a default ThreadPoolExecutor whose atexit
    handler can block on some interpreters.
    """
    import os
    import threading
    import time

    def _watchdog():
        time.sleep(5)
        os._exit(exitstatus)

    t = threading.Thread(target=_watchdog, daemon=True)
    t.start()


# ── HTTP fakes ───────────────────────────────────────────────────────


def make_response(
    status: int = 200,
    json_body: Any = None,
    content: Optional[bytes] = None,
    headers: Optional[Dict[str, str]] = None,
) -> requests.Response:
    """Build a real ``requests.Response`` without touching the network."""
    resp = requests.Response()
    resp.status_code = status
    resp.encoding = "utf-8"
    if json_body is not None:
        resp._content = json.dumps(json_body).encode("utf-8")
        resp.headers["content-type"] = "application/json"
    else:
        resp._content = content if content is not None else b""
    resp.headers.update(headers or {})
    return resp


class FakeSession:
    """Scripted stand-in for ``requests.Session``.

    Responses are queued per (method, path).  The last queued response for a
    route repeats once the queue is down to one entry.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Any]] = {}
        self.calls: List[Dict[str, Any]] = []

    def add(self, method: str, path: str, *responses: Any) -> "FakeSession":
        self.routes.setdefault((method.upper(), path), []).extend(responses)
        return self

    def request(self, method, url, headers=None, json=None, timeout=None):
        parsed = urlparse(url)
        self.calls.append({
            "method": method, "url": url, "path": parsed.path, "query": parsed.query,
            "headers": dict(headers or {}), "json": json, "timeout": timeout,
        })
        queue = self.routes.get((method.upper(), parsed.path))
        if not queue:
            raise AssertionError(f"Unexpected request {method} {url}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item

    def calls_to(self, path: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["path"] == path]


class FakeClock:
    """Monotonic clock advanced only by the fake ``sleep``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config(tmp_path):
    return RiddleConfig(api=ApiConfig(api_key="test-key"), poll=PollConfig(), workspace=tmp_path)


@pytest.fixture
def no_env():
    return RiddleEnvSettings(api_key=None)


@pytest.fixture
def transport(session):
    return RiddleTransport(api_key="test-key", session=session)


@pytest.fixture
def runner(config, session, clock, no_env):
    return RiddleRunner(config=config, session=session, env=no_env, clock=clock, sleep=clock.sleep)
