"""
HTTP transport for the Riddle API.

Wraps a ``requests.Session`` and runs each blocking call in a worker thread
so the orchestration layer can stay ``async``.  Every call re-checks the
base URL against the domain guard before anything leaves the process.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, Optional
from urllib.parse import quote

import requests

from ..config import ARTIFACTS_PATH, JOB_PATH, RUN_PATH
from ..config_structured import DEFAULT_BASE_URL
from ..errors import ArtifactFetchError, ConfigError
from .guard import assert_allowed_base_url


class RiddleTransport:
    """
    Riddle HTTP wrapper with:
      - bearer-token auth headers
      - domain guard on every call
      - thread offloading of the blocking ``requests`` session
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[requests.Session] = None,
        timeout_seconds: float = 120.0,
        logger: Optional[logging.Logger] = None,
    ):
        self.api_key = str(api_key).strip() if api_key else ""
        self.base_url = str(base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout_seconds = float(timeout_seconds)
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)

    def available(self) -> bool:
        """Return whether a credential is configured."""
        return bool(self.api_key)

    def _join_url(self, path: str) -> str:
        p = str(path)
        if p.startswith("http://") or p.startswith("https://"):
            return p
        return f"{self.base_url}/{p.lstrip('/')}"

    def _auth_headers(self, json_body: bool = False) -> Dict[str, str]:
        if not self.available():
            raise ConfigError(
                "Missing Riddle API key. Set RIDDLE_API_KEY or configure api.api_key.",
            )
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        """Send one authenticated request to the API and return the raw response."""
        assert_allowed_base_url(self.base_url)
        headers = self._auth_headers(json_body=json_body is not None)
        url = self._join_url(path)
        resp = await asyncio.to_thread(
            self.session.request,
            method=method.upper(),
            url=url,
            headers=headers,
            json=json_body,
            timeout=self.timeout_seconds,
        )
        self.logger.debug("Riddle %s %s -> %s", method.upper(), path, resp.status_code)
        return resp

    async def post_run(self, body: Dict[str, Any]) -> requests.Response:
        return await self.request("POST", RUN_PATH, json_body=body)

    async def get_job(self, job_id: str) -> requests.Response:
        return await self.request("GET", JOB_PATH.format(job_id=quote(str(job_id), safe="")))

    async def get_artifacts(self, job_id: str, include: Iterable[str]) -> requests.Response:
        path = ARTIFACTS_PATH.format(job_id=quote(str(job_id), safe=""))
        joined = ",".join(str(k) for k in include)
        return await self.request("GET", f"{path}?include={quote(joined, safe=',')}")

    async def download(self, url: str) -> bytes:
        """Fetch an artifact from the delivery layer (no auth header).

        Raises
        ------
        ArtifactFetchError
            If the delivery layer answers with a non-2xx status.
        """
        assert_allowed_base_url(self.base_url)
        resp = await asyncio.to_thread(
            self.session.request,
            method="GET",
            url=str(url),
            timeout=self.timeout_seconds,
        )
        if not resp.ok:
            raise ArtifactFetchError(str(url), f"HTTP {resp.status_code}")
        return resp.content
