"""
Artifact materialization for finished jobs.

Fetches the artifact index for a job and downloads, one at a time in index
order, the entries the caller asked for:

    *.png / *.jpg / *.jpeg   base64 data URLs collected into ``screenshots``
    console.json             parsed JSON under ``console``
    result.json              parsed JSON under ``result``
    data.json                parsed JSON under ``data`` (when ``data`` is included)
    network.har              parsed JSON under ``har`` (only when ``har`` is included)

Individual download or parse failures are logged and skipped; a partial
result is preferred over none.
"""
from __future__ import annotations

import base64
import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import requests

from ..config import IMAGE_EXTENSIONS
from ..errors import ArtifactFetchError

logger = logging.getLogger(__name__)

_IMAGE_MIME = {".png": "image/png", ".jpg": "image/jpeg", ".jpeg": "image/jpeg"}

# Named artifacts parsed as JSON -> (result field, include kind gating it or None).
_JSON_ARTIFACTS = {
    "console.json": ("console", None),
    "result.json": ("result", None),
    "data.json": ("data", "data"),
    "network.har": ("har", "har"),
}


class ArtifactKind(str, enum.Enum):
    screenshot = "screenshot"
    console = "console"
    har = "har"
    result = "result"
    data = "data"
    other = "other"


def classify_artifact(name: str) -> ArtifactKind:
    """Artifact kind from its file name."""
    lowered = str(name or "").lower()
    if lowered.endswith(IMAGE_EXTENSIONS):
        return ArtifactKind.screenshot
    entry = _JSON_ARTIFACTS.get(str(name or ""))
    if entry is not None:
        return ArtifactKind(entry[0])
    return ArtifactKind.other


@dataclass
class Artifact:
    """One entry of the artifact index."""

    name: str
    url: Optional[str] = None

    @property
    def kind(self) -> ArtifactKind:
        return classify_artifact(self.name)

    @property
    def mime_type(self) -> str:
        lowered = self.name.lower()
        for ext, mime in _IMAGE_MIME.items():
            if lowered.endswith(ext):
                return mime
        return "application/octet-stream"


@dataclass
class MaterializedArtifacts:
    """Downloaded artifacts plus any status the index reported."""

    screenshots: List[Dict[str, Any]] = field(default_factory=list)
    console: Any = None
    result: Any = None
    data: Any = None
    har: Any = None
    status: Optional[str] = None
    timeout: Any = None
    error: Any = None

    @property
    def screenshot(self) -> Optional[Dict[str, Any]]:
        return self.screenshots[0] if self.screenshots else None

    def as_fields(self) -> Dict[str, Any]:
        """Artifact payload fields, absent ones omitted."""
        out: Dict[str, Any] = {}
        if self.screenshots:
            out["screenshots"] = list(self.screenshots)
            out["screenshot"] = self.screenshot
        for name in ("console", "result", "data", "har"):
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        return out


def parse_index(payload: Any) -> List[Artifact]:
    """Artifact entries from the index body, skipping malformed rows."""
    rows = payload.get("artifacts") if isinstance(payload, dict) else None
    out: List[Artifact] = []
    for row in rows or []:
        if isinstance(row, dict) and row.get("name"):
            out.append(Artifact(name=str(row["name"]), url=row.get("url")))
    return out


async def _download_json(transport, artifact: Artifact) -> Any:
    content = await transport.download(artifact.url)
    try:
        return json.loads(content.decode("utf-8"))
    except ValueError as exc:
        raise ArtifactFetchError(artifact.name, f"invalid JSON: {exc}") from exc


async def _download_image(transport, artifact: Artifact) -> Dict[str, Any]:
    content = await transport.download(artifact.url)
    encoded = base64.b64encode(content).decode("ascii")
    return {
        "name": artifact.name,
        "data": f"data:{artifact.mime_type};base64,{encoded}",
        "size": len(content),
        "url": artifact.url,
    }


async def materialize_artifacts(transport, job_id: str, include: Iterable[str]) -> MaterializedArtifacts:
    """Fetch the artifact index for ``job_id`` and download what was asked for."""
    include = list(include)
    out = MaterializedArtifacts()

    resp = await transport.get_artifacts(job_id, include)
    if not resp.ok:
        out.error = f"Artifacts fetch failed: HTTP {resp.status_code}"
        logger.warning("Artifact index for job %s failed: HTTP %s", job_id, resp.status_code)
        return out
    try:
        payload = resp.json()
    except ValueError:
        out.error = "Artifacts fetch failed: invalid JSON"
        return out

    if isinstance(payload, dict):
        out.status = payload.get("status") or None
        out.timeout = payload.get("timeout") or None
        out.error = payload.get("error") or None

    for artifact in parse_index(payload):
        if not artifact.url:
            continue
        kind = artifact.kind
        try:
            if kind is ArtifactKind.screenshot:
                out.screenshots.append(await _download_image(transport, artifact))
                continue
            entry = _JSON_ARTIFACTS.get(artifact.name)
            if entry is None:
                continue
            field_name, gate = entry
            if gate is not None and gate not in include:
                continue
            if getattr(out, field_name) is None:
                setattr(out, field_name, await _download_json(transport, artifact))
        except (requests.RequestException, ArtifactFetchError) as exc:
            logger.debug("Skipping artifact %s for job %s: %s", artifact.name, job_id, exc)

    logger.info(
        "Materialized artifacts for job %s", job_id,
        extra={"metrics": {"job_id": job_id, "screenshots": len(out.screenshots),
                           "fields": sorted(out.as_fields())}},
    )
    return out
