"""
Artifact safety spooling.

Turns an assembled, possibly inline-heavy result into one whose payload
stays small whatever the remote service returned.  Per field:

    screenshot / screenshots  always written to disk, replaced by a reference
    rawPngBase64              treated as ``screenshot`` when that is absent; key removed
    har                       inline only if requested AND <= inline cap
    console                   inline unless larger than the inline cap

A reference is ``{"saved": <path>, "sizeBytes": <int>}`` with optional
``url`` and ``warning``.  Sizes are measured on the UTF-8 bytes of the
serialized value.  The input mapping is never mutated; spooling an already
spooled result returns it unchanged.
"""
from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ..config import (
    CONSOLE_SUBDIR,
    HAR_CAP_WARNING,
    HAR_SUBDIR,
    INLINE_CAP_BYTES,
    SCREENSHOT_SUBDIR,
)

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:image/([\w.+-]+);base64,", re.IGNORECASE)
_EXT_BY_SUBTYPE = {
    "jpeg": "jpg", "jpg": "jpg", "png": "png", "webp": "webp", "gif": "gif", "svg+xml": "svg",
}


@dataclass
class SpooledArtifact:
    """File reference that replaces an inline artifact."""

    saved: str
    size_bytes: int
    url: Optional[str] = None
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"saved": self.saved, "sizeBytes": self.size_bytes}
        if self.url:
            out["url"] = self.url
        if self.warning:
            out["warning"] = self.warning
        return out

    @staticmethod
    def is_reference(value: Any) -> bool:
        return isinstance(value, Mapping) and "saved" in value and "sizeBytes" in value


def serialize(value: Any) -> str:
    """Compact serialization used for both size measurement and file content."""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def utf8_size(value: Any) -> int:
    return len(serialize(value).encode("utf-8"))


def _decode_image(value: Any) -> Tuple[Optional[bytes], str, Optional[str]]:
    """(raw bytes, extension, cdn url) for any screenshot representation."""
    url = None
    if isinstance(value, Mapping):
        url = value.get("url")
        value = value.get("data")
    if isinstance(value, (bytes, bytearray)):
        return bytes(value), "png", url
    if not isinstance(value, str) or not value:
        return None, "png", url

    ext = "png"
    match = _DATA_URL_RE.match(value)
    if match:
        ext = _EXT_BY_SUBTYPE.get(match.group(1).lower(), "png")
        value = value[match.end():]
    value = "".join(value.split())
    value += "=" * (-len(value) % 4)
    try:
        return base64.b64decode(value, validate=True), ext, url
    except binascii.Error:
        logger.warning("Dropping screenshot that is not valid base64 (%d chars)", len(value))
        return None, ext, url


class ArtifactSpooler:
    """Writes artifacts under ``<workspace>/riddle/<subdir>/`` and hands back references."""

    def __init__(
        self,
        workspace: Union[str, Path],
        inline_cap_bytes: int = INLINE_CAP_BYTES,
        root_dirname: str = "riddle",
        placeholder_job_id: str = "unknown",
    ) -> None:
        self.workspace = Path(workspace)
        self.inline_cap_bytes = int(inline_cap_bytes)
        self.root_dirname = root_dirname
        self.placeholder_job_id = placeholder_job_id

    def _target(self, subdir: str, filename: str) -> Path:
        directory = self.workspace / self.root_dirname / subdir
        directory.mkdir(parents=True, exist_ok=True)
        return directory / filename

    def write_bytes(self, subdir: str, filename: str, content: bytes) -> SpooledArtifact:
        path = self._target(subdir, filename)
        path.write_bytes(content)
        return SpooledArtifact(saved=str(path), size_bytes=len(content))

    def write_text(self, subdir: str, filename: str, content: str) -> SpooledArtifact:
        return self.write_bytes(subdir, filename, content.encode("utf-8"))

    # ── Per-field policies ──────────────────────────────────────────

    def _spool_image(self, value: Any, stem: str) -> Optional[Dict[str, Any]]:
        if SpooledArtifact.is_reference(value):
            return dict(value)
        raw, ext, url = _decode_image(value)
        if raw is None:
            return None
        ref = self.write_bytes(SCREENSHOT_SUBDIR, f"{stem}.{ext}", raw)
        ref.url = url
        return ref.to_dict()

    def _spool_screenshots(self, values: List[Any], job_id: str) -> List[Dict[str, Any]]:
        refs = []
        for i, value in enumerate(values):
            ref = self._spool_image(value, f"{job_id}-{i}")
            if ref is not None:
                refs.append(ref)
        return refs

    def _spool_har(self, value: Any, job_id: str, har_inline: bool) -> Any:
        if SpooledArtifact.is_reference(value):
            return value
        text = serialize(value)
        size = len(text.encode("utf-8"))
        if har_inline and size <= self.inline_cap_bytes:
            return value
        ref = self.write_text(HAR_SUBDIR, f"{job_id}.har.json", text)
        if har_inline:
            ref.warning = HAR_CAP_WARNING
            logger.warning("HAR for job %s is %d bytes; inline request overridden", job_id, size)
        return ref.to_dict()

    def _spool_console(self, value: Any, job_id: str) -> Any:
        if SpooledArtifact.is_reference(value):
            return value
        text = serialize(value)
        if len(text.encode("utf-8")) <= self.inline_cap_bytes:
            return value
        return self.write_text(CONSOLE_SUBDIR, f"{job_id}.log", text).to_dict()

    def spool(self, raw: Mapping[str, Any], har_inline: bool = False) -> Dict[str, Any]:
        """Return a copy of ``raw`` with every artifact field made safe."""
        out = dict(raw)
        job_id = str(out.get("job_id") or self.placeholder_job_id)

        raw_png = out.pop("rawPngBase64", None)
        if raw_png is not None and out.get("screenshot") is None:
            out["screenshot"] = raw_png

        if out.get("screenshot") is not None:
            ref = self._spool_image(out["screenshot"], job_id)
            if ref is not None:
                out["screenshot"] = ref
            else:
                # undecodable: keep only the descriptive keys, never the payload
                meta = out.pop("screenshot")
                if isinstance(meta, Mapping):
                    meta = {k: v for k, v in meta.items() if k != "data"}
                    if meta:
                        out["screenshot"] = meta

        if isinstance(out.get("screenshots"), list):
            out["screenshots"] = self._spool_screenshots(out["screenshots"], job_id)

        if out.get("har") is not None:
            out["har"] = self._spool_har(out["har"], job_id, har_inline)

        if out.get("console") is not None:
            out["console"] = self._spool_console(out["console"], job_id)

        return out


def spool_result(
    raw: Mapping[str, Any],
    workspace: Union[str, Path],
    har_inline: bool = False,
    inline_cap_bytes: int = INLINE_CAP_BYTES,
) -> Dict[str, Any]:
    """Functional entry point: ``ArtifactSpooler(workspace).spool(raw)``."""
    return ArtifactSpooler(workspace, inline_cap_bytes=inline_cap_bytes).spool(raw, har_inline=har_inline)
