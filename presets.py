"""
Device presets, include defaults and payload builders for common runs.

The builders only assemble ``RunPayload``-compatible dicts; submission goes
through ``RiddleRunner.run`` with the matching ``*_INCLUDE`` defaults.
Extraction helpers (scrape, map, crawl, visual diff) are sandbox functions
on the remote side, invoked by a one-line script.
"""
from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from .jobs.submitter import merge_auth_options

DEVICES: Dict[str, Dict[str, Any]] = {
    "desktop": {"width": 1280, "height": 720, "hasTouch": False},
    "ipad": {"width": 820, "height": 1180, "hasTouch": True, "isMobile": True},
    "iphone": {"width": 390, "height": 844, "hasTouch": True, "isMobile": True},
}

# Per call-site include defaults.  None of them contains "har".
RUN_INCLUDE = ("screenshot", "console", "result")
SCREENSHOT_INCLUDE = ("screenshot", "console")
SCRIPT_INCLUDE = (
    "screenshot", "console", "result", "data", "urls", "dataset", "sitemap", "visual_diff",
)
EXTRACT_INCLUDE = ("result", "console")
VISUAL_DIFF_INCLUDE = ("result", "console", "visual_diff")

CRAWL_FORMATS = ("jsonl", "json", "csv", "zip")

_CLICK_RE = re.compile(r"""\.click\(\s*(['"`])([^'"`]+)\1\s*\)(?!\s*;?\s*//\s*no-force)""")


def viewport_for(device: Optional[str] = None, width: Optional[int] = None, height: Optional[int] = None) -> Dict[str, Any]:
    """Device preset wins over explicit width/height."""
    if device:
        if device not in DEVICES:
            raise ValueError(f"Unknown device '{device}'. Expected one of {sorted(DEVICES)}")
        return dict(DEVICES[device])
    return {"width": width or 1280, "height": height or 720}


def force_clicks(script: str) -> str:
    """Add ``{ force: true }`` to every single-argument ``.click('sel')``.

    A trailing ``// no-force`` comment opts a call out.
    """
    return _CLICK_RE.sub(r".click(\1\2\1, { force: true })", str(script or ""))


def _js(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


def _js_quote(value: Any) -> str:
    return "'" + str(value).replace("\\", "\\\\").replace("'", "\\'") + "'"


def _js_object(parts: List[str]) -> str:
    return "{ " + ", ".join(parts) + " }" if parts else ""


def _with_common(
    payload: Dict[str, Any],
    timeout_sec: Optional[float] = None,
    options: Optional[Dict[str, Any]] = None,
    cookies: Optional[list] = None,
    local_storage: Optional[Dict[str, str]] = None,
    headers: Optional[Dict[str, str]] = None,
    include: Optional[List[str]] = None,
    har_inline: bool = False,
    sync: Optional[bool] = None,
) -> Dict[str, Any]:
    if timeout_sec:
        payload["timeout_sec"] = timeout_sec
    opts = merge_auth_options(options, cookies=cookies, local_storage=local_storage, headers=headers)
    if opts:
        payload["options"] = opts
    if include:
        payload["include"] = list(include)
    if har_inline:
        payload["harInline"] = True
    if isinstance(sync, bool):
        payload["sync"] = sync
    return payload


# ── Navigation / script payloads ─────────────────────────────────────


def screenshot_payload(url: str, **common: Any) -> Dict[str, Any]:
    if not url or not isinstance(url, str):
        raise ValueError("url must be a string")
    return _with_common({"url": url}, **common)


def screenshots_payload(urls: List[str], **common: Any) -> Dict[str, Any]:
    if not isinstance(urls, list) or any(not isinstance(u, str) for u in urls):
        raise ValueError("urls must be an array of strings")
    return _with_common({"urls": list(urls)}, **common)


def steps_payload(steps: List[Dict[str, Any]], **common: Any) -> Dict[str, Any]:
    if not isinstance(steps, list):
        raise ValueError("steps must be an array")
    return _with_common({"steps": list(steps)}, **common)


def script_payload(script: str, url: Optional[str] = None, force: bool = False, **common: Any) -> Dict[str, Any]:
    if not script or not isinstance(script, str):
        raise ValueError("script must be a string")
    payload: Dict[str, Any] = {"script": force_clicks(script) if force else script}
    if url:
        payload["url"] = url
    return _with_common(payload, **common)


def click_and_screenshot_payload(
    url: str,
    selector: str,
    wait_ms: int = 1000,
    force: bool = True,
    device: Optional[str] = None,
) -> Dict[str, Any]:
    """Load ``url``, click ``selector``, wait, and capture the page."""
    script = "\n".join([
        "await page.waitForLoadState('networkidle');",
        f"await page.click({_js_quote(selector)}, {{ force: {'true' if force else 'false'} }});",
        f"await page.waitForTimeout({int(wait_ms)});",
        "await page.screenshot({ path: 'after-click.png', fullPage: false });",
    ])
    return {
        "url": url,
        "script": script,
        "timeout_sec": 30,
        "options": {"viewport": viewport_for(device or "desktop")},
    }


# ── Extraction payloads ──────────────────────────────────────────────


def _extraction(url: str, call: str, options: Optional[Dict[str, Any]], cookies: Optional[list]) -> Dict[str, Any]:
    opts = dict(options or {})
    opts["returnResult"] = True
    if cookies:
        opts["cookies"] = cookies
    return {"url": url, "script": f"return await {call};", "options": opts}


def scrape_payload(
    url: str,
    extract_metadata: Optional[bool] = None,
    options: Optional[Dict[str, Any]] = None,
    cookies: Optional[list] = None,
) -> Dict[str, Any]:
    """Title, description, markdown, links and headings of one page."""
    opts = "{ extract_metadata: false }" if extract_metadata is False else ""
    return _extraction(url, f"scrape({opts})", options, cookies)


def map_payload(
    url: str,
    max_pages: Optional[int] = None,
    include_patterns: Optional[List[str]] = None,
    exclude_patterns: Optional[List[str]] = None,
    respect_robots: Optional[bool] = None,
    options: Optional[Dict[str, Any]] = None,
    cookies: Optional[list] = None,
) -> Dict[str, Any]:
    """Discover URLs reachable from ``url``."""
    parts: List[str] = []
    if max_pages is not None:
        parts.append(f"max_pages: {int(max_pages)}")
    if include_patterns:
        parts.append(f"include_patterns: {_js(include_patterns)}")
    if exclude_patterns:
        parts.append(f"exclude_patterns: {_js(exclude_patterns)}")
    if respect_robots is False:
        parts.append("respect_robots: false")
    return _extraction(url, f"map({_js_object(parts)})", options, cookies)


def crawl_payload(
    url: str,
    max_pages: Optional[int] = None,
    format: Optional[str] = None,
    js_rendering: bool = False,
    include_patterns: Optional[List[str]] = None,
    exclude_patterns: Optional[List[str]] = None,
    extract_metadata: Optional[bool] = None,
    respect_robots: Optional[bool] = None,
    options: Optional[Dict[str, Any]] = None,
    cookies: Optional[list] = None,
) -> Dict[str, Any]:
    """Crawl from ``url`` into a dataset."""
    if format is not None and format not in CRAWL_FORMATS:
        raise ValueError(f"format must be one of {CRAWL_FORMATS}, got {format!r}")
    parts: List[str] = []
    if max_pages is not None:
        parts.append(f"max_pages: {int(max_pages)}")
    if format:
        parts.append(f"format: {_js_quote(format)}")
    if js_rendering:
        parts.append("js_rendering: true")
    if include_patterns:
        parts.append(f"include_patterns: {_js(include_patterns)}")
    if exclude_patterns:
        parts.append(f"exclude_patterns: {_js(exclude_patterns)}")
    if extract_metadata is False:
        parts.append("extract_metadata: false")
    if respect_robots is False:
        parts.append("respect_robots: false")
    return _extraction(url, f"crawl({_js_object(parts)})", options, cookies)


def visual_diff_payload(
    url_before: str,
    url_after: str,
    viewport: Optional[Dict[str, int]] = None,
    full_page: Optional[bool] = None,
    threshold: Optional[float] = None,
    selector: Optional[str] = None,
    delay_ms: Optional[int] = None,
    cookies_before: Optional[list] = None,
    cookies_after: Optional[list] = None,
    options: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Pixel diff between two URLs, run from ``url_before``."""
    parts = [f"url_before: {_js_quote(url_before)}", f"url_after: {_js_quote(url_after)}"]
    if viewport:
        parts.append(
            f"viewport: {{ width: {int(viewport.get('width') or 1280)}, "
            f"height: {int(viewport.get('height') or 720)} }}"
        )
    if full_page is False:
        parts.append("full_page: false")
    if threshold is not None:
        parts.append(f"threshold: {threshold}")
    if selector:
        parts.append(f"selector: {_js_quote(selector)}")
    if delay_ms:
        parts.append(f"delay_ms: {int(delay_ms)}")
    if cookies_before:
        parts.append(f"cookies_before: {_js(cookies_before)}")
    if cookies_after:
        parts.append(f"cookies_after: {_js(cookies_after)}")
    return _extraction(url_before, f"visualDiff({_js_object(parts)})", options, None)
