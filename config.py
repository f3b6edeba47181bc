"""
Central configuration for the Riddle client.

Backward-compatible flat-constant interface.  All values are derived from
the structured config singleton in ``config_structured.py`` so there is a
single source of truth.  Per-call overrides go through ``RiddleConfig``.
"""
from .config_structured import ALLOWED_HOST, DEFAULT_BASE_URL, get_config as _get_config

_cfg = _get_config()

# ── Remote API ────────────────────────────────────────────────────────
BASE_URL = _cfg.api.base_url or DEFAULT_BASE_URL
ALLOWED_SCHEME = "https"
ALLOWED_HOSTNAME = ALLOWED_HOST
RUN_PATH = "/v1/run"
JOB_PATH = "/v1/jobs/{job_id}"
ARTIFACTS_PATH = "/v1/jobs/{job_id}/artifacts"

# ── Polling ───────────────────────────────────────────────────────────
POLL_INTERVAL_SECONDS = _cfg.poll.interval_seconds
DEFAULT_TIMEOUT_SEC = _cfg.poll.default_timeout_sec
POLL_BUFFER_MS = _cfg.poll.buffer_ms

# ── Spooling ──────────────────────────────────────────────────────────
INLINE_CAP_BYTES = _cfg.spool.inline_cap_bytes   # 50 KiB
HAR_CAP_WARNING = "Exceeded 50KB inline cap; wrote to file"
SCREENSHOT_SUBDIR = "screenshots"
HAR_SUBDIR = "har"
CONSOLE_SUBDIR = "console"

# ── Request defaults ──────────────────────────────────────────────────
DEFAULT_INCLUDE = ("screenshot", "console")
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg")
