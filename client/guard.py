"""Domain guard: the API key is only ever sent to the official Riddle host."""
from __future__ import annotations

from urllib.parse import urlparse

from ..config import ALLOWED_HOSTNAME, ALLOWED_SCHEME
from ..errors import ConfigError


def assert_allowed_base_url(base_url: str) -> str:
    """Raise ``ConfigError`` unless ``base_url`` is https on the allowed host.

    Returns the URL unchanged so callers can chain it.
    """
    try:
        parsed = urlparse(str(base_url))
    except ValueError as exc:
        raise ConfigError(f"Riddle baseUrl is not a valid URL: {base_url!r}") from exc

    if parsed.scheme != ALLOWED_SCHEME:
        raise ConfigError(f"Riddle baseUrl must be https: ({base_url})")
    if (parsed.hostname or "") != ALLOWED_HOSTNAME:
        raise ConfigError(f"Refusing to use non-official Riddle host: {parsed.hostname}")
    return base_url
