"""HTTP access to the Riddle API, gated by the domain guard."""

from .guard import assert_allowed_base_url
from .transport import RiddleTransport

__all__ = ["RiddleTransport", "assert_allowed_base_url"]
