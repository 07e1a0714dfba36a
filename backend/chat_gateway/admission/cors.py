"""Cross-origin policy for the gateway."""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

ALLOWED_METHODS = "GET, POST, OPTIONS"
ALLOWED_HEADERS = "Content-Type, Authorization"

# Local development: loopback host, any port.
_LOOPBACK_ORIGIN = re.compile(r"^http://(localhost|127\.0\.0\.1)(:\d{1,5})?$")


class CorsPolicy:
    """Decides which origin to echo back in ``Access-Control-Allow-Origin``."""

    def __init__(self, allowed_origins: list[str]) -> None:
        if not allowed_origins:
            raise ValueError("at least one allowed origin is required")
        self._allowed = list(allowed_origins)

    @staticmethod
    def is_loopback(origin: str) -> bool:
        return bool(_LOOPBACK_ORIGIN.match(origin))

    def resolve_origin(self, origin: str | None) -> str:
        """Echo the caller's origin when allowed, else the first configured one."""
        if origin and (origin in self._allowed or self.is_loopback(origin)):
            return origin
        if origin:
            logger.debug("Origin %s not allowed, falling back to %s", origin, self._allowed[0])
        return self._allowed[0]

    def headers_for(self, origin: str | None) -> dict[str, str]:
        return {
            "Access-Control-Allow-Origin": self.resolve_origin(origin),
            "Access-Control-Allow-Methods": ALLOWED_METHODS,
            "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        }
