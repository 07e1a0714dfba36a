"""Caller key resolution for rate limiting."""

from __future__ import annotations

import hashlib
import secrets
import time

from starlette.requests import Request

SYNTHETIC = "synthetic"
FINGERPRINT = "fingerprint"

# Checked in order of preference.
_IP_HEADERS = ("cf-connecting-ip", "x-forwarded-for", "x-real-ip", "x-client-ip")


def client_ip(request: Request) -> str | None:
    """Return the best-effort client IP, or ``None`` when none is resolvable."""
    for header in _IP_HEADERS:
        value = request.headers.get(header)
        if not value:
            continue
        # X-Forwarded-For is a list; the first hop is the client.
        ip = value.split(",")[0].strip()
        if ip:
            return ip
    if request.client and request.client.host:
        return request.client.host
    return None


def resolve_caller_key(
    request: Request,
    strategy: str = SYNTHETIC,
    window_seconds: float = 60.0,
) -> str:
    """Bucket key for ``request``.

    Callers without a resolvable IP get a fresh key per request under the
    ``synthetic`` strategy, which means they are never limited. The
    ``fingerprint`` strategy buckets them by user agent and time window
    instead.
    """
    ip = client_ip(request)
    if ip:
        return ip

    if strategy == FINGERPRINT:
        bucket = int(time.time() // window_seconds)
        agent = request.headers.get("user-agent", "")
        digest = hashlib.sha256(f"{agent}|{bucket}".encode("utf-8")).hexdigest()
        return f"unknown-{digest[:16]}"

    return f"unknown-{int(time.time() * 1000)}-{secrets.token_hex(5)}"
