"""Admission gate: CORS preflight, CORS headers and per-caller quota."""

from __future__ import annotations

import logging
import math

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from chat_gateway.admission.caller import SYNTHETIC, resolve_caller_key
from chat_gateway.admission.cors import CorsPolicy
from chat_gateway.admission.rate_limit import SlidingWindowRateLimiter
from chat_gateway.errors import RateLimitError, UpstreamError

logger = logging.getLogger(__name__)


class AdmissionMiddleware(BaseHTTPMiddleware):
    """Runs before routing so every response, including 429s, carries CORS headers.

    ``OPTIONS`` requests are answered here with the CORS headers and no
    body; they are neither rate limited nor authenticated.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        cors: CorsPolicy,
        limiter: SlidingWindowRateLimiter,
        unknown_caller_strategy: str = SYNTHETIC,
    ) -> None:
        super().__init__(app)
        self.cors = cors
        self.limiter = limiter
        self.unknown_caller_strategy = unknown_caller_strategy

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        cors_headers = self.cors.headers_for(request.headers.get("origin"))
        request.state.cors_headers = cors_headers

        if request.method == "OPTIONS":
            return Response(status_code=200, headers=cors_headers)

        caller_key = resolve_caller_key(
            request,
            self.unknown_caller_strategy,
            self.limiter.window_seconds,
        )
        decision = await self.limiter.check(caller_key)
        rate_headers = {
            "X-RateLimit-Limit": str(decision.limit),
            "X-RateLimit-Remaining": str(decision.remaining),
        }

        if not decision.admitted:
            error = RateLimitError(retry_after=decision.retry_after)
            return JSONResponse(
                {"error": error.public_message},
                status_code=error.status_code,
                headers={
                    **cors_headers,
                    **rate_headers,
                    "Retry-After": str(max(1, math.ceil(error.retry_after))),
                },
            )

        logger.debug(
            "Admitted %s %s from %s (%d remaining)",
            request.method,
            request.url.path,
            caller_key,
            decision.remaining,
        )
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.url.path)
            error = UpstreamError()
            return JSONResponse(
                {"error": error.public_message},
                status_code=error.status_code,
                headers={**cors_headers, **rate_headers},
            )
        response.headers.update(cors_headers)
        response.headers.update(rate_headers)
        return response
