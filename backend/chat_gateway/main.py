"""FastAPI application entry point with lifespan management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from chat_gateway.admission.cors import CorsPolicy
from chat_gateway.admission.middleware import AdmissionMiddleware
from chat_gateway.admission.rate_limit import SlidingWindowRateLimiter
from chat_gateway.api.router import api_router
from chat_gateway.config import Settings, settings as default_settings
from chat_gateway.dependencies import Services, build_services
from chat_gateway.errors import GatewayError, UpstreamError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    logger.info("Starting chat gateway...")

    owned = False
    if getattr(app.state, "services", None) is None:
        app.state.services = await build_services(app.state.settings)
        owned = True
        logger.info("Services initialized successfully")

    yield

    if owned:
        await app.state.services.close()
        app.state.services = None
    logger.info("Chat gateway shut down cleanly")


async def _gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    if isinstance(exc, UpstreamError):
        logger.error("Upstream failure on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse({"error": exc.public_message}, status_code=exc.status_code)


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    logger.warning("Rejected malformed body on %s: %s", request.url.path, exc.errors()[:1])
    return JSONResponse({"error": "Invalid request body"}, status_code=400)


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[Services] = None,
) -> FastAPI:
    """Build the application. Injected ``services`` skip the lifespan wiring."""
    settings = settings or default_settings

    app = FastAPI(
        title=settings.app_name,
        description="Chat turn orchestrator over a language model and a vector-searchable document store",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services

    limiter = SlidingWindowRateLimiter(
        limit=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.state.rate_limiter = limiter

    # Admission gate: CORS + rate limiting on every request
    app.add_middleware(
        AdmissionMiddleware,
        cors=CorsPolicy(settings.allowed_origin_list),
        limiter=limiter,
        unknown_caller_strategy=settings.rate_limit_unknown_callers,
    )

    app.add_exception_handler(GatewayError, _gateway_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    app.include_router(api_router)
    return app


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


configure_logging(default_settings)

app = create_app()


def run() -> None:
    """Console entry point: serve ``app`` with uvicorn."""
    import argparse

    import uvicorn

    parser = argparse.ArgumentParser(description="Run the RAG chat gateway.")
    parser.add_argument("--host", default="0.0.0.0", help="Host interface to bind.")
    parser.add_argument("--port", type=int, default=8787, help="Port to bind.")
    args = parser.parse_args()

    logger.info("Starting chat gateway on %s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)
