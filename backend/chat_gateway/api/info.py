"""Service information and CORS debugging endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from chat_gateway.config import Settings, get_settings
from chat_gateway.models.api import ApiInfoResponse, DebugResponse

router = APIRouter()

ENDPOINTS = {
    "health": "GET /health",
    "embed": "POST /embed",
    "search": "POST /search",
    "chat": "POST /chat",
    "sessions": "GET /sessions",
    "history": "GET /sessions/{session_id}/history",
}


@router.get("/api", response_model=ApiInfoResponse)
async def api_info(settings: Settings = Depends(get_settings)) -> ApiInfoResponse:
    return ApiInfoResponse(
        message=f"{settings.app_name} is running",
        version=settings.app_version,
        endpoints=ENDPOINTS,
    )


@router.get("/debug", response_model=DebugResponse)
async def debug(request: Request) -> DebugResponse:
    """Echo what the admission gate computed for this request."""
    return DebugResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        origin=request.headers.get("origin", "unknown"),
        method=request.method,
        pathname=request.url.path,
        cors_headers=getattr(request.state, "cors_headers", {}),
    )
