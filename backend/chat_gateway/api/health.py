"""Health check endpoints for infrastructure monitoring."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from chat_gateway.dependencies import Services, get_services
from chat_gateway.models.api import HealthResponse

logger = logging.getLogger(__name__)
router = APIRouter()


async def _check_mongodb(services: Services) -> dict[str, Any]:
    """Ping MongoDB and return status."""
    try:
        await services.store.ping()
        return {"status": "healthy"}
    except Exception as exc:
        logger.warning("MongoDB health check failed: %s", exc)
        return {"status": "unhealthy", "error": type(exc).__name__}


async def _check_chromadb(services: Services) -> dict[str, Any]:
    """Count documents in the search collection and return status."""
    try:
        documents = await services.vector_search.heartbeat()
        return {"status": "healthy", "documents": documents}
    except Exception as exc:
        logger.warning("ChromaDB health check failed: %s", exc)
        return {"status": "unhealthy", "error": type(exc).__name__}


@router.get("", response_model=HealthResponse)
async def health_check() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


@router.get("/services")
async def services_health(
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Return aggregate health of the backing services."""
    checks = {
        "mongodb": await _check_mongodb(services),
        "chromadb": await _check_chromadb(services),
    }

    overall = (
        "healthy"
        if all(s["status"] == "healthy" for s in checks.values())
        else "degraded"
    )

    return {
        "status": overall,
        "services": checks,
    }
