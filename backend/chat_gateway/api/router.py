"""Central API router that aggregates all route modules."""

from fastapi import APIRouter

from chat_gateway.api.chat import router as chat_router
from chat_gateway.api.embed import router as embed_router
from chat_gateway.api.health import router as health_router
from chat_gateway.api.info import router as info_router
from chat_gateway.api.search import router as search_router
from chat_gateway.api.sessions import router as sessions_router

api_router = APIRouter()

api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(embed_router, prefix="/embed", tags=["retrieval"])
api_router.include_router(search_router, prefix="/search", tags=["retrieval"])
api_router.include_router(chat_router, prefix="/chat", tags=["chat"])
api_router.include_router(sessions_router, prefix="/sessions", tags=["sessions"])
api_router.include_router(info_router, tags=["info"])
