"""Session listing and history endpoints (owner only)."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from chat_gateway.dependencies import Services, get_services, require_caller
from chat_gateway.models.messages import SessionHistoryResponse
from chat_gateway.models.sessions import SessionListResponse, SessionSummary

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=SessionListResponse)
async def list_sessions(
    limit: int = Query(50, gt=0, le=100),
    caller_id: str = Depends(require_caller),
    services: Services = Depends(get_services),
) -> SessionListResponse:
    """Return the caller's sessions, most recently updated first."""
    sessions = await services.store.list_sessions(caller_id, limit=limit)
    summaries = [
        SessionSummary(session_id=s.id, title=s.title, updated_at=s.updated_at)
        for s in sessions
    ]
    return SessionListResponse(sessions=summaries, total=len(summaries))


@router.get("/{session_id}/history", response_model=SessionHistoryResponse)
async def get_session_history(
    session_id: str,
    caller_id: str = Depends(require_caller),
    services: Services = Depends(get_services),
) -> SessionHistoryResponse:
    """Return the full message history of one of the caller's sessions.

    Sessions owned by someone else answer exactly like missing ones.
    """
    messages = await services.store.get_history(session_id, caller_id)
    return SessionHistoryResponse(session_id=session_id, messages=messages)
