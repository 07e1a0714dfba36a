"""Chat turn endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from chat_gateway.dependencies import Services, get_services, require_caller
from chat_gateway.models.api import ChatRequest, ChatResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    caller_id: str = Depends(require_caller),
    services: Services = Depends(get_services),
) -> ChatResponse:
    """Run one chat turn.

    Body: ``{"message": "...", "sessionId": "..."?}``. Without a session id
    a new session is created and its id returned.
    """
    result = await services.coordinator.run_turn(
        caller_id,
        body.message,
        session_id=body.session_id,
    )
    logger.info(
        "Chat completed for session %s (lookup=%s, persisted=%s)",
        result.session_id,
        result.directive or "none",
        result.persisted,
    )
    return ChatResponse(response=result.response, session_id=result.session_id)
