"""Text embedding endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from chat_gateway.dependencies import Services, get_services
from chat_gateway.errors import ValidationError
from chat_gateway.models.api import EmbedRequest, EmbedResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=EmbedResponse)
async def embed_text(
    body: EmbedRequest,
    services: Services = Depends(get_services),
) -> EmbedResponse:
    """Return the embedding vector for ``text``. No authentication required."""
    if not body.text:
        logger.warning("Embed request missing text")
        raise ValidationError("Text is required")

    embedding = await services.assembler.embed(body.text)
    logger.info("Embedding generated (%d dimensions)", len(embedding))
    return EmbedResponse(embedding=embedding)
