"""Document similarity search endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from chat_gateway.dependencies import Services, get_services, require_caller
from chat_gateway.errors import ValidationError
from chat_gateway.models.api import SearchRequest, SearchResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=SearchResponse)
async def search_documents(
    body: SearchRequest,
    caller_id: str = Depends(require_caller),
    services: Services = Depends(get_services),
) -> SearchResponse:
    """Nearest documents to ``query`` above ``threshold``, most similar first."""
    if not body.query:
        logger.warning("Search request missing query")
        raise ValidationError("Query is required")

    limit = body.limit or services.settings.search_default_limit
    threshold = (
        body.threshold
        if body.threshold is not None
        else services.settings.search_default_threshold
    )
    logger.info(
        "Searching documents for caller %s (limit=%d, threshold=%.2f)",
        caller_id,
        limit,
        threshold,
    )

    results = await services.assembler.search(body.query, threshold=threshold, limit=limit)
    logger.info("Search completed with %d result(s)", len(results))
    return SearchResponse(results=results)
