"""Grounding context assembly: embed the message, search, format hits.

Vector search runs against a ChromaDB collection created with cosine
distance, so ``similarity = 1 - distance``. Hit order is whatever the
search service returns; it is never re-sorted here.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi.concurrency import run_in_threadpool
from langchain_core.embeddings import Embeddings

from chat_gateway.errors import UpstreamError
from chat_gateway.models.documents import GroundingContext, RetrievedDocument

logger = logging.getLogger(__name__)

DEFAULT_MATCH_THRESHOLD = 0.7
DEFAULT_MATCH_COUNT = 5


def format_context(documents: list[RetrievedDocument]) -> str:
    """``title: content`` blocks separated by a blank line."""
    return "\n\n".join(f"{doc.title}: {doc.content}" for doc in documents)


class VectorSearch:
    """Nearest-document search over a ChromaDB collection."""

    def __init__(self, collection: Any) -> None:
        # Any object with Chroma's ``query`` / ``count`` signature.
        self._collection = collection

    async def search(
        self,
        embedding: list[float],
        *,
        threshold: float,
        limit: int,
    ) -> list[RetrievedDocument]:
        if limit <= 0:
            return []
        raw = await run_in_threadpool(
            self._collection.query,
            query_embeddings=[embedding],
            n_results=limit,
            include=["documents", "metadatas", "distances"],
        )
        ids = (raw.get("ids") or [[]])[0]
        documents = (raw.get("documents") or [[]])[0]
        metadatas = (raw.get("metadatas") or [[]])[0]
        distances = (raw.get("distances") or [[]])[0]

        hits: list[RetrievedDocument] = []
        for i, doc_id in enumerate(ids):
            similarity = 1.0 - float(distances[i])
            if similarity <= threshold:
                continue
            meta = metadatas[i] if i < len(metadatas) and metadatas[i] else {}
            hits.append(
                RetrievedDocument(
                    id=str(doc_id),
                    title=str(meta.get("title", "Untitled")),
                    content=documents[i] or "",
                    similarity=min(1.0, max(0.0, similarity)),
                )
            )
            if len(hits) >= limit:
                break
        return hits

    async def heartbeat(self) -> int:
        """Document count, used as a liveness probe."""
        return await run_in_threadpool(self._collection.count)


class ContextAssembler:
    """Builds the grounding context for one chat turn."""

    def __init__(
        self,
        embeddings: Embeddings,
        search: VectorSearch,
        *,
        threshold: float = DEFAULT_MATCH_THRESHOLD,
        max_documents: int = DEFAULT_MATCH_COUNT,
    ) -> None:
        self._embeddings = embeddings
        self._search = search
        self.threshold = threshold
        self.max_documents = max_documents

    async def embed(self, text: str) -> list[float]:
        try:
            return await self._embeddings.aembed_query(text)
        except Exception as exc:
            logger.exception("Embedding request failed")
            raise UpstreamError(f"embedding failed: {exc}") from exc

    async def search(
        self, text: str, *, threshold: float, limit: int
    ) -> list[RetrievedDocument]:
        embedding = await self.embed(text)
        try:
            return await self._search.search(embedding, threshold=threshold, limit=limit)
        except Exception as exc:
            logger.exception("Vector search failed")
            raise UpstreamError(f"vector search failed: {exc}") from exc

    async def assemble(self, text: str) -> GroundingContext:
        documents = await self.search(
            text, threshold=self.threshold, limit=self.max_documents
        )
        logger.info(
            "Retrieved %d document(s) above %.2f for query: %s",
            len(documents),
            self.threshold,
            text[:80],
        )
        return GroundingContext(text=format_context(documents), documents=documents)
