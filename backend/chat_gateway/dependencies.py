"""Service container and dependency injection providers for FastAPI."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from fastapi import Depends, Request

from chat_gateway.agent.coordinator import TurnCoordinator
from chat_gateway.agent.directives import LookupRegistry, lookup_tools
from chat_gateway.agent.graph import CompletionLoop
from chat_gateway.auth.verifier import IdentityVerifier
from chat_gateway.config import Settings
from chat_gateway.errors import AuthError
from chat_gateway.memory.retrieval import ContextAssembler, VectorSearch
from chat_gateway.memory.session_store import SessionStore
from chat_gateway.personality.loader import load_persona

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a request needs, built once per application."""

    settings: Settings
    store: SessionStore
    assembler: ContextAssembler
    vector_search: VectorSearch
    loop: CompletionLoop
    coordinator: TurnCoordinator
    verifier: Any
    closers: list[Callable[[], Awaitable[None] | None]] = field(default_factory=list)

    async def close(self) -> None:
        for close in self.closers:
            result = close()
            if result is not None:
                await result


def assemble_services(
    settings: Settings,
    *,
    store: SessionStore,
    embeddings: Any,
    vector_search: VectorSearch,
    llm: Any,
    verifier: Any,
) -> Services:
    """Wire components from already-constructed collaborators."""
    assembler = ContextAssembler(
        embeddings,
        vector_search,
        threshold=settings.context_match_threshold,
        max_documents=settings.context_match_count,
    )
    loop = CompletionLoop(
        llm,
        LookupRegistry(store),
        persona=load_persona(settings.persona_file or None),
    )
    coordinator = TurnCoordinator(
        store,
        assembler,
        loop,
        max_message_length=settings.max_message_length,
        history_limit=settings.history_limit,
        fail_on_persist_error=settings.fail_turn_on_persist_error,
    )
    return Services(
        settings=settings,
        store=store,
        assembler=assembler,
        vector_search=vector_search,
        loop=loop,
        coordinator=coordinator,
        verifier=verifier,
    )


async def build_services(settings: Settings) -> Services:
    """Connect to MongoDB, ChromaDB, Google AI and the identity provider."""
    import chromadb
    from langchain_google_genai import ChatGoogleGenerativeAI, GoogleGenerativeAIEmbeddings
    from motor.motor_asyncio import AsyncIOMotorClient

    if not settings.google_api_key:
        raise RuntimeError("GOOGLE_API_KEY is not configured")

    # 1) MongoDB -------------------------------------------------
    logger.info("Connecting to MongoDB at %s", settings.mongodb_uri)
    mongo_client: AsyncIOMotorClient = AsyncIOMotorClient(
        settings.mongodb_uri,
        serverSelectionTimeoutMS=5_000,
    )
    store = SessionStore(mongo_client[settings.mongodb_database])
    await store.ping()
    await store.ensure_indexes()
    logger.info("MongoDB connection established")

    # 2) ChromaDB ------------------------------------------------
    logger.info(
        "Connecting to ChromaDB at %s:%s",
        settings.chromadb_host,
        settings.chromadb_port,
    )
    chroma_client = chromadb.HttpClient(
        host=settings.chromadb_host,
        port=settings.chromadb_port,
    )
    chroma_client.heartbeat()
    collection = chroma_client.get_or_create_collection(
        name=settings.chromadb_collection,
        metadata={"hnsw:space": "cosine"},
    )
    logger.info("ChromaDB collection ready: %s", settings.chromadb_collection)

    # 3) Google models -------------------------------------------
    embeddings = GoogleGenerativeAIEmbeddings(
        model=settings.embedding_model,
        google_api_key=settings.google_api_key,
    )
    llm: Any = ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        google_api_key=settings.google_api_key,
        temperature=settings.completion_temperature,
        max_output_tokens=settings.completion_max_tokens,
    )
    if settings.offer_lookup_tools:
        llm = llm.bind_tools(lookup_tools())
    logger.info(
        "Google models loaded: chat=%s embedding=%s",
        settings.gemini_model,
        settings.embedding_model,
    )

    # 4) Identity provider ---------------------------------------
    verifier = IdentityVerifier(
        settings.identity_url,
        settings.identity_api_key,
        timeout=settings.identity_timeout,
    )

    services = assemble_services(
        settings,
        store=store,
        embeddings=embeddings,
        vector_search=VectorSearch(collection),
        llm=llm,
        verifier=verifier,
    )
    services.closers.extend([verifier.close, mongo_client.close])
    return services


# ----------------------------------------------------------------------
# Request-scoped providers
# ----------------------------------------------------------------------


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialised")
    return services


async def get_caller_id(
    request: Request,
    services: Services = Depends(get_services),
) -> str | None:
    """Caller identity from the bearer credential, or ``None``."""
    return await services.verifier.verify(request.headers.get("authorization"))


async def require_caller(caller_id: str | None = Depends(get_caller_id)) -> str:
    if caller_id is None:
        raise AuthError()
    return caller_id
