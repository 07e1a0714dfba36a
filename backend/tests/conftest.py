"""Shared test fixtures for the chat gateway.

External collaborators are replaced by in-memory stand-ins: a Motor-like
database, a Chroma-like collection, a scripted chat model and a static
identity verifier.
"""

import copy
import itertools
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from langchain_core.embeddings import DeterministicFakeEmbedding
from langchain_core.messages import AIMessage
from pymongo.errors import PyMongoError

from chat_gateway.auth.verifier import extract_bearer
from chat_gateway.config import Settings
from chat_gateway.dependencies import Services, assemble_services
from chat_gateway.main import create_app
from chat_gateway.memory.retrieval import VectorSearch
from chat_gateway.memory.session_store import SessionStore

ALICE = {"Authorization": "Bearer token-alice"}
BOB = {"Authorization": "Bearer token-bob"}


# ----------------------------------------------------------------------
# Motor stand-in
# ----------------------------------------------------------------------


class FakeCursor:
    def __init__(self, docs: list[dict[str, Any]], fail: bool = False) -> None:
        self._docs = docs
        self._fail = fail

    def sort(self, key, direction=None) -> "FakeCursor":
        keys = key if isinstance(key, list) else [(key, direction or 1)]
        for field, order in reversed(keys):
            self._docs.sort(key=lambda doc: doc.get(field), reverse=order < 0)
        return self

    def limit(self, n: int) -> "FakeCursor":
        if n:
            self._docs = self._docs[:n]
        return self

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        if self._fail:
            raise PyMongoError("read failed")
        for doc in self._docs:
            yield copy.deepcopy(doc)


class FakeCollection:
    def __init__(self) -> None:
        self.docs: list[dict[str, Any]] = []
        self.fail_writes = False
        self.fail_reads = False
        self._ids = itertools.count(1)

    @staticmethod
    def _matches(doc: dict[str, Any], flt: dict[str, Any] | None) -> bool:
        return all(doc.get(k) == v for k, v in (flt or {}).items())

    def _check_write(self) -> None:
        if self.fail_writes:
            raise PyMongoError("write failed")

    def _check_read(self) -> None:
        if self.fail_reads:
            raise PyMongoError("read failed")

    async def insert_one(self, doc: dict[str, Any]) -> None:
        self._check_write()
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", next(self._ids))
        self.docs.append(doc)

    async def insert_many(self, docs: list[dict[str, Any]], ordered: bool = True) -> None:
        for doc in docs:
            await self.insert_one(doc)

    async def find_one(self, flt: dict[str, Any]) -> dict[str, Any] | None:
        self._check_read()
        for doc in self.docs:
            if self._matches(doc, flt):
                return copy.deepcopy(doc)
        return None

    def find(self, flt: dict[str, Any] | None = None) -> FakeCursor:
        return FakeCursor(
            [d for d in self.docs if self._matches(d, flt)], fail=self.fail_reads
        )

    async def update_one(self, flt: dict[str, Any], update: dict[str, Any]) -> None:
        self._check_write()
        for doc in self.docs:
            if self._matches(doc, flt):
                doc.update(update.get("$set", {}))
                return

    async def count_documents(self, flt: dict[str, Any]) -> int:
        self._check_read()
        return sum(1 for d in self.docs if self._matches(d, flt))

    async def create_index(self, *args: Any, **kwargs: Any) -> str:
        return "index"


class FakeDatabase:
    def __init__(self) -> None:
        self._collections: dict[str, FakeCollection] = {}
        self.healthy = True

    def __getitem__(self, name: str) -> FakeCollection:
        return self._collections.setdefault(name, FakeCollection())

    async def command(self, name: str) -> dict[str, Any]:
        if not self.healthy:
            raise PyMongoError("server selection timeout")
        return {"ok": 1}


# ----------------------------------------------------------------------
# Chroma stand-in
# ----------------------------------------------------------------------


class FakeChromaCollection:
    """Returns preset hits in the given order, like a nearest-first index."""

    def __init__(self, hits: list[tuple[str, str, str, float]]) -> None:
        self.hits = hits
        self.queries: list[dict[str, Any]] = []
        self.fail = False

    def query(self, query_embeddings, n_results, include):
        self.queries.append({"embedding": query_embeddings[0], "n_results": n_results})
        if self.fail:
            raise RuntimeError("chroma unavailable")
        hits = self.hits[:n_results]
        return {
            "ids": [[h[0] for h in hits]],
            "documents": [[h[2] for h in hits]],
            "metadatas": [[{"title": h[1]} for h in hits]],
            "distances": [[h[3] for h in hits]],
        }

    def count(self) -> int:
        if self.fail:
            raise RuntimeError("chroma unavailable")
        return len(self.hits)


# ----------------------------------------------------------------------
# Model and identity stand-ins
# ----------------------------------------------------------------------


class ScriptedChatModel:
    """Replies from a script; the last reply repeats once the script runs out."""

    def __init__(self, *replies: Any) -> None:
        self.replies = list(replies)
        self.calls: list[list[Any]] = []

    async def ainvoke(self, messages, *args: Any, **kwargs: Any) -> AIMessage:
        self.calls.append(list(messages))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, AIMessage):
            return reply
        return AIMessage(content=reply)


class StaticVerifier:
    def __init__(self, tokens: dict[str, str]) -> None:
        self.tokens = tokens

    async def verify(self, authorization: str | None) -> str | None:
        token = extract_bearer(authorization)
        return self.tokens.get(token) if token else None


# ----------------------------------------------------------------------
# Fixtures
# ----------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        google_api_key="test-key",
        allowed_origins="https://app.example.com,https://admin.example.com",
        rate_limit_max_requests=10,
        rate_limit_window_seconds=60,
        fail_turn_on_persist_error=False,
    )


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def store(fake_db: FakeDatabase) -> SessionStore:
    return SessionStore(fake_db)


@pytest.fixture
def chroma() -> FakeChromaCollection:
    return FakeChromaCollection(
        [
            ("doc-1", "Vector Embeddings Guide", "Embeddings capture meaning.", 0.10),
            ("doc-2", "Getting Started", "The store is a document database.", 0.25),
            ("doc-3", "Unrelated", "Something else entirely.", 0.60),
        ]
    )


@pytest.fixture
def embeddings() -> DeterministicFakeEmbedding:
    return DeterministicFakeEmbedding(size=16)


@pytest.fixture
def llm() -> ScriptedChatModel:
    return ScriptedChatModel("Hello from the model")


@pytest.fixture
def services(settings, store, chroma, embeddings, llm) -> Services:
    return assemble_services(
        settings,
        store=store,
        embeddings=embeddings,
        vector_search=VectorSearch(chroma),
        llm=llm,
        verifier=StaticVerifier({"token-alice": "alice", "token-bob": "bob"}),
    )


@pytest_asyncio.fixture
async def client(settings, services) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    app = create_app(settings, services)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def ticking_clock(monkeypatch: pytest.MonkeyPatch):
    """Store timestamps advance one second per call."""
    from datetime import datetime, timedelta, timezone

    from chat_gateway.memory import session_store

    ticks = itertools.count()
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    monkeypatch.setattr(
        session_store, "_now", lambda: start + timedelta(seconds=next(ticks))
    )
    return start
