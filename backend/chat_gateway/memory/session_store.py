"""MongoDB session and message store.

Two collections::

    chat_sessions  { _id, user_id, title, created_at, updated_at }
    chat_messages  { _id, id, session_id, role, content, created_at }

Messages are an append-only log per session ordered by ``created_at`` with
the Mongo ``_id`` as tie-break. Every session read is filtered by owner in
the query itself, so another caller's session is indistinguishable from a
missing one.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator
from uuid import uuid4

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from chat_gateway.errors import OwnershipError, UpstreamError
from chat_gateway.models.messages import ChatMessage, MessageRole
from chat_gateway.models.sessions import PLACEHOLDER_TITLE, Session

logger = logging.getLogger(__name__)

SESSIONS_COLLECTION = "chat_sessions"
MESSAGES_COLLECTION = "chat_messages"

TITLE_MAX_LENGTH = 60

# Mongo stores datetimes with millisecond precision.
_TICK = timedelta(milliseconds=1)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _derive_title(user_text: str) -> str:
    title = " ".join(user_text.split())
    if len(title) > TITLE_MAX_LENGTH:
        title = title[: TITLE_MAX_LENGTH - 3].rstrip() + "..."
    return title or PLACEHOLDER_TITLE


class SessionStore:
    """Session lifecycle, history reads and turn persistence."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db
        self._sessions = db[SESSIONS_COLLECTION]
        self._messages = db[MESSAGES_COLLECTION]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ensure_indexes(self) -> None:
        await self._sessions.create_index([("user_id", 1), ("updated_at", -1)])
        await self._messages.create_index([("session_id", 1), ("created_at", 1)])
        await self._messages.create_index("id", unique=True)
        logger.info("Session store indexes ensured")

    async def ping(self) -> bool:
        await self._db.command("ping")
        return True

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def get_owned(self, session_id: str, caller_id: str) -> Session:
        """Fetch a session owned by ``caller_id`` or raise ``OwnershipError``."""
        try:
            doc = await self._sessions.find_one({"_id": session_id, "user_id": caller_id})
        except PyMongoError as exc:
            logger.exception("Session lookup failed for %s", session_id)
            raise UpstreamError(f"session lookup failed: {exc}") from exc

        if doc is None:
            logger.info("Session %s not found for caller %s", session_id, caller_id)
            raise OwnershipError()
        return Session.from_document(doc)

    async def load_or_create(self, session_id: str | None, caller_id: str) -> Session:
        """Load an owned session, or create one when no id is given."""
        if session_id:
            return await self.get_owned(session_id, caller_id)

        now = _now()
        session = Session(id=str(uuid4()), user_id=caller_id, created_at=now, updated_at=now)
        try:
            await self._sessions.insert_one(session.to_document())
        except PyMongoError as exc:
            logger.exception("Session creation failed for caller %s", caller_id)
            raise UpstreamError(f"session creation failed: {exc}") from exc

        logger.info("Created session %s for caller %s", session.id, caller_id)
        return session

    async def list_sessions(self, caller_id: str, limit: int = 50) -> list[Session]:
        cursor = (
            self._sessions.find({"user_id": caller_id})
            .sort([("updated_at", -1)])
            .limit(limit)
        )
        try:
            return [Session.from_document(doc) async for doc in cursor]
        except PyMongoError as exc:
            logger.exception("Listing sessions failed for caller %s", caller_id)
            raise UpstreamError(f"session listing failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def recent_history(
        self, session_id: str, limit: int = 10
    ) -> AsyncIterator[ChatMessage]:
        """Yield the newest ``limit`` messages of a session, oldest first.

        Grounding for the prompt only; not an audit log.
        """
        if limit <= 0:
            return
        cursor = (
            self._messages.find({"session_id": session_id})
            .sort([("created_at", -1), ("_id", -1)])
            .limit(limit)
        )
        try:
            newest_first = [doc async for doc in cursor]
        except PyMongoError as exc:
            logger.exception("History read failed for session %s", session_id)
            raise UpstreamError(f"history read failed: {exc}") from exc

        for doc in reversed(newest_first):
            yield ChatMessage.from_document(doc)

    async def get_history(self, session_id: str, caller_id: str) -> list[ChatMessage]:
        """Full message log of an owned session, oldest first."""
        await self.get_owned(session_id, caller_id)
        cursor = self._messages.find({"session_id": session_id}).sort(
            [("created_at", 1), ("_id", 1)]
        )
        try:
            return [ChatMessage.from_document(doc) async for doc in cursor]
        except PyMongoError as exc:
            logger.exception("History read failed for session %s", session_id)
            raise UpstreamError(f"history read failed: {exc}") from exc

    async def append_turn(
        self, session_id: str, user_text: str, assistant_text: str
    ) -> list[ChatMessage]:
        """Append a user/assistant pair and touch the session.

        Best effort: a failure is raised as ``UpstreamError`` for the caller
        to report; nothing already written is rolled back.
        """
        user_at = _now()
        messages = [
            ChatMessage(
                id=str(uuid4()),
                session_id=session_id,
                role=MessageRole.USER,
                content=user_text,
                created_at=user_at,
            ),
            ChatMessage(
                id=str(uuid4()),
                session_id=session_id,
                role=MessageRole.ASSISTANT,
                content=assistant_text,
                created_at=user_at + _TICK,
            ),
        ]
        docs = [m.model_dump(mode="python") for m in messages]
        for doc in docs:
            doc["role"] = doc["role"].value

        try:
            await self._messages.insert_many(docs, ordered=True)
            await self._sessions.update_one(
                {"_id": session_id},
                {"$set": {"updated_at": messages[-1].created_at}},
            )
            await self._sessions.update_one(
                {"_id": session_id, "title": PLACEHOLDER_TITLE},
                {"$set": {"title": _derive_title(user_text)}},
            )
        except PyMongoError as exc:
            logger.exception("Persisting turn failed for session %s", session_id)
            raise UpstreamError(f"turn persistence failed: {exc}") from exc

        logger.debug("Persisted turn for session %s", session_id)
        return messages

    # ------------------------------------------------------------------
    # Read-only aggregates (used by lookup directives)
    # ------------------------------------------------------------------

    async def recent_sessions(self, limit: int = 10) -> list[dict[str, Any]]:
        cursor = self._sessions.find({}).sort([("created_at", -1)]).limit(limit)
        return [doc async for doc in cursor]

    async def recent_messages(self, limit: int = 20) -> list[dict[str, Any]]:
        cursor = (
            self._messages.find({})
            .sort([("created_at", -1), ("_id", -1)])
            .limit(limit)
        )
        return [doc async for doc in cursor]

    async def distinct_callers(self, scan: int = 50) -> list[str]:
        """Distinct owners among the ``scan`` most recently created sessions."""
        cursor = self._sessions.find({}).sort([("created_at", -1)]).limit(scan)
        seen: dict[str, None] = {}
        async for doc in cursor:
            seen.setdefault(doc["user_id"], None)
        return list(seen)

    async def counts(self) -> dict[str, int]:
        return {
            "sessions": await self._sessions.count_documents({}),
            "messages": await self._messages.count_documents({}),
        }
