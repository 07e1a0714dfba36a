"""Turn coordinator: validate, load session, assemble context, complete, persist."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from chat_gateway.agent.graph import CompletionLoop
from chat_gateway.errors import UpstreamError, ValidationError
from chat_gateway.memory.retrieval import ContextAssembler
from chat_gateway.memory.session_store import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGE_LENGTH = 1000

# Case-insensitive substrings rejected outright.
BLOCKED_SUBSTRINGS = ("<script", "javascript:")


@dataclass(frozen=True)
class TurnResult:
    response: str
    session_id: str
    persisted: bool
    directive: str | None = None


def validate_message(message: Any, max_length: int = DEFAULT_MAX_MESSAGE_LENGTH) -> str:
    """Return the message if acceptable, else raise ``ValidationError``."""
    if not isinstance(message, str) or not message.strip():
        raise ValidationError("Invalid message")
    if len(message) > max_length:
        raise ValidationError("Message too long")
    lowered = message.lower()
    if any(blocked in lowered for blocked in BLOCKED_SUBSTRINGS):
        raise ValidationError("Invalid content")
    return message


class TurnCoordinator:
    """Runs one chat turn end to end.

    The user text is persisted together with the model's *first* reply,
    while the caller receives the final (possibly lookup-enhanced) text.
    """

    def __init__(
        self,
        store: SessionStore,
        assembler: ContextAssembler,
        loop: CompletionLoop,
        *,
        max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
        history_limit: int = 10,
        fail_on_persist_error: bool = False,
    ) -> None:
        self._store = store
        self._assembler = assembler
        self._loop = loop
        self.max_message_length = max_message_length
        self.history_limit = history_limit
        self.fail_on_persist_error = fail_on_persist_error

    async def run_turn(
        self,
        caller_id: str,
        message: Any,
        session_id: str | None = None,
    ) -> TurnResult:
        text = validate_message(message, self.max_message_length)

        logger.info(
            "Chat turn for caller %s (session=%s, %d chars)",
            caller_id,
            session_id or "new",
            len(text),
        )

        session = await self._store.load_or_create(session_id, caller_id)
        history = [
            msg async for msg in self._store.recent_history(session.id, self.history_limit)
        ]
        context = await self._assembler.assemble(text)
        if context.is_empty:
            logger.info("No grounding documents for session %s", session.id)

        result = await self._loop.run(
            session_id=session.id,
            user_text=text,
            context=context.text,
            history=history,
        )

        persisted = await self._persist(session.id, text, result.first_text)

        return TurnResult(
            response=result.final_text,
            session_id=session.id,
            persisted=persisted,
            directive=result.directive,
        )

    async def _persist(self, session_id: str, user_text: str, assistant_text: str) -> bool:
        try:
            await self._store.append_turn(session_id, user_text, assistant_text)
        except UpstreamError:
            if self.fail_on_persist_error:
                raise
            logger.error(
                "Turn for session %s returned to caller but not persisted", session_id
            )
            return False
        return True
