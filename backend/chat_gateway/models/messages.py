"""Message models for persisted chat history."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel


class MessageRole(str, Enum):
    """Message sender role."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ChatMessage(BaseModel):
    """Persisted chat message. Immutable once written."""

    id: str
    session_id: str
    role: MessageRole
    content: str
    created_at: datetime

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "ChatMessage":
        return cls(
            id=doc["id"],
            session_id=doc["session_id"],
            role=MessageRole(doc["role"]),
            content=doc["content"],
            created_at=doc["created_at"],
        )


class SessionHistoryResponse(BaseModel):
    """Messages of one session, oldest first."""

    session_id: str
    messages: list[ChatMessage]
