"""Session models for conversation management."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

PLACEHOLDER_TITLE = "New Chat"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Session(BaseModel):
    """Conversation session owned by a single caller."""

    id: str
    user_id: str
    title: str = PLACEHOLDER_TITLE
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Session":
        return cls(
            id=doc["_id"],
            user_id=doc["user_id"],
            title=doc.get("title") or PLACEHOLDER_TITLE,
            created_at=doc["created_at"],
            updated_at=doc.get("updated_at", doc["created_at"]),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class SessionSummary(BaseModel):
    """Summary of a session for list views."""

    session_id: str
    title: str
    updated_at: datetime


class SessionListResponse(BaseModel):
    """Response for listing sessions."""

    sessions: list[SessionSummary]
    total: int
