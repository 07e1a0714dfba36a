"""Retrieval result models."""

from pydantic import BaseModel, Field


class RetrievedDocument(BaseModel):
    """A vector search hit. Produced per turn, never persisted."""

    id: str
    title: str
    content: str
    similarity: float = Field(ge=0.0, le=1.0)


class GroundingContext(BaseModel):
    """Context text injected into the system directive plus its sources."""

    text: str = ""
    documents: list[RetrievedDocument] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.documents
