"""Request and response bodies for the HTTP surface.

Request fields are optional at the schema level so that missing values are
reported by the handlers with the gateway's own 400 messages instead of
FastAPI's generic 422.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from chat_gateway.models.documents import RetrievedDocument


class EmbedRequest(BaseModel):
    text: Optional[str] = None


class EmbedResponse(BaseModel):
    embedding: list[float]


class SearchRequest(BaseModel):
    query: Optional[str] = None
    limit: Optional[int] = Field(default=None, gt=0, le=100)
    threshold: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class SearchResponse(BaseModel):
    results: list[RetrievedDocument]


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: Any = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response: str
    session_id: str = Field(serialization_alias="sessionId")


class HealthResponse(BaseModel):
    status: str


class ApiInfoResponse(BaseModel):
    message: str
    version: str
    endpoints: dict[str, str]


class DebugResponse(BaseModel):
    status: str
    timestamp: str
    origin: str
    method: str
    pathname: str
    cors_headers: dict[str, str] = Field(serialization_alias="corsHeaders")
