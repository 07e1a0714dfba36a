"""Application configuration using pydantic-settings."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "RAG Chat Gateway"
    app_version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "info"

    # Google AI (completion + embedding service)
    google_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    embedding_model: str = "models/gemini-embedding-001"
    completion_max_tokens: int = 4000
    completion_temperature: float = 0.7
    offer_lookup_tools: bool = True
    persona_file: str = ""

    # Identity provider
    identity_url: str = "http://localhost:54321"
    identity_api_key: str = ""
    identity_timeout: float = 5.0

    # MongoDB
    mongodb_uri: str = "mongodb://mongodb:27017"
    mongodb_database: str = "rag_chat"

    # ChromaDB
    chromadb_host: str = "chromadb"
    chromadb_port: int = 8000
    chromadb_collection: str = "documents"

    # CORS
    allowed_origins: str = "http://localhost:3000"

    # Admission
    rate_limit_window_seconds: float = 60.0
    rate_limit_max_requests: int = 10
    rate_limit_unknown_callers: Literal["synthetic", "fingerprint"] = "synthetic"

    # Chat turns
    max_message_length: int = 1000
    history_limit: int = 10
    context_match_threshold: float = 0.7
    context_match_count: int = 5
    fail_turn_on_persist_error: bool = False

    # /search defaults
    search_default_limit: int = 10
    search_default_threshold: float = 0.5

    @property
    def allowed_origin_list(self) -> list[str]:
        origins = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
        return origins or ["http://localhost:3000"]


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency for injecting settings."""
    return settings
