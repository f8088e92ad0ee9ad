"""Application configuration and environment-driven settings.

Defines the Settings class based on pydantic-settings to centralize configuration for:
- API keys and model names (chat + embeddings)
- The entity store (PostgreSQL with pgvector)
- Retrieval knobs (top-k, ranking strategy, embedding dimension)
- External geocoding (Nominatim) and routing (OSRM) services
- Optional observability (Langfuse)

A warning is logged if OPENAI_API_KEY is not set when not running in Docker.
"""
import logging
import os
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Strongly-typed application settings loaded from environment variables.

    Uses pydantic-settings to populate fields from a .env file or process env.
    Credentials are read here and handed explicitly to the clients that need them.
    """
    # Required
    OPENAI_API_KEY: str = Field(default="", description="OpenAI API key")

    # Models
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIM: int = 768  # provider vectors are truncated to this length
    GENERATION_TEMPERATURE: float = 0.1
    MAX_OUTPUT_TOKENS: int = 1200

    # Data store
    DATABASE_URL: str = "postgresql+psycopg2://rag_user:rag_pass@db:5432/rag_db"

    # Retrieval
    TOP_K: int = 10
    RANKING_STRATEGY: Literal["delegated", "application"] = "delegated"

    # Geocoding (Nominatim usage policy: max 1 request per second)
    GEOCODER_URL: str = "https://nominatim.openstreetmap.org/search"
    GEOCODER_USER_AGENT: str = "routerag/0.1 (+https://example.com; contact=dev@example.com)"
    GEOCODER_MIN_DELAY_SECONDS: float = 1.0

    # Routing
    ROUTING_URL: str = "http://router.project-osrm.org"
    ROUTING_PROFILE: str = "driving"
    FALLBACK_TRAVEL_MODE: str = "driving"

    HTTP_TIMEOUT_SECONDS: float = 10.0
    LOG_LEVEL: str = "INFO"

    # Observability (optional)
    LANGFUSE_HOST: str = ""
    LANGFUSE_PUBLIC_KEY: str = ""
    LANGFUSE_SECRET_KEY: str = ""

    @property
    def langfuse_enabled(self) -> bool:
        return bool(self.LANGFUSE_HOST and self.LANGFUSE_PUBLIC_KEY and self.LANGFUSE_SECRET_KEY)

    @field_validator("EMBEDDING_DIM", "TOP_K")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be >= 1, got {v}")
        return v

    @field_validator("GEOCODER_MIN_DELAY_SECONDS")
    @classmethod
    def _non_negative_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"GEOCODER_MIN_DELAY_SECONDS must be >= 0, got {v}")
        return v

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


settings = Settings()

# Safety check for local dev (inside API container this must be set)
if os.environ.get("RUNNING_IN_DOCKER", "0") == "0":
    if not settings.OPENAI_API_KEY:
        # Avoid raising to allow local scaffolding before setting .env
        logger.warning("OPENAI_API_KEY not set. Set it in .env before running ingestion or /query.")
