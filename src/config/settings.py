"""
Application settings using pydantic-settings

Loads environment variables from .env.local file
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # MongoDB Configuration
    mongodb_uri: str = Field(
        ...,
        alias="MONGODB_URI",
        description="MongoDB connection URI",
    )
    mongodb_database: str = Field(
        default="payroll_agents",
        alias="MONGODB_DATABASE",
        description="MongoDB database name",
    )
    mongodb_max_pool_size: int = Field(
        default=50,
        alias="MONGODB_MAX_POOL_SIZE",
        description="Maximum connection pool size",
    )
    mongodb_min_pool_size: int = Field(
        default=10,
        alias="MONGODB_MIN_POOL_SIZE",
        description="Minimum connection pool size",
    )
    mongodb_timeout_ms: int = Field(
        default=5000,
        alias="MONGODB_TIMEOUT_MS",
        description="Server selection timeout; an unreachable cluster fails a store call after this long",
    )
    conversations_collection: str = Field(
        default="ai_conversations",
        alias="CONVERSATIONS_COLLECTION",
        description="Collection holding persisted agent conversations",
    )

    # Environment
    env: str = Field(
        default="development",
        alias="ENV",
        description="Environment (development, staging, production)",
    )

    # Google Gemini API Configuration
    google_api_key: str = Field(
        ...,
        alias="GOOGLE_API_KEY",
        description="Google API key for Gemini generation and embeddings",
    )
    google_model: str = Field(
        default="gemini-2.5-flash",
        alias="GOOGLE_MODEL",
        description="Google Gemini model name for agents, analysis and synthesis",
    )
    llm_max_response_tokens: int = Field(
        default=2000,
        alias="LLM_MAX_RESPONSE_TOKENS",
        description="Maximum tokens for a single agent answer",
    )
    llm_timeout_seconds: float = Field(
        default=30.0,
        alias="LLM_TIMEOUT_SECONDS",
        description="Upper bound on a single model call before it counts as failed",
    )
    analysis_temperature: float = Field(
        default=0.1,
        alias="ANALYSIS_TEMPERATURE",
        description="Temperature for the relevance analysis call",
    )
    synthesis_temperature: float = Field(
        default=0.2,
        alias="SYNTHESIS_TEMPERATURE",
        description="Temperature for multi-agent answer synthesis",
    )

    # Routing policy
    relevance_cutoff: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        alias="RELEVANCE_CUTOFF",
        description="Minimum normalised relevance score for an agent to be invoked",
    )
    max_fanout: int = Field(
        default=3,
        ge=1,
        alias="MAX_FANOUT",
        description="Maximum number of agents invoked concurrently for one query",
    )
    default_agent: str = Field(
        default="reasoning",
        alias="DEFAULT_AGENT",
        description="Agent used when analysis is unavailable or nothing scores",
    )

    # Knowledge base retrieval
    enable_knowledge_base: bool = Field(
        default=True,
        alias="ENABLE_KNOWLEDGE_BASE",
        description="Enrich agent prompts with knowledge base snippets",
    )
    embedding_model: str = Field(
        default="gemini-embedding-001",
        alias="EMBEDDING_MODEL",
        description="Google Gemini embedding model name",
    )
    knowledge_collection: str = Field(
        default="knowledge_base",
        alias="KNOWLEDGE_COLLECTION",
        description="Collection holding embedded knowledge documents",
    )
    knowledge_vector_index_name: str = Field(
        default="vector_index_knowledge",
        alias="KNOWLEDGE_VECTOR_INDEX_NAME",
        description="MongoDB Atlas Vector Search index name for knowledge base",
    )
    knowledge_min_score: float = Field(
        default=0.7,
        alias="KNOWLEDGE_MIN_SCORE",
        description="Minimum similarity score for a knowledge snippet",
    )
    knowledge_match_count: int = Field(
        default=5,
        alias="KNOWLEDGE_MATCH_COUNT",
        description="Maximum number of knowledge snippets per query",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    # CORS Origins
    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://localhost:5000",
        alias="CORS_ORIGINS",
        description="Comma-separated allowed CORS origins",
    )

    # API Server Configuration
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")

    model_config = SettingsConfigDict(
        env_file=".env.local",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins(self) -> List[str]:
        """Allowed CORS origins as a list"""
        return [origin.strip() for origin in self.cors_origins_raw.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings

    Returns:
        Settings: Application settings instance
    """
    return Settings()
