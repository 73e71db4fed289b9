"""
Centralized settings management using pydantic-settings.

All environment variables and configuration values are defined here.
Use get_settings() to access the singleton settings instance.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Required environment variables:
        - SUPABASE_URL: Supabase project URL
        - SUPABASE_SERVICE_KEY: Supabase service role key

    Optional environment variables:
        - OPENAI_API_KEY: Enables LLM term extraction, OpenAI vision and embeddings
        - ANTHROPIC_API_KEY: Enables the Claude vision analyzer
        - GOOGLE_VISION_API_KEY: Enables the Google Cloud Vision analyzer
        - ENVIRONMENT: Environment name (development, staging, production)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in ("production", "prod")

    # ==========================================================================
    # Server Configuration
    # ==========================================================================
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    workers: int = Field(default=4, ge=1, description="Uvicorn worker processes outside development")

    # CORS Configuration
    cors_origins: List[str] = Field(
        default=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        description="Allowed CORS origins"
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # ==========================================================================
    # Supabase Configuration
    # ==========================================================================
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_service_key: str = Field(..., description="Supabase service role key")
    listings_table: str = Field(default="listings", description="Table holding marketplace listings")
    embedding_match_rpc: str = Field(
        default="match_listings_by_mood",
        description="Postgres function matching listing embeddings against a query vector"
    )

    # ==========================================================================
    # OpenAI (term extraction, vision, embeddings)
    # ==========================================================================
    openai_api_key: str = Field(default="", description="OpenAI API key")
    term_extractor_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model for turning free-text queries into search terms"
    )
    term_extractor_enabled: bool = Field(
        default=True,
        description="Enable LLM term extraction (falls back to local extraction if disabled or fails)"
    )
    term_extractor_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for the term extraction call (seconds)"
    )
    openai_vision_model: str = Field(default="gpt-4o", description="OpenAI vision model")
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Embedding model (must match the one used when listings were embedded)"
    )
    embedding_match_threshold: float = Field(
        default=0.7,
        description="Minimum cosine similarity for embedding matches"
    )
    semantic_fallback_enabled: bool = Field(
        default=True,
        description="Top up text search with embedding matches when term matching returns too few listings"
    )

    # ==========================================================================
    # Other Vision Providers
    # ==========================================================================
    anthropic_api_key: str = Field(default="", description="Anthropic API key for Claude vision")
    anthropic_vision_model: str = Field(
        default="claude-3-5-sonnet-20241022",
        description="Claude model used for image analysis"
    )
    google_vision_api_key: str = Field(default="", description="Google Cloud Vision API key")
    vision_timeout_seconds: float = Field(
        default=30.0,
        description="Per-analyzer timeout for image analysis calls (seconds)"
    )

    # ==========================================================================
    # Search Tuning
    # ==========================================================================
    search_default_limit: int = Field(default=24, ge=1, description="Default number of results")
    search_max_limit: int = Field(default=100, ge=1, description="Largest limit a caller may request")
    search_overfetch_factor: int = Field(
        default=3,
        ge=1,
        description="Candidates fetched per requested result, to absorb filter attrition"
    )
    search_candidate_cap: int = Field(
        default=500,
        ge=1,
        description="Upper bound on candidate listings fetched for one search"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure only one instance is created.
    Settings are loaded from environment variables and .env file.

    Returns:
        Settings: The application settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    # Try to find .env file in project root
    env_file = Path(__file__).parent.parent.parent / ".env"
    if env_file.exists():
        os.environ.setdefault("ENV_FILE", str(env_file))

    return Settings(_env_file=env_file if env_file.exists() else None)


def get_settings_for_testing(**overrides) -> Settings:
    """
    Create a settings instance for testing with optional overrides.

    This bypasses the cache to allow different settings in tests.

    Args:
        **overrides: Setting values to override

    Returns:
        Settings: A new settings instance with overrides applied
    """
    test_defaults = {
        "supabase_url": "https://test.supabase.co",
        "supabase_service_key": "test-key",
        "environment": "testing",
        "debug": True,
        "openai_api_key": "",
        "anthropic_api_key": "",
        "google_vision_api_key": "",
    }
    test_defaults.update(overrides)

    return Settings(_env_file=None, **test_defaults)
