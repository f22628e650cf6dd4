"""Configuration management using Pydantic Settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # LLM Configuration (OpenAI-compatible endpoint used for type refinement)
    llm_enabled: bool = Field(
        default=False,
        description="Refine ambiguous relationship types with the LLM classifier"
    )
    llm_base_url: str = "http://localhost:11434/v1"
    llm_model: str = "qwen3:8b"
    llm_api_key: str = "ollama"
    llm_max_concurrent: int = 4
    llm_timeout: float = 60.0

    # Neo4j Configuration
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: str = "loreweave_password"
    neo4j_database: str = "neo4j"

    # Ephemeral cache (progress records, rate limits, cooldowns)
    redis_url: str | None = Field(
        default=None,
        description="Redis URL for progress records; in-process cache when unset"
    )

    # Feature extraction
    feature_cache_ttl: int = Field(
        default=300,
        description="Seconds a per-pair feature value stays cached"
    )
    timeline_event_cap: int = 10
    shared_location_cap: int = 5
    mention_cap: int = 20

    # Prediction
    min_confidence: float = Field(
        default=40.0,
        description="Suggestions below this confidence are discarded"
    )
    auto_accept_threshold: float = Field(
        default=95.0,
        description="Suggestions at or above this confidence skip review"
    )
    max_graph_entities: int = Field(
        default=100,
        description="Most-important entities considered by graph-wide prediction"
    )
    max_entity_candidates: int = 50

    # Learning
    learning_rate: float = 0.1
    learning_min_samples: int = 5
    learning_cooldown: int = Field(
        default=3600,
        description="Seconds between automatic weight updates per graph"
    )
    high_confidence_cutoff: float = 70.0

    # Background generation
    generation_batch_size: int = 50
    generation_batch_pause: float = Field(
        default=0.1,
        description="Seconds to sleep between batches of entity pairs"
    )
    generation_progress_ttl: int = 3600
    generation_rate_limit: int = Field(
        default=5,
        description="Generation jobs allowed per graph per rolling hour"
    )
    generation_rate_window: int = 3600
    refresh_stagger: float = Field(
        default=300.0,
        description="Seconds between graphs during a full refresh"
    )
    refresh_interval: float = Field(
        default=86400.0,
        description="Seconds between periodic refreshes of every graph"
    )
    scheduler_workers: int = 1

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False


def get_test_settings() -> Settings:
    """Get test environment settings."""
    return Settings(
        neo4j_database="neo4j_test",
        redis_url=None,
        llm_enabled=False,
        generation_batch_pause=0.0,
        refresh_stagger=0.0,
    )


# Global settings instance
settings = Settings()
