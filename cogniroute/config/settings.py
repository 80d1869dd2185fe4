"""
Settings - Application configuration using Pydantic Settings.

Loads from environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PERSPECTIVES = [
    "analytical_perspective",
    "creative_perspective",
    "skeptical_perspective",
    "practical_perspective",
    "ethical_perspective",
]


class Settings(BaseSettings):
    """Application settings."""

    # Semantic cache
    cache_max_size: int = Field(default=10000, ge=1)
    cache_default_ttl_ms: int = Field(default=24 * 60 * 60 * 1000, gt=0)
    cache_similarity_threshold: float = Field(default=0.85, ge=-1.0, le=1.0)
    # Approximation of what a hit saves relative to the original computation
    cache_cost_savings_ratio: float = Field(default=0.41, ge=0.0, le=1.0)
    cache_sweep_interval_seconds: float = Field(default=3600.0, gt=0)

    # Embeddings: "hash" (deterministic, offline) or "sentence-transformers"
    embedding_provider: str = "hash"
    embedding_model: str = "all-MiniLM-L6-v2"
    embedding_dimension: int = Field(default=384, ge=1)

    # Reasoning tree
    reasoning_max_depth: int = Field(default=3, ge=1)
    reasoning_pruning_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    reasoning_children_per_node: int = Field(default=2, ge=1, le=3)
    reasoning_depth_decay: float = Field(default=0.1, ge=0.0, lt=1.0)
    reasoning_perspectives: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PERSPECTIVES)
    )

    # Orchestration budgets
    orchestration_timeout_seconds: float = Field(default=120.0, gt=0)
    backend_timeout_seconds: float = Field(default=30.0, gt=0)

    # LLM providers
    llm_provider: str = "ollama"
    llm_temperature: float = 0.2
    llm_max_retries: int = Field(default=3, ge=1)

    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2"

    openai_base_url: str = "https://api.openai.com/v1"
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"

    deepseek_base_url: str = "https://api.deepseek.com/v1"
    deepseek_api_key: str | None = None
    deepseek_model: str = "deepseek-chat"

    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.0-flash"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
