"""Centralized configuration for repo-search using Pydantic Settings."""

from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from repo_search.search.models import EngineConfig


class Settings(BaseSettings):
    """Typed configuration loaded from ``REPO_SEARCH_*`` environment variables.

    Scoring parameters are only type-checked: out-of-range values give
    degenerate rankings, not errors.
    """

    model_config = SettingsConfigDict(
        env_prefix="REPO_SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Ranking
    bm25_k1: float = Field(default=1.5, description="BM25 term frequency saturation")
    bm25_b: float = Field(default=0.75, description="BM25 document length normalization")
    bm25_delta: float = Field(default=0.5, description="BM25+ lower bound added per matching term")

    # Tokenizer
    min_token_length: int = Field(default=2, ge=1, description="Shortest token kept by the analyzer")
    max_token_length: int = Field(default=50, ge=1, description="Longest token kept by the analyzer")

    # Query
    default_limit: int = Field(default=10, ge=1, description="Results returned when no limit is given")

    # Persistence
    storage_backend: Literal["json", "sqlite"] = Field(default="json", description="Snapshot store implementation")
    storage_dir: Path = Field(default=Path(".repo_search"), description="Directory holding persisted snapshots")

    # Logging
    log_level: str = Field(default="info", description="Logging level")
    log_json: bool = Field(default=True, description="Emit structured JSON log lines")

    @model_validator(mode="after")
    def _check_token_window(self) -> "Settings":
        if self.max_token_length < self.min_token_length:
            raise ValueError(
                f"max_token_length ({self.max_token_length}) must be >= min_token_length ({self.min_token_length})"
            )
        return self

    def engine_config(self) -> EngineConfig:
        """Return the engine parameters described by these settings."""
        return EngineConfig(
            k1=self.bm25_k1,
            b=self.bm25_b,
            delta=self.bm25_delta,
            min_token_length=self.min_token_length,
            max_token_length=self.max_token_length,
        )
