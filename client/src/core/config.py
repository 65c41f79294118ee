"""Client configuration using pydantic-settings."""
from functools import lru_cache
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from core.cache import MIN_MAX_SIZE


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Remote API
    api_base_url: str = "http://localhost:3000/api"

    # Durable session storage (JSON file holding access/refresh tokens)
    token_storage_path: str = ".devconnect/session.json"

    # Client-side cache for unfiltered first pages
    cache_max_size: int = 100
    cache_ttl_seconds: float = 300.0

    # Listings
    default_page_size: int = 10
    page_size_options: Annotated[list[int], NoDecode] = [10, 20, 30, 50, 100]
    search_debounce_seconds: float = 0.5

    # Comments
    comments_per_page: int = 10

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Endpoints are joined with a leading slash."""
        return v.rstrip("/")

    @field_validator("cache_max_size")
    @classmethod
    def check_cache_max_size(cls, v: int) -> int:
        """Reject capacities the cache cannot keep bounded."""
        if v < MIN_MAX_SIZE:
            raise ValueError(f"cache_max_size must be >= {MIN_MAX_SIZE}")
        return v

    @field_validator("page_size_options", mode="before")
    @classmethod
    def parse_page_size_options(cls, v: str | list[int]) -> list[int]:
        """Parse page size options from a comma-separated string or a list."""
        if isinstance(v, str):
            return [int(option.strip()) for option in v.split(",") if option.strip()]
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
