import os
from dataclasses import dataclass
from functools import lru_cache

import httpx
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Supabase
    supabase_url: str | None = os.getenv("SUPABASE_URL")
    supabase_anon_key: str | None = os.getenv("SUPABASE_ANON_KEY")
    records_table: str = os.getenv("RECORDS_TABLE", "medications")
    http_timeout: float = float(os.getenv("HTTP_TIMEOUT", "10.0"))

    # Cache
    cache_stale_time: float = float(os.getenv("CACHE_STALE_TIME", "300"))  # 5 minutes default
    query_retry: int = int(os.getenv("QUERY_RETRY", "3"))
    query_retry_delay: float = float(os.getenv("QUERY_RETRY_DELAY", "1.0"))
    query_retry_max_delay: float = float(os.getenv("QUERY_RETRY_MAX_DELAY", "30.0"))

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "true").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    def require(self, name: str) -> str:
        """Return a required Supabase setting or raise if it is not configured.

        Args:
            name: Attribute name, e.g. "supabase_url"

        Raises:
            ValueError: If the setting is empty
        """
        value = getattr(self, name)
        if not value:
            raise ValueError(f"{name.upper()} is not defined in your environment variables.")
        return value

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if self.cache_stale_time < 0:
            raise ValueError("CACHE_STALE_TIME must be >= 0")

        if self.query_retry < 0:
            raise ValueError("QUERY_RETRY must be >= 0")

        if self.query_retry_delay < 0 or self.query_retry_max_delay < 0:
            raise ValueError("QUERY_RETRY_DELAY and QUERY_RETRY_MAX_DELAY must be >= 0")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_http_client() -> httpx.AsyncClient:
    """Create an HTTP client preconfigured for the Supabase project."""
    anon_key = settings.require("supabase_anon_key")
    return httpx.AsyncClient(
        base_url=settings.require("supabase_url").rstrip("/"),
        headers={"apikey": anon_key, "Authorization": f"Bearer {anon_key}"},
        timeout=settings.http_timeout,
    )
