"""Configuration management for the feed relay service."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from feedrelay.fetch.models import CORSStrategy


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="FEEDRELAY_", extra="ignore"
    )

    # CORS strategy selection
    default_cors_strategy: CORSStrategy = CORSStrategy.RSS2JSON
    protocol_strategy_overrides: dict[str, CORSStrategy] = Field(default_factory=dict)

    # Relay / proxy service registry (ordered candidates)
    rss2json_services: list[str] = Field(
        default_factory=lambda: ["https://api.rss2json.com/v1/api.json?rss_url="]
    )
    jsonp_services: list[str] = Field(
        default_factory=lambda: ["https://api.rss2json.com/v1/api.json?rss_url="]
    )
    cors_proxies: list[str] = Field(
        default_factory=lambda: [
            "https://corsproxy.io/?",
            "https://api.allorigins.win/raw?url=",
        ]
    )
    extension_bridges: list[str] = Field(default_factory=list)

    # Local CORS relay process (this service's /proxy endpoint by default)
    proxy_url: str = Field(
        default="http://localhost:8000",
        validation_alias=AliasChoices("FEEDRELAY_PROXY_URL", "PROXY_URL"),
    )

    # Cache
    redis_url: str = "redis://localhost:6379/0"
    cache_duration_seconds: int = Field(default=1800, ge=0)  # 30 minutes
    cache_namespace: str = "feedrelay:feed"

    # Fetching
    max_retries: int = Field(default=3, ge=1)
    initial_backoff_ms: int = Field(default=300, ge=0)
    request_timeout_seconds: float = Field(default=10.0, gt=0)
    relay_attempts_per_candidate: int = Field(default=1, ge=1)
    max_concurrent_fetches: int = Field(default=8, ge=1)

    # Protocol specifics
    ipfs_gateway: str = "https://ipfs.io/ipfs/"
    api_key: str = Field(default="")

    # CORS for the HTTP surface
    frontend_origin: str = "http://localhost:5173"

    # Environment
    env: str = Field(default="dev", pattern="^(dev|prod)$")
    log_level: str = Field(default="INFO")


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
