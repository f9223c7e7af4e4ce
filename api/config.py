"""
API configuration settings.
"""

from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Catalog API"
    api_version: str = "1.0.0"
    api_description: str = "JSON REST API for books, products, reviews and users"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 4000
    debug: bool = False

    # Rate Limiting
    limiter_enabled: bool = True
    limiter_rps: float = 2.0  # tokens added per second
    limiter_burst: int = 4
    limiter_sweep_interval: float = 60.0  # seconds between idle-client sweeps
    limiter_stale_after: float = 180.0  # idle seconds before a client is evicted

    # CORS Settings
    cors_origins: list = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list = ["*"]
    cors_allow_headers: list = ["*"]

    model_config = {
        "env_file": ".env",
        "extra": "ignore"  # Ignore extra fields from .env
    }


# Global config instance
config = APIConfig()
