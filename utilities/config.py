"""
Configuration management using environment variables.
Handles database and logging settings with proper validation and defaults.
"""

from typing import Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """
    Configuration class for shared application settings.
    Uses pydantic BaseSettings for environment variable management.
    """

    # Database Configuration
    database_url: str = Field(default="sqlite+aiosqlite:///./catalog.db")
    database_timeout: float = Field(default=3.0)
    database_echo: bool = Field(default=False)
    create_tables: bool = Field(default=True)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    # Development/Testing
    environment: str = Field(default="development")
    debug: bool = Field(default=False)

    @validator('database_timeout')
    def validate_timeout(cls, v):
        """Ensure the per-statement timeout is reasonable."""
        if v <= 0 or v > 60:
            raise ValueError('database_timeout must be greater than 0 and at most 60 seconds')
        return v

    @validator('log_level')
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @validator('log_format')
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields from .env


# Global configuration instance
config = AppConfig()
