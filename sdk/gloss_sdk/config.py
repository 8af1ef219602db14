"""
Configuration for the Gloss SDK.

Uses pydantic-settings for environment variable loading. Every setting has a
default suitable for local development.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """SDK configuration loaded from environment."""

    # Scan bounds for stores without a date index
    page_size: int = Field(default=200, gt=0, description="Rows per store scan page")
    max_pages: int = Field(default=10, gt=0, description="Hard cap on store pages per query")

    # Asset uploads
    storage_url: str = Field(
        default="https://nanostore.babbage.systems", description="Asset storage service URL"
    )
    retention_minutes: int = Field(
        default=60 * 24 * 30, gt=0, description="Asset retention in minutes (30 days)"
    )
    upload_timeout: float = Field(default=30.0, gt=0, description="Asset upload timeout seconds")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["text", "json"] = Field(default="text", description="Log output format")

    model_config = {"env_prefix": "GLOSS_"}
