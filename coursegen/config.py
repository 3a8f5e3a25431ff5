"""Application settings from environment variables."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# Load environment variables
load_dotenv()


class Settings(BaseSettings):
    """Application settings from environment."""

    # API Keys
    anthropic_api_key: str = ""
    text_model: str = "anthropic:claude-sonnet-4-20250514"

    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_images_bucket: str = ""

    # Backends
    progress_store: Literal["memory", "supabase"] = "memory"
    course_repository: Literal["memory", "supabase"] = "memory"
    queue_backend: Literal["memory", "redis"] = "memory"
    redis_url: str = "redis://localhost:6379/0"
    queue_poll_interval: float = 1.0

    # Retry policies per job family
    course_max_attempts: int = 3
    course_backoff_seconds: float = 1.0
    subjob_max_attempts: int = 2
    subjob_backoff_seconds: float = 2.0

    # Images
    pollinations_url: str = "https://image.pollinations.ai/prompt/"
    images_dir: str = "images"
    public_images_base_url: str = "http://localhost:8000/images"
    image_request_timeout: float = 60.0

    # Configuration
    log_level: str = "INFO"
    subscriber_buffer_size: int = 100
    allowed_origins: list[str] = ["*"]

    model_config = {"env_file": ".env"}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
