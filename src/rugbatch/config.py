"""Application configuration using Pydantic BaseSettings."""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """rugbatch configuration loaded from environment variables."""

    model_config = {"env_prefix": "RUGBATCH_", "env_file": ".env", "extra": "ignore"}

    # Gemini batch API
    gemini_api_key: str = ""
    gemini_batch_model: str = "gemini-2.5-flash-image"

    # Direct image generation
    openai_api_key: str = ""
    openai_image_model: str = "dall-e-3"

    # Chunking and scheduling
    chunk_size: int = 75
    concurrency_limit: int = 5

    # Status polling
    poll_interval_seconds: float = 30.0
    poll_max_consecutive_errors: int | None = None
    poll_backoff_factor: float = 1.0
    poll_max_interval_seconds: float = 300.0

    # Source image downloads
    include_images: bool = True
    image_download_timeout_seconds: float = 30.0
    max_image_bytes: int = 10 * 1024 * 1024

    # Output
    output_dir: Path = Path("/tmp/rugbatch/output")

    # Event log
    event_log_capacity: int = 1000
    event_log_path: Path | None = None


def get_settings() -> Settings:
    """Return a settings instance read from the environment."""
    return Settings()
