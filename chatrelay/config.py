"""Application configuration using pydantic-settings."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    log_level: str = "info"
    host: str = "127.0.0.1"
    port: int = 3000

    # Google AI
    # Left empty on purpose: a missing key is reported on each stream, not at import.
    gemini_api_key: str = ""
    genai_model: str = "gemini-2.5-flash-image-preview"
    # auto: ask for images only when the latest user message carries one
    image_output: Literal["auto", "always", "never"] = "auto"

    # Storage
    data_dir: Path = Path("data")
    artifact_dir: Path = Path("artifacts")

    # Streaming
    keepalive_seconds: float = 15.0

    # Limits
    max_upload_images: int = 12
    max_title_length: int = 200

    # CORS
    frontend_url: str = "http://localhost:3000"

    @property
    def sessions_dir(self) -> Path:
        return self.data_dir / "sessions"


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency for injecting settings."""
    return settings
