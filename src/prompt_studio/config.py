"""Application configuration."""

import os
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from prompt_studio.services.transform import DEFAULT_MODEL

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    data_dir: Path = Path("~/.prompt_studio")
    history_key: str = "imagePrompts.json"
    gallery_key: str = "galleryHistory.json"
    storage_backend: Literal["file", "supabase"] = "file"
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    supabase_namespace: str = "default"
    transform_backend: Literal["http", "openai"] = "http"
    transform_base_url: str = "https://nano-banana-api-164860087792.us-central1.run.app"
    transform_model: str = DEFAULT_MODEL
    transform_timeout_seconds: float = 60.0
    openai_api_key: str | None = None
    openai_image_model: str = "gpt-image-1"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_prefix="PROMPT_STUDIO_",
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    def resolved_transform_model(self) -> str:
        """Return the model name for the selected transform backend."""
        if self.transform_backend == "openai":
            return self.openai_image_model
        return self.transform_model
