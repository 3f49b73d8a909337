"""Domain models for generated-image gallery history."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from prompt_studio.domain.prompts import require_text

GALLERY_VERSION = "1.0"


@dataclass(frozen=True)
class GalleryItem:
    """Generated image linked back to the prompt record that produced it."""

    id: UUID
    image_path: str
    prompt: str
    timestamp: datetime
    source_record_id: UUID | None = None
    original_image_path: str | None = None
    is_ai_generated: bool = True


class GalleryItemDocument(BaseModel):
    """Persisted shape of a single gallery item."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: UUID
    image_path: str = Field(alias="imagePath", min_length=1)
    prompt: str
    timestamp: datetime
    is_ai_generated: bool = Field(default=True, alias="isAIGenerated")
    original_image_path: str | None = Field(default=None, alias="originalImagePath")
    source_record_id: UUID | None = Field(default=None, alias="sourceRecordId")

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        return require_text(value)


class GalleryDocument(BaseModel):
    """Persisted shape of the gallery history."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: str = GALLERY_VERSION
    last_updated: datetime | None = Field(default=None, alias="lastUpdated")
    items: list[GalleryItemDocument] = Field(default_factory=list)
