"""Domain models for prompt history."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

COLLECTION_VERSION = "1.0"


def require_text(value: str) -> str:
    """Reject prompt text that is empty once whitespace is stripped."""
    if not value.strip():
        raise ValueError("prompt must contain non-whitespace text")
    return value


@dataclass(frozen=True)
class PromptRecord:
    """One image/prompt pair submitted for transformation."""

    id: UUID
    image_path: str
    prompt: str
    timestamp: datetime


class PromptItemDocument(BaseModel):
    """Persisted shape of a single prompt record."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: UUID
    image_path: str = Field(alias="imagePath")
    prompt: str
    timestamp: datetime

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        return require_text(value)


class PromptCollectionDocument(BaseModel):
    """Persisted shape of the whole prompt collection."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: str = COLLECTION_VERSION
    last_updated: datetime | None = Field(default=None, alias="lastUpdated")
    items: list[PromptItemDocument] = Field(default_factory=list)
