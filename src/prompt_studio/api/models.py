"""Pydantic models for the shell-facing HTTP API."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from prompt_studio.domain.permissions import (
    AuthorizationStatus,
    PermissionAction,
    PermissionState,
)
from prompt_studio.domain.gallery import GalleryItem
from prompt_studio.domain.prompts import PromptRecord


class PermissionStateOut(BaseModel):
    """Permission state for one resource."""

    status: AuthorizationStatus
    show_request_prompt: bool

    @classmethod
    def from_state(cls, state: PermissionState) -> "PermissionStateOut":
        """Build from the domain state."""
        return cls(status=state.status, show_request_prompt=state.show_request_prompt)


class PermissionDecisionOut(BaseModel):
    """Next UI action for a resource."""

    resource: str
    action: PermissionAction
    state: PermissionStateOut | None = None


class StatusReport(BaseModel):
    """Raw status reported by the shell."""

    status: str | int


class PromptRecordOut(BaseModel):
    """Prompt record as rendered by the history screen."""

    id: UUID
    image_path: str
    prompt: str
    timestamp: datetime

    @classmethod
    def from_record(cls, record: PromptRecord) -> "PromptRecordOut":
        """Build from the domain record."""
        return cls(
            id=record.id,
            image_path=record.image_path,
            prompt=record.prompt,
            timestamp=record.timestamp,
        )


class PromptCreate(BaseModel):
    """Request to record a prompt against an existing image reference."""

    image_path: str = ""
    prompt: str


class ChatRequest(BaseModel):
    """Chat message with optional base64 images."""

    prompt: str
    images: list[str] = Field(default_factory=list)


class ChatResponse(BaseModel):
    """Result of a chat message."""

    record: PromptRecordOut
    text: str | None
    image_paths: list[str]
    remote_urls: list[str]


class ChatStreamEvent(BaseModel):
    """One NDJSON line of a streamed chat reply."""

    type: Literal["record", "chunk", "error"]
    record: PromptRecordOut | None = None
    text: str | None = None
    image_paths: list[str] = Field(default_factory=list)
    remote_urls: list[str] = Field(default_factory=list)
    done: bool = False
    detail: str | None = None

    def to_line(self) -> str:
        return self.model_dump_json(exclude_none=True) + "\n"


class GalleryItemOut(BaseModel):
    """Generated image as rendered by the gallery screen."""

    id: UUID
    image_path: str
    prompt: str
    timestamp: datetime
    source_record_id: UUID | None
    original_image_path: str | None
    is_ai_generated: bool

    @classmethod
    def from_item(cls, item: GalleryItem) -> "GalleryItemOut":
        """Build from the domain item."""
        return cls(
            id=item.id,
            image_path=item.image_path,
            prompt=item.prompt,
            timestamp=item.timestamp,
            source_record_id=item.source_record_id,
            original_image_path=item.original_image_path,
            is_ai_generated=item.is_ai_generated,
        )
