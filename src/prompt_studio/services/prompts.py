"""Versioned, ordered store of prompt records."""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID, uuid4

from pydantic import ValidationError as PydanticValidationError

from prompt_studio.domain.prompts import (
    COLLECTION_VERSION,
    PromptCollectionDocument,
    PromptItemDocument,
    PromptRecord,
)
from prompt_studio.errors import FormatError, ValidationError

logger = logging.getLogger(__name__)

SUPPORTED_VERSIONS = frozenset({COLLECTION_VERSION})


class DocumentStorage(Protocol):
    """Persistence interface for whole documents addressed by key."""

    def read_document(self, key: str) -> bytes | None:
        """Return the stored bytes for a key, or None when absent."""

    def write_document(self, key: str, data: bytes) -> None:
        """Replace the stored bytes for a key."""

    def delete_document(self, key: str) -> None:
        """Remove a stored document if present."""


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class PromptStore:
    """Ordered prompt history flushed to storage after every mutation."""

    storage: DocumentStorage
    key: str = "imagePrompts.json"
    clock: Callable[[], datetime] = utc_now
    _records: list[PromptRecord] = field(default_factory=list)
    _loaded: bool = False
    _load_error: FormatError | None = None

    def load_all(self) -> tuple[PromptRecord, ...]:
        """Read the persisted collection, replacing the in-memory copy."""
        try:
            records = decode_collection(self.storage.read_document(self.key))
        except FormatError as exc:
            self._load_error = exc
            raise
        self._records = list(records)
        self._loaded = True
        self._load_error = None
        return tuple(self._records)

    def records(self) -> tuple[PromptRecord, ...]:
        """Return a snapshot of the in-memory collection."""
        self._ensure_loaded()
        return tuple(self._records)

    def get(self, record_id: UUID) -> PromptRecord | None:
        """Return a record by id, if present."""
        self._ensure_loaded()
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def append(self, image_path: str, prompt: str) -> PromptRecord:
        """Validate, append and persist a new prompt record."""
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt text must not be empty")
        self._ensure_loaded()
        record = PromptRecord(
            id=uuid4(),
            image_path=image_path,
            prompt=prompt,
            timestamp=self._next_timestamp(),
        )
        self._flush([*self._records, record])
        logger.info("Prompt record appended", extra={"record_id": str(record.id)})
        return record

    def remove(self, record_id: UUID) -> PromptRecord | None:
        """Delete a record by id and persist the remaining collection."""
        self._ensure_loaded()
        removed = self.get(record_id)
        if removed is None:
            return None
        self._flush([record for record in self._records if record.id != record_id])
        return removed

    def clear(self) -> None:
        """Replace memory and storage with an empty collection."""
        self._flush([])
        self._loaded = True
        self._load_error = None

    def _ensure_loaded(self) -> None:
        if self._load_error is not None:
            raise self._load_error
        if not self._loaded:
            self.load_all()

    def _next_timestamp(self) -> datetime:
        now = self.clock()
        if self._records and self._records[-1].timestamp > now:
            return self._records[-1].timestamp
        return now

    def _flush(self, records: list[PromptRecord]) -> None:
        payload = encode_collection(records, updated_at=self.clock())
        self.storage.write_document(self.key, payload)
        self._records = records


def encode_collection(records: list[PromptRecord], updated_at: datetime) -> bytes:
    """Serialize records to the versioned JSON document."""
    document = PromptCollectionDocument(
        version=COLLECTION_VERSION,
        last_updated=updated_at,
        items=[
            PromptItemDocument(
                id=record.id,
                image_path=record.image_path,
                prompt=record.prompt,
                timestamp=record.timestamp,
            )
            for record in records
        ],
    )
    return document.model_dump_json(by_alias=True, indent=2).encode("utf-8")


def decode_collection(raw: bytes | None) -> list[PromptRecord]:
    """Parse a persisted document, failing closed on anything unexpected."""
    if raw is None:
        return []
    payload = load_versioned_payload(raw, "Prompt history")
    try:
        document = PromptCollectionDocument.model_validate(payload)
    except PydanticValidationError as exc:
        raise FormatError("Prompt history has malformed items") from exc
    return [
        PromptRecord(
            id=item.id,
            image_path=item.image_path,
            prompt=item.prompt,
            timestamp=as_utc(item.timestamp),
        )
        for item in document.items
    ]


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def load_versioned_payload(raw: bytes, label: str) -> dict[str, object]:
    """Parse a JSON object and check its version before any field is trusted."""
    try:
        payload = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise FormatError(f"{label} is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise FormatError(f"{label} must be a JSON object")
    version = payload.get("version")
    if version not in SUPPORTED_VERSIONS:
        raise FormatError(f"Unsupported {label.lower()} version: {version!r}")
    return payload
