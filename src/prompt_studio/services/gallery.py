"""Gallery history of generated images."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID, uuid4

from pydantic import ValidationError as PydanticValidationError

from prompt_studio.domain.gallery import (
    GALLERY_VERSION,
    GalleryDocument,
    GalleryItem,
    GalleryItemDocument,
)
from prompt_studio.domain.prompts import PromptRecord
from prompt_studio.errors import FormatError
from prompt_studio.services.prompts import (
    DocumentStorage,
    as_utc,
    load_versioned_payload,
    utc_now,
)

logger = logging.getLogger(__name__)


@dataclass
class GalleryStore:
    """Generated images kept in their own versioned document.

    Items are stored oldest first; `newest_first` gives the display order.
    Like the prompt store, a failed load blocks writes until `clear()`.
    """

    storage: DocumentStorage
    key: str = "galleryHistory.json"
    clock: Callable[[], datetime] = utc_now
    _items: list[GalleryItem] = field(default_factory=list)
    _loaded: bool = False
    _load_error: FormatError | None = None

    def load_all(self) -> tuple[GalleryItem, ...]:
        """Read the persisted gallery, replacing the in-memory copy."""
        try:
            items = decode_gallery(self.storage.read_document(self.key))
        except FormatError as exc:
            self._load_error = exc
            raise
        self._items = list(items)
        self._loaded = True
        self._load_error = None
        return tuple(self._items)

    def items(self) -> tuple[GalleryItem, ...]:
        """Return a snapshot of the in-memory gallery."""
        self._ensure_loaded()
        return tuple(self._items)

    def newest_first(self) -> tuple[GalleryItem, ...]:
        return tuple(reversed(self.items()))

    def add_results(
        self, record: PromptRecord, image_paths: list[str]
    ) -> list[GalleryItem]:
        """Persist generated images produced for a prompt record in one write."""
        self._ensure_loaded()
        if not image_paths:
            return []
        timestamp = self.clock()
        added = [
            GalleryItem(
                id=uuid4(),
                image_path=path,
                prompt=record.prompt,
                timestamp=timestamp,
                source_record_id=record.id,
                original_image_path=record.image_path or None,
            )
            for path in image_paths
        ]
        self._flush([*self._items, *added])
        logger.info(
            "Gallery items added",
            extra={"record_id": str(record.id), "items": len(added)},
        )
        return added

    def remove(self, item_id: UUID) -> GalleryItem | None:
        """Delete one gallery item and persist the rest."""
        self._ensure_loaded()
        removed = next((item for item in self._items if item.id == item_id), None)
        if removed is None:
            return None
        self._flush([item for item in self._items if item.id != item_id])
        return removed

    def remove_for_record(self, record_id: UUID) -> list[GalleryItem]:
        """Delete every gallery item generated for a prompt record."""
        self._ensure_loaded()
        removed = [item for item in self._items if item.source_record_id == record_id]
        if removed:
            self._flush(
                [item for item in self._items if item.source_record_id != record_id]
            )
        return removed

    def clear(self) -> None:
        """Replace memory and storage with an empty gallery."""
        self._flush([])
        self._loaded = True
        self._load_error = None

    def _ensure_loaded(self) -> None:
        if self._load_error is not None:
            raise self._load_error
        if not self._loaded:
            self.load_all()

    def _flush(self, items: list[GalleryItem]) -> None:
        self.storage.write_document(
            self.key, encode_gallery(items, updated_at=self.clock())
        )
        self._items = items


def encode_gallery(items: list[GalleryItem], updated_at: datetime) -> bytes:
    """Serialize gallery items to the versioned JSON document."""
    document = GalleryDocument(
        version=GALLERY_VERSION,
        last_updated=updated_at,
        items=[
            GalleryItemDocument(
                id=item.id,
                image_path=item.image_path,
                prompt=item.prompt,
                timestamp=item.timestamp,
                is_ai_generated=item.is_ai_generated,
                original_image_path=item.original_image_path,
                source_record_id=item.source_record_id,
            )
            for item in items
        ],
    )
    return document.model_dump_json(by_alias=True, indent=2).encode("utf-8")


def decode_gallery(raw: bytes | None) -> list[GalleryItem]:
    """Parse the persisted gallery, failing closed on anything unexpected."""
    if raw is None:
        return []
    payload = load_versioned_payload(raw, "Gallery history")
    try:
        document = GalleryDocument.model_validate(payload)
    except PydanticValidationError as exc:
        raise FormatError("Gallery history has malformed items") from exc
    return [
        GalleryItem(
            id=item.id,
            image_path=item.image_path,
            prompt=item.prompt,
            timestamp=as_utc(item.timestamp),
            source_record_id=item.source_record_id,
            original_image_path=item.original_image_path,
            is_ai_generated=item.is_ai_generated,
        )
        for item in document.items
    ]
