"""Chat flow tying prompt history, image storage and transformation together."""

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from uuid import UUID

from prompt_studio.domain.gallery import GalleryItem
from prompt_studio.domain.prompts import PromptRecord
from prompt_studio.domain.transform import TransformResult
from prompt_studio.errors import FormatError, TransformError, ValidationError
from prompt_studio.services.gallery import GalleryStore
from prompt_studio.services.images import ImageStorage, decode_base64_image
from prompt_studio.services.prompts import PromptStore
from prompt_studio.services.transform import TransformService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatReply:
    """Outcome of a sent chat message."""

    record: PromptRecord
    text: str | None
    image_paths: list[str] = field(default_factory=list)
    remote_urls: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ChatStreamChunk:
    """Part of a streamed reply, with any images already stored."""

    text: str | None
    image_paths: list[str] = field(default_factory=list)
    remote_urls: list[str] = field(default_factory=list)
    done: bool = False


@dataclass(frozen=True)
class ChatStream:
    """Accepted streamed request: its record and the pending reply chunks."""

    record: PromptRecord
    chunks: AsyncIterator[ChatStreamChunk]


@dataclass
class ChatService:
    """Application service behind the chat screen."""

    prompt_store: PromptStore
    image_storage: ImageStorage
    transform_service: TransformService
    gallery_store: GalleryStore

    async def send(self, prompt: str, images: list[bytes]) -> ChatReply:
        """Record the request, run the transformation and store its output."""
        record = self._accept(prompt, images)
        result = await self.transform_service.transform(prompt, images)
        image_paths, remote_urls = self._store_result(record, result)
        logger.info(
            "Transformation completed",
            extra={"record_id": str(record.id), "images": len(image_paths)},
        )
        return ChatReply(
            record=record,
            text=result.text,
            image_paths=image_paths,
            remote_urls=remote_urls,
        )

    def start_stream(self, prompt: str, images: list[bytes]) -> ChatStream:
        """Record the request and return a stream of reply chunks.

        Validation and history errors are raised here, before any chunk is
        produced; backend failures surface while iterating.
        """
        record = self._accept(prompt, images)
        return ChatStream(record=record, chunks=self._relay(record, images))

    def history(self) -> tuple[PromptRecord, ...]:
        """Return prompt history, treating an unreadable document as empty."""
        try:
            return self.prompt_store.load_all()
        except FormatError:
            logger.exception("Prompt history could not be loaded")
            return ()

    def gallery(self) -> tuple[GalleryItem, ...]:
        """Return generated images newest first, empty if unreadable."""
        try:
            self.gallery_store.load_all()
        except FormatError:
            logger.exception("Gallery history could not be loaded")
            return ()
        return self.gallery_store.newest_first()

    def delete(self, record_id: UUID) -> bool:
        """Delete a record, its stored image and the images generated for it."""
        removed = self.prompt_store.remove(record_id)
        if removed is None:
            return False
        self.image_storage.delete(removed.image_path)
        for item in self.gallery_store.remove_for_record(record_id):
            self.image_storage.delete(item.image_path)
        return True

    def delete_gallery_item(self, item_id: UUID) -> bool:
        removed = self.gallery_store.remove(item_id)
        if removed is None:
            return False
        self.image_storage.delete(removed.image_path)
        return True

    def clear_history(self) -> None:
        """Remove every record, gallery item and the images they reference."""
        paths: list[str] = []
        try:
            paths.extend(record.image_path for record in self.prompt_store.records())
        except FormatError:
            logger.warning("Clearing unreadable prompt history")
        try:
            paths.extend(item.image_path for item in self.gallery_store.items())
        except FormatError:
            logger.warning("Clearing unreadable gallery history")
        self.prompt_store.clear()
        self.gallery_store.clear()
        for path in paths:
            self.image_storage.delete(path)

    @staticmethod
    def decode_images(encoded: list[str]) -> list[bytes]:
        """Decode base64 images sent by the shell."""
        return [decode_base64_image(item) for item in encoded]

    def _accept(self, prompt: str, images: list[bytes]) -> PromptRecord:
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt text must not be empty")
        # Both documents must be writable before the input image is stored.
        self.prompt_store.records()
        self.gallery_store.items()
        image_path = self.image_storage.save(images[0]) if images else ""
        return self.prompt_store.append(image_path, prompt)

    async def _relay(
        self, record: PromptRecord, images: list[bytes]
    ) -> AsyncIterator[ChatStreamChunk]:
        async for chunk in self.transform_service.transform_stream(
            record.prompt, images
        ):
            text = None
            image_paths: list[str] = []
            remote_urls: list[str] = []
            if chunk.result is not None:
                text = chunk.result.text
                image_paths, remote_urls = self._store_result(record, chunk.result)
            yield ChatStreamChunk(
                text=text,
                image_paths=image_paths,
                remote_urls=remote_urls,
                done=bool(chunk.done),
            )

    def _store_result(
        self, record: PromptRecord, result: TransformResult
    ) -> tuple[list[str], list[str]]:
        """Store generated images and link them to the record in the gallery.

        Every image is decoded before anything is written; if a write fails,
        images stored by this call are deleted again.
        """
        decoded, remote_urls = _decode_outputs(result)
        saved: list[str] = []
        try:
            for image_bytes in decoded:
                saved.append(self.image_storage.save(image_bytes))
            self.gallery_store.add_results(record, saved)
        except Exception:
            for path in saved:
                self.image_storage.delete(path)
            raise
        return saved, remote_urls


def _decode_outputs(result: TransformResult) -> tuple[list[bytes], list[str]]:
    decoded: list[bytes] = []
    remote_urls: list[str] = []
    for image in result.images:
        payload = image.base64 or image.data
        if payload:
            try:
                image_bytes = decode_base64_image(payload)
            except ValidationError as exc:
                raise TransformError("Backend returned an unreadable image") from exc
            if not image_bytes:
                raise TransformError("Backend returned an empty image")
            decoded.append(image_bytes)
        elif image.url:
            remote_urls.append(image.url)
    return decoded, remote_urls
