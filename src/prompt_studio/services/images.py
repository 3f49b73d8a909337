"""Image storage on top of the document storage."""

import base64
import binascii
import logging
from dataclasses import dataclass
from uuid import uuid4

from prompt_studio.errors import ValidationError
from prompt_studio.services.prompts import DocumentStorage

logger = logging.getLogger(__name__)

IMAGES_PREFIX = "images/"

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


@dataclass
class ImageStorage:
    """Saves, loads and deletes image files kept next to the prompt history."""

    storage: DocumentStorage

    def save(self, image_bytes: bytes) -> str:
        """Store image bytes and return the relative path used to find them."""
        if not image_bytes:
            raise ValidationError("Image data must not be empty")
        extension = _EXTENSIONS[detect_mime_type(image_bytes)]
        path = f"{IMAGES_PREFIX}{uuid4()}.{extension}"
        self.storage.write_document(path, image_bytes)
        return path

    def save_base64(self, encoded: str) -> str:
        """Decode a base64 payload (optionally a data URL) and store it."""
        return self.save(decode_base64_image(encoded))

    def load(self, path: str) -> bytes | None:
        """Return stored bytes for a path, or None when missing."""
        if not self.owns(path):
            return None
        return self.storage.read_document(path)

    def delete(self, path: str) -> None:
        """Delete a stored image; paths outside this storage are ignored."""
        if not self.owns(path):
            return
        try:
            self.storage.delete_document(path)
        except OSError:
            logger.exception("Failed to delete image", extra={"path": path})

    @staticmethod
    def owns(path: str) -> bool:
        """Return True when the path points into this storage."""
        return path.startswith(IMAGES_PREFIX) and ".." not in path


def decode_base64_image(encoded: str) -> bytes:
    """Decode plain base64 or a data URL into raw bytes."""
    payload = encoded.strip()
    if payload.startswith("data:"):
        _, _, payload = payload.partition(",")
    # Line-wrapped encoders insert newlines every 64 or 76 characters.
    payload = "".join(payload.split())
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Image data is not valid base64") from exc


def to_base64(image_bytes: bytes) -> str:
    """Encode bytes as plain base64 text."""
    return base64.b64encode(image_bytes).decode("utf-8")


def detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
