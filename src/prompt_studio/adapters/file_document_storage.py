"""Filesystem-backed document storage."""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from prompt_studio.services.prompts import DocumentStorage


@dataclass
class FileDocumentStorage(DocumentStorage):
    """Stores each document as a file under a root directory."""

    root: Path

    @classmethod
    def create(cls, root: str | Path) -> "FileDocumentStorage":
        """Create a storage rooted at a directory, creating it if needed."""
        path = Path(root).expanduser()
        path.mkdir(parents=True, exist_ok=True)
        return cls(root=path)

    def read_document(self, key: str) -> bytes | None:
        """Return file contents for a key, or None when missing."""
        path = self._path(key)
        if not path.is_file():
            return None
        return path.read_bytes()

    def write_document(self, key: str, data: bytes) -> None:
        """Atomically replace the file for a key."""
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete_document(self, key: str) -> None:
        """Remove the file for a key if it exists."""
        self._path(key).unlink(missing_ok=True)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise ValueError(f"Document key escapes storage root: {key}")
        return path
