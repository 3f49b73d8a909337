"""Supabase-backed document storage."""

import base64
from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from prompt_studio.services.prompts import DocumentStorage


@dataclass
class SupabaseDocumentStorage(DocumentStorage):
    """Supabase implementation storing documents in a keyed table."""

    client: Client
    namespace: str
    table: str = "documents"

    def read_document(self, key: str) -> bytes | None:
        """Return the stored document bytes, if present."""
        response = (
            self.client.table(self.table)
            .select("content")
            .eq("namespace", self.namespace)
            .eq("key", key)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return base64.b64decode(response.data[0]["content"])

    def write_document(self, key: str, data: bytes) -> None:
        """Insert or replace the document for a key."""
        response = (
            self.client.table(self.table)
            .upsert(
                {
                    "namespace": self.namespace,
                    "key": key,
                    "content": base64.b64encode(data).decode("utf-8"),
                    "updated_at": datetime.now(tz=UTC).isoformat(),
                },
                on_conflict="namespace,key",
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError(f"Failed to write document {key}")

    def delete_document(self, key: str) -> None:
        """Delete the document for a key."""
        self.client.table(self.table).delete().eq("namespace", self.namespace).eq(
            "key", key
        ).execute()
