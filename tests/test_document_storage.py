"""Tests for document storage adapters."""

from dataclasses import dataclass, field

import pytest

from prompt_studio.adapters.file_document_storage import FileDocumentStorage
from prompt_studio.adapters.supabase_document_storage import SupabaseDocumentStorage
from prompt_studio.services.prompts import PromptStore


def test_file_storage_roundtrip(tmp_path) -> None:
    storage = FileDocumentStorage.create(tmp_path / "docs")

    assert storage.read_document("imagePrompts.json") is None

    storage.write_document("imagePrompts.json", b"{}")
    storage.write_document("images/a.jpg", b"jpeg")

    assert storage.read_document("imagePrompts.json") == b"{}"
    assert (tmp_path / "docs" / "images" / "a.jpg").read_bytes() == b"jpeg"


def test_file_storage_replaces_without_leftovers(tmp_path) -> None:
    storage = FileDocumentStorage.create(tmp_path)

    storage.write_document("doc.json", b"one")
    storage.write_document("doc.json", b"two")

    assert storage.read_document("doc.json") == b"two"
    assert sorted(path.name for path in tmp_path.iterdir()) == ["doc.json"]


def test_file_storage_delete_is_idempotent(tmp_path) -> None:
    storage = FileDocumentStorage.create(tmp_path)
    storage.write_document("doc.json", b"one")

    storage.delete_document("doc.json")
    storage.delete_document("doc.json")

    assert storage.read_document("doc.json") is None


def test_file_storage_rejects_escaping_keys(tmp_path) -> None:
    storage = FileDocumentStorage.create(tmp_path / "root")

    with pytest.raises(ValueError):
        storage.write_document("../outside.json", b"x")


def test_prompt_store_survives_restart_on_disk(tmp_path) -> None:
    PromptStore(FileDocumentStorage.create(tmp_path)).append("a.jpg", "add rain")

    records = PromptStore(FileDocumentStorage.create(tmp_path)).load_all()

    assert [record.prompt for record in records] == ["add rain"]


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "upsert": [], "delete": []}
    )
    last_payload: object | None = None
    last_filters: list[tuple[str, object]] = field(default_factory=list)
    last_conflict: str | None = None

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._action = "select"
        return self

    def upsert(  # type: ignore[no-untyped-def]
        self, payload, on_conflict: str = ""
    ) -> "FakeTable":
        self._action = "upsert"
        self.last_payload = payload
        self.last_conflict = on_conflict
        return self

    def delete(self) -> "FakeTable":
        self._action = "delete"
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append((column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def execute(self) -> FakeResponse:
        action = getattr(self, "_action", "select")
        queue = self.response_queue.get(action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]


def test_supabase_storage_reads_base64_content() -> None:
    client = FakeSupabaseClient()
    client.table("documents").queue("select", [{"content": "e30="}])

    storage = SupabaseDocumentStorage(client, namespace="device-1")

    assert storage.read_document("imagePrompts.json") == b"{}"
    assert ("namespace", "device-1") in client.table("documents").last_filters


def test_supabase_storage_missing_document() -> None:
    storage = SupabaseDocumentStorage(FakeSupabaseClient(), namespace="device-1")

    assert storage.read_document("imagePrompts.json") is None


def test_supabase_storage_upserts_by_namespace_and_key() -> None:
    client = FakeSupabaseClient()
    table = client.table("documents")
    table.queue("upsert", [{"key": "imagePrompts.json"}])

    storage = SupabaseDocumentStorage(client, namespace="device-1")
    storage.write_document("imagePrompts.json", b"{}")

    assert isinstance(table.last_payload, dict)
    assert table.last_payload["content"] == "e30="
    assert table.last_payload["key"] == "imagePrompts.json"
    assert table.last_conflict == "namespace,key"


def test_supabase_storage_write_failure_raises() -> None:
    storage = SupabaseDocumentStorage(FakeSupabaseClient(), namespace="device-1")

    with pytest.raises(RuntimeError):
        storage.write_document("imagePrompts.json", b"{}")


def test_supabase_storage_delete_filters_key() -> None:
    client = FakeSupabaseClient()
    storage = SupabaseDocumentStorage(client, namespace="device-1")

    storage.delete_document("images/a.jpg")

    assert ("key", "images/a.jpg") in client.table("documents").last_filters
