"""Shared test fixtures."""

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from prompt_studio.adapters.device_bridge import DeviceBridge
from prompt_studio.config import Settings
from prompt_studio.containers import AppContainer
from prompt_studio.domain.permissions import AuthorizationStatus, Resource
from prompt_studio.errors import OSCapabilityUnavailable
from prompt_studio.services.chat import ChatService
from prompt_studio.services.gallery import GalleryStore
from prompt_studio.services.images import ImageStorage
from prompt_studio.services.permissions import PermissionGate, PermissionPlatform
from prompt_studio.services.prompts import DocumentStorage, PromptStore
from prompt_studio.services.transform import TransformClient, TransformService

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"fake-png-body"
JPEG_BYTES = b"\xff\xd8\xff" + b"fake-jpeg-body"


@dataclass
class InMemoryDocumentStorage(DocumentStorage):
    """In-memory document storage for tests."""

    documents: dict[str, bytes] = field(default_factory=dict)
    writes: list[str] = field(default_factory=list)

    def read_document(self, key: str) -> bytes | None:
        return self.documents.get(key)

    def write_document(self, key: str, data: bytes) -> None:
        self.documents[key] = data
        self.writes.append(key)

    def delete_document(self, key: str) -> None:
        self.documents.pop(key, None)


@dataclass
class FakePermissionPlatform(PermissionPlatform):
    """Fake OS permission layer with scripted request outcomes."""

    statuses: dict[Resource, object] = field(default_factory=dict)
    outcomes: dict[Resource, AuthorizationStatus] = field(default_factory=dict)
    requests: list[Resource] = field(default_factory=list)
    settings_opened: int = 0
    unavailable: set[Resource] = field(default_factory=set)
    fail_settings: bool = False

    def get_authorization_status(self, resource: Resource) -> AuthorizationStatus:
        if resource in self.unavailable:
            raise OSCapabilityUnavailable(resource.value)
        return self.statuses.get(resource, AuthorizationStatus.NOT_DETERMINED)

    async def request_authorization(self, resource: Resource) -> AuthorizationStatus:
        self.requests.append(resource)
        outcome = self.outcomes.get(resource, AuthorizationStatus.AUTHORIZED)
        self.statuses[resource] = outcome
        return outcome

    async def open_app_settings(self) -> None:
        if self.fail_settings:
            raise RuntimeError("settings unavailable")
        self.settings_opened += 1


@dataclass
class FakeTransformClient(TransformClient):
    """Fake transform client returning a fixed payload."""

    payload: dict[str, object] = field(
        default_factory=lambda: {
            "text": "Here is your night scene.",
            "images": [{"base64": "iVBORw0KGgpmYWtlLXBuZy1ib2R5"}],
            "model": "gemini-2.5-flash-image-preview",
        }
    )
    chunks: list[dict[str, object]] = field(default_factory=list)
    calls: list[dict[str, object]] = field(default_factory=list)

    async def generate(
        self, *, model: str, prompt: str, images: list[str]
    ) -> dict[str, object]:
        self.calls.append({"model": model, "prompt": prompt, "images": images})
        return self.payload

    async def stream(
        self, *, model: str, prompt: str, images: list[str]
    ) -> AsyncIterator[dict[str, object]]:
        self.calls.append({"model": model, "prompt": prompt, "images": images})
        for chunk in self.chunks:
            yield chunk


@dataclass
class StepClock:
    """Clock advancing one second per call."""

    current: datetime = field(
        default_factory=lambda: datetime(2026, 10, 17, 9, 0, tzinfo=UTC)
    )

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(seconds=1)
        return value


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(data_dir=tmp_path / "data", environment="test")


@pytest.fixture
def storage() -> InMemoryDocumentStorage:
    return InMemoryDocumentStorage()


@pytest.fixture
def prompt_store(storage: InMemoryDocumentStorage) -> PromptStore:
    return PromptStore(storage, clock=StepClock())


@pytest.fixture
def transform_client() -> FakeTransformClient:
    return FakeTransformClient()


@pytest.fixture
def container(
    settings: Settings,
    storage: InMemoryDocumentStorage,
    prompt_store: PromptStore,
    transform_client: FakeTransformClient,
) -> AppContainer:
    device_bridge = DeviceBridge()
    permission_gate = PermissionGate(device_bridge)
    image_storage = ImageStorage(storage)
    gallery_store = GalleryStore(storage, clock=StepClock())
    transform_service = TransformService(client=transform_client)
    chat_service = ChatService(
        prompt_store=prompt_store,
        image_storage=image_storage,
        transform_service=transform_service,
        gallery_store=gallery_store,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        device_bridge=device_bridge,
        permission_gate=permission_gate,
        prompt_store=prompt_store,
        gallery_store=gallery_store,
        image_storage=image_storage,
        transform_service=transform_service,
        chat_service=chat_service,
        close_resources=close_resources,
    )
