"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from prompt_studio.adapters.device_bridge import DeviceBridge
from prompt_studio.adapters.file_document_storage import FileDocumentStorage
from prompt_studio.adapters.httpx_transform_client import HttpxTransformClient
from prompt_studio.adapters.openai_transform_client import OpenAITransformClient
from prompt_studio.adapters.supabase_document_storage import SupabaseDocumentStorage
from prompt_studio.config import Settings
from prompt_studio.services.chat import ChatService
from prompt_studio.services.gallery import GalleryStore
from prompt_studio.services.images import ImageStorage
from prompt_studio.services.permissions import PermissionGate
from prompt_studio.services.prompts import DocumentStorage, PromptStore
from prompt_studio.services.transform import TransformService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    device_bridge: DeviceBridge
    permission_gate: PermissionGate
    prompt_store: PromptStore
    gallery_store: GalleryStore
    image_storage: ImageStorage
    transform_service: TransformService
    chat_service: ChatService
    close_resources: Callable[[], Awaitable[None]]


def build_document_storage(settings: Settings) -> DocumentStorage:
    """Create the document storage selected in settings."""
    if settings.storage_backend == "supabase":
        if not settings.supabase_url or not settings.supabase_service_key:
            raise ValueError("Supabase storage requires a URL and service key")
        client = create_client(settings.supabase_url, settings.supabase_service_key)
        return SupabaseDocumentStorage(client, namespace=settings.supabase_namespace)
    return FileDocumentStorage.create(settings.data_dir)


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    storage = build_document_storage(resolved_settings)
    device_bridge = DeviceBridge()
    permission_gate = PermissionGate(device_bridge)
    prompt_store = PromptStore(storage, key=resolved_settings.history_key)
    gallery_store = GalleryStore(storage, key=resolved_settings.gallery_key)
    image_storage = ImageStorage(storage)

    transform_client: HttpxTransformClient | OpenAITransformClient
    if resolved_settings.transform_backend == "openai":
        if not resolved_settings.openai_api_key:
            raise ValueError("OpenAI transform backend requires an API key")
        transform_client = OpenAITransformClient.create(
            resolved_settings.openai_api_key
        )
    else:
        transform_client = HttpxTransformClient.create(
            resolved_settings.transform_base_url,
            timeout=resolved_settings.transform_timeout_seconds,
        )
    transform_service = TransformService(
        client=transform_client,
        model=resolved_settings.resolved_transform_model(),
    )
    chat_service = ChatService(
        prompt_store=prompt_store,
        image_storage=image_storage,
        transform_service=transform_service,
        gallery_store=gallery_store,
    )

    async def close_resources() -> None:
        await transform_client.close()

    return AppContainer(
        settings=resolved_settings,
        device_bridge=device_bridge,
        permission_gate=permission_gate,
        prompt_store=prompt_store,
        gallery_store=gallery_store,
        image_storage=image_storage,
        transform_service=transform_service,
        chat_service=chat_service,
        close_resources=close_resources,
    )
