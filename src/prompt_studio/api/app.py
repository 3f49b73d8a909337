"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response, StreamingResponse

from prompt_studio.api.device import router as device_router
from prompt_studio.api.models import (
    ChatRequest,
    ChatResponse,
    ChatStreamEvent,
    GalleryItemOut,
    PermissionDecisionOut,
    PermissionStateOut,
    PromptCreate,
    PromptRecordOut,
)
from prompt_studio.app_logging import configure_logging
from prompt_studio.containers import AppContainer
from prompt_studio.domain.permissions import PermissionAction, Resource
from prompt_studio.errors import FormatError, TransformError, ValidationError
from prompt_studio.services.images import IMAGES_PREFIX, detect_mime_type


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        history = app.state.container.chat_service.history()
        logger.info("Loaded prompt history", extra={"records": len(history)})
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(device_router)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(
        request: Request, exc: ValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": str(exc)},
        )

    @app.exception_handler(FormatError)
    async def format_error_handler(request: Request, exc: FormatError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)}
        )

    @app.exception_handler(TransformError)
    async def transform_error_handler(
        request: Request, exc: TransformError
    ) -> JSONResponse:
        logger.warning("Transformation failed", extra={"error": str(exc)})
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": _format_transform_error(container, exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/permissions")
    async def permissions(request: Request) -> dict[str, PermissionStateOut]:
        """Return the current permission snapshot."""
        state_container: AppContainer = request.app.state.container
        snapshot = state_container.permission_gate.snapshot()
        return {
            resource.value: PermissionStateOut.from_state(state)
            for resource, state in snapshot.items()
        }

    @app.post("/permissions/cycle")
    async def begin_cycle(request: Request) -> dict[str, PermissionStateOut]:
        """Start a new screen cycle and re-query every resource."""
        state_container: AppContainer = request.app.state.container
        snapshot = state_container.permission_gate.begin_screen_cycle()
        return {
            resource.value: PermissionStateOut.from_state(state)
            for resource, state in snapshot.items()
        }

    @app.post("/permissions/settings")
    async def open_settings(request: Request) -> dict[str, str]:
        """Ask the shell to open the app's system settings."""
        state_container: AppContainer = request.app.state.container
        await state_container.permission_gate.open_system_settings()
        return {"status": "ok"}

    @app.post("/permissions/{resource}/evaluate")
    async def evaluate(resource: Resource, request: Request) -> PermissionDecisionOut:
        """Decide what the UI should do before using a resource."""
        state_container: AppContainer = request.app.state.container
        action = state_container.permission_gate.evaluate(resource)
        return _decision(state_container, resource, action)

    @app.post("/permissions/{resource}/confirm")
    async def confirm(resource: Resource, request: Request) -> PermissionDecisionOut:
        """Handle the user accepting the in-app permission explanation."""
        state_container: AppContainer = request.app.state.container
        action = await state_container.permission_gate.confirm_prompt(resource)
        return _decision(state_container, resource, action)

    @app.post("/permissions/{resource}/dismiss")
    async def dismiss(resource: Resource, request: Request) -> PermissionDecisionOut:
        """Handle the user declining the in-app permission explanation."""
        state_container: AppContainer = request.app.state.container
        state_container.permission_gate.dismiss_prompt(resource)
        return _decision(state_container, resource, PermissionAction.NO_OP)

    @app.post("/permissions/{resource}/authorize")
    async def authorize(resource: Resource, request: Request) -> PermissionDecisionOut:
        """Request OS authorization and return the follow-up action."""
        state_container: AppContainer = request.app.state.container
        action = await state_container.permission_gate.authorize(resource)
        return _decision(state_container, resource, action)

    @app.get("/prompts")
    async def list_prompts(request: Request) -> dict[str, object]:
        """Return the prompt history in display order."""
        state_container: AppContainer = request.app.state.container
        records = state_container.chat_service.history()
        return {
            "version": "1.0",
            "items": [PromptRecordOut.from_record(record) for record in records],
        }

    @app.post("/prompts", status_code=status.HTTP_201_CREATED)
    async def create_prompt(payload: PromptCreate, request: Request) -> PromptRecordOut:
        """Record a prompt against an image reference."""
        state_container: AppContainer = request.app.state.container
        record = state_container.prompt_store.append(payload.image_path, payload.prompt)
        return PromptRecordOut.from_record(record)

    @app.delete("/prompts/{record_id}")
    async def delete_prompt(record_id: UUID, request: Request) -> dict[str, str]:
        """Delete one prompt record and its stored image."""
        state_container: AppContainer = request.app.state.container
        if not state_container.chat_service.delete(record_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return {"status": "ok"}

    @app.delete("/prompts")
    async def clear_prompts(request: Request) -> dict[str, str]:
        """Clear the whole prompt history."""
        state_container: AppContainer = request.app.state.container
        state_container.chat_service.clear_history()
        return {"status": "ok"}

    @app.post("/chat")
    async def chat(payload: ChatRequest, request: Request) -> ChatResponse:
        """Send a prompt with images to the transformation backend."""
        state_container: AppContainer = request.app.state.container
        images = state_container.chat_service.decode_images(payload.images)
        reply = await state_container.chat_service.send(payload.prompt, images)
        return ChatResponse(
            record=PromptRecordOut.from_record(reply.record),
            text=reply.text,
            image_paths=reply.image_paths,
            remote_urls=reply.remote_urls,
        )

    @app.post("/chat/stream")
    async def chat_stream(payload: ChatRequest, request: Request) -> StreamingResponse:
        """Stream the transformation reply as newline-delimited JSON."""
        state_container: AppContainer = request.app.state.container
        images = state_container.chat_service.decode_images(payload.images)
        stream = state_container.chat_service.start_stream(payload.prompt, images)

        async def events() -> AsyncIterator[str]:
            yield ChatStreamEvent(
                type="record", record=PromptRecordOut.from_record(stream.record)
            ).to_line()
            try:
                async for chunk in stream.chunks:
                    yield ChatStreamEvent(
                        type="chunk",
                        text=chunk.text,
                        image_paths=chunk.image_paths,
                        remote_urls=chunk.remote_urls,
                        done=chunk.done,
                    ).to_line()
            except TransformError as exc:
                # Headers are already sent, so the failure travels in the body.
                logger.warning(
                    "Streamed transformation failed", extra={"error": str(exc)}
                )
                yield ChatStreamEvent(
                    type="error", detail=_format_transform_error(state_container, exc)
                ).to_line()

        return StreamingResponse(events(), media_type="application/x-ndjson")

    @app.get("/gallery")
    async def list_gallery(request: Request) -> dict[str, object]:
        """Return generated images, newest first."""
        state_container: AppContainer = request.app.state.container
        items = state_container.chat_service.gallery()
        return {
            "version": "1.0",
            "items": [GalleryItemOut.from_item(item) for item in items],
        }

    @app.delete("/gallery/{item_id}")
    async def delete_gallery_item(item_id: UUID, request: Request) -> dict[str, str]:
        """Delete one generated image from the gallery."""
        state_container: AppContainer = request.app.state.container
        if not state_container.chat_service.delete_gallery_item(item_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return {"status": "ok"}

    @app.get("/images/{name}")
    async def get_image(name: str, request: Request) -> Response:
        """Serve a stored image by the file name in its `images/` path."""
        state_container: AppContainer = request.app.state.container
        data = state_container.image_storage.load(f"{IMAGES_PREFIX}{name}")
        if data is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return Response(content=data, media_type=detect_mime_type(data))

    return app


def _decision(
    state_container: AppContainer, resource: Resource, action: PermissionAction
) -> PermissionDecisionOut:
    state = state_container.permission_gate.snapshot().get(resource)
    return PermissionDecisionOut(
        resource=resource.value,
        action=action,
        state=PermissionStateOut.from_state(state) if state else None,
    )


def _format_transform_error(state_container: AppContainer, exc: Exception) -> str:
    """Return a user-facing error message with local debug info."""
    fallback = "Sorry, the image couldn't be transformed. Please try again."
    if state_container.settings.environment == "local":
        detail = f"{type(exc).__name__}: {exc}".strip()
        if detail:
            return f"{fallback} (debug: {detail})"
    return fallback
