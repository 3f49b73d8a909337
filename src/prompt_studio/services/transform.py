"""Image transformation service."""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError as PydanticValidationError

from prompt_studio.domain.transform import TransformChunk, TransformResult
from prompt_studio.errors import TransformError, ValidationError
from prompt_studio.services.images import to_base64

DEFAULT_MODEL = "gemini-2.5-flash-image-preview"


class TransformClient(Protocol):
    """Interface for the remote image-transformation backend."""

    async def generate(
        self, *, model: str, prompt: str, images: list[str]
    ) -> dict[str, object]:
        """Return the raw backend response for a prompt and base64 images."""

    def stream(
        self, *, model: str, prompt: str, images: list[str]
    ) -> AsyncIterator[dict[str, object]]:
        """Yield raw streamed chunks for a prompt and base64 images."""


@dataclass
class TransformService:
    """Service that prepares transformation requests and validates results."""

    client: TransformClient
    model: str = DEFAULT_MODEL

    async def transform(self, prompt: str, images: list[bytes]) -> TransformResult:
        """Send a prompt with images and return the validated result."""
        _require_prompt(prompt)
        raw = await self.client.generate(
            model=self.model,
            prompt=prompt,
            images=[to_base64(image) for image in images],
        )
        try:
            result = TransformResult.model_validate(raw)
        except PydanticValidationError as exc:
            raise TransformError("Backend returned an unexpected payload") from exc
        if result.error:
            raise TransformError(result.error)
        return result

    async def transform_stream(
        self, prompt: str, images: list[bytes]
    ) -> AsyncIterator[TransformChunk]:
        """Yield validated chunks until the backend signals completion."""
        _require_prompt(prompt)
        async for raw in self.client.stream(
            model=self.model,
            prompt=prompt,
            images=[to_base64(image) for image in images],
        ):
            try:
                chunk = TransformChunk.model_validate(raw)
            except PydanticValidationError as exc:
                raise TransformError("Backend streamed an unexpected chunk") from exc
            if chunk.error:
                raise TransformError(chunk.error)
            yield chunk
            if chunk.done:
                return


def _require_prompt(prompt: str) -> None:
    if not prompt or not prompt.strip():
        raise ValidationError("Prompt text must not be empty")
