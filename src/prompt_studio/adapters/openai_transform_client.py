"""OpenAI Images API client for image transformation."""

import io
from collections.abc import AsyncIterator
from dataclasses import dataclass

from openai import AsyncOpenAI, OpenAIError

from prompt_studio.errors import TransformError
from prompt_studio.services.images import decode_base64_image, detect_mime_type
from prompt_studio.services.transform import TransformClient


@dataclass
class OpenAITransformClient(TransformClient):
    """Transform client backed by the OpenAI Images API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAITransformClient":
        """Create an OpenAI transform client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def generate(
        self, *, model: str, prompt: str, images: list[str]
    ) -> dict[str, object]:
        """Edit the given images, or generate one when none are given."""
        try:
            if images:
                files = [
                    _as_upload(index, encoded) for index, encoded in enumerate(images)
                ]
                response = await self.client.images.edit(
                    model=model,
                    image=files if len(files) > 1 else files[0],
                    prompt=prompt,
                )
            else:
                response = await self.client.images.generate(
                    model=model, prompt=prompt
                )
        except OpenAIError as exc:
            raise TransformError(f"OpenAI request failed: {exc}") from exc
        encoded_images = [
            item.b64_json for item in response.data or [] if item.b64_json
        ]
        if not encoded_images:
            raise TransformError("OpenAI returned no images")
        return {"images": encoded_images, "model": model}

    async def stream(
        self, *, model: str, prompt: str, images: list[str]
    ) -> AsyncIterator[dict[str, object]]:
        """Yield the whole result as a single final chunk."""
        result = await self.generate(model=model, prompt=prompt, images=images)
        yield {"result": result, "model": model, "done": True}

    async def close(self) -> None:
        """Close the underlying OpenAI client."""
        await self.client.close()


def _as_upload(index: int, encoded: str) -> tuple[str, io.BytesIO, str]:
    data = decode_base64_image(encoded)
    mime_type = detect_mime_type(data)
    extension = mime_type.split("/", maxsplit=1)[1]
    return (f"image{index}.{extension}", io.BytesIO(data), mime_type)
