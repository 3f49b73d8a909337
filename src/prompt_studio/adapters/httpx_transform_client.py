"""HTTP client for the hosted image-transformation backend."""

import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

import httpx

from prompt_studio.errors import TransformError
from prompt_studio.services.transform import TransformClient

logger = logging.getLogger(__name__)

_DONE_MARKER = "[DONE]"


@dataclass
class HttpxTransformClient(TransformClient):
    """Transform client implemented with httpx."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 60.0

    @classmethod
    def create(cls, base_url: str, timeout: float = 60.0) -> "HttpxTransformClient":
        """Create a transform client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def generate(
        self, *, model: str, prompt: str, images: list[str]
    ) -> dict[str, object]:
        """Call the generate endpoint and return the decoded JSON body."""
        payload = _build_payload(model=model, prompt=prompt, images=images)
        payload["stream"] = False
        try:
            response = await self.http_client.post(
                f"{self.base_url}/v1/generate", json=payload, timeout=self.timeout
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransformError(
                f"Backend returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TransformError(f"Backend request failed: {exc}") from exc
        try:
            return response.json()
        except ValueError as exc:
            raise TransformError("Backend returned invalid JSON") from exc

    async def stream(
        self, *, model: str, prompt: str, images: list[str]
    ) -> AsyncIterator[dict[str, object]]:
        """Call the generate endpoint in streaming mode and yield chunks."""
        payload = _build_payload(model=model, prompt=prompt, images=images)
        payload["stream"] = True
        try:
            async with self.http_client.stream(
                "POST",
                f"{self.base_url}/v1/generate",
                json=payload,
                timeout=self.timeout,
            ) as response:
                if response.is_error:
                    raise TransformError(
                        f"Backend returned HTTP {response.status_code}"
                    )
                async for line in response.aiter_lines():
                    chunk = parse_stream_line(line)
                    if chunk is None:
                        continue
                    if chunk == {"done": True}:
                        return
                    yield chunk
                    if chunk.get("done") is True:
                        return
        except httpx.HTTPError as exc:
            raise TransformError(f"Backend stream failed: {exc}") from exc

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _build_payload(*, model: str, prompt: str, images: list[str]) -> dict[str, object]:
    payload: dict[str, object] = {"model": model, "contents": prompt}
    if images:
        payload["images"] = images
    return payload


def parse_stream_line(line: str) -> dict[str, object] | None:
    """Decode a server-sent event line or a bare JSON line.

    Returns {"done": True} for the end-of-stream marker and None for lines
    that carry nothing usable.
    """
    text = line.strip()
    if not text:
        return None
    if text.startswith("data:"):
        text = text[len("data:") :].strip()
    if text == _DONE_MARKER:
        return {"done": True}
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Skipping undecodable stream line", extra={"line": text})
        return None
    if not isinstance(decoded, dict):
        logger.warning("Skipping non-object stream line", extra={"line": text})
        return None
    return decoded
