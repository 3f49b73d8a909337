"""Models for image-transformation results."""

from pydantic import BaseModel, Field, model_validator


class TransformImage(BaseModel):
    """Single image returned by the backend."""

    url: str | None = None
    base64: str | None = None
    data: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_string(cls, value: object) -> object:
        if isinstance(value, str):
            return {"base64": value}
        return value

    @property
    def image_data(self) -> str | None:
        """Return whichever payload the backend filled in."""
        return self.base64 or self.data or self.url


class TransformUsage(BaseModel):
    """Token accounting reported by the backend."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class TransformResult(BaseModel):
    """Structured output of a transformation request."""

    text: str | None = None
    images: list[TransformImage] = Field(default_factory=list)
    model: str | None = None
    usage: TransformUsage | None = None
    error: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _null_images_to_empty(cls, value: object) -> object:
        if isinstance(value, dict) and value.get("images") is None:
            return {**value, "images": []}
        return value


class TransformChunk(BaseModel):
    """Single streamed fragment of a transformation result."""

    result: TransformResult | None = None
    model: str | None = None
    done: bool | None = None
    error: str | None = None
