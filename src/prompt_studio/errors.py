"""Domain error types."""


class PromptStudioError(Exception):
    """Base class for application errors."""


class ValidationError(PromptStudioError):
    """Raised when caller input is rejected before any write happens."""


class FormatError(PromptStudioError):
    """Raised when a persisted document is unreadable or has an unknown version."""


class OSCapabilityUnavailable(PromptStudioError):
    """Raised by a platform adapter that cannot answer for a resource."""


class TransformError(PromptStudioError):
    """Raised when the image-transformation backend fails."""
