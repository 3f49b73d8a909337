"""Domain models for permission gating."""

from dataclasses import dataclass
from enum import Enum


class Resource(str, Enum):
    """Protected device resources."""

    CAMERA = "camera"
    PHOTO_LIBRARY = "photo_library"
    NOTIFICATIONS = "notifications"


class AuthorizationStatus(str, Enum):
    """OS-reported authorization tier for a resource."""

    NOT_DETERMINED = "not_determined"
    AUTHORIZED = "authorized"
    LIMITED = "limited"
    DENIED = "denied"
    RESTRICTED = "restricted"


class PermissionAction(str, Enum):
    """What the UI should do next for a gated action."""

    PROCEED = "proceed"
    SHOW_IN_APP_PROMPT = "show_in_app_prompt"
    REQUEST_OS_AUTHORIZATION = "request_os_authorization"
    REDIRECT_TO_SETTINGS = "redirect_to_settings"
    NO_OP = "no_op"


@dataclass(frozen=True)
class PermissionState:
    """Last observed status for a resource and whether to show the in-app prompt."""

    status: AuthorizationStatus
    show_request_prompt: bool = False
