"""Permission gate deciding how the UI reaches protected resources."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Protocol

from prompt_studio.domain.permissions import (
    AuthorizationStatus,
    PermissionAction,
    PermissionState,
    Resource,
)
from prompt_studio.errors import OSCapabilityUnavailable

logger = logging.getLogger(__name__)


class PermissionPlatform(Protocol):
    """Interface to the OS permission APIs."""

    def get_authorization_status(self, resource: Resource) -> AuthorizationStatus:
        """Return the current OS-reported status without side effects."""

    async def request_authorization(self, resource: Resource) -> AuthorizationStatus:
        """Show the OS prompt and return the resolved status."""

    async def open_app_settings(self) -> None:
        """Ask the OS to present the settings screen for this app."""


def decide(resource: Resource, status: AuthorizationStatus) -> PermissionAction:
    """Map a resource status to the next UI action."""
    if status is AuthorizationStatus.AUTHORIZED:
        return PermissionAction.PROCEED
    if resource is Resource.PHOTO_LIBRARY:
        if status in {AuthorizationStatus.NOT_DETERMINED, AuthorizationStatus.LIMITED}:
            return PermissionAction.REQUEST_OS_AUTHORIZATION
        return PermissionAction.REDIRECT_TO_SETTINGS
    if status is AuthorizationStatus.NOT_DETERMINED:
        return PermissionAction.SHOW_IN_APP_PROMPT
    return PermissionAction.NO_OP


def decide_after_request(
    resource: Resource, status: AuthorizationStatus
) -> PermissionAction:
    """Map the status returned by an OS request to the follow-up action."""
    if status in {AuthorizationStatus.AUTHORIZED, AuthorizationStatus.LIMITED}:
        return PermissionAction.PROCEED
    if status is AuthorizationStatus.NOT_DETERMINED:
        return PermissionAction.NO_OP
    if resource is Resource.PHOTO_LIBRARY:
        return PermissionAction.REDIRECT_TO_SETTINGS
    return PermissionAction.NO_OP


def _needs_os_request(resource: Resource, status: AuthorizationStatus) -> bool:
    if status is AuthorizationStatus.NOT_DETERMINED:
        return True
    return resource is Resource.PHOTO_LIBRARY and status is AuthorizationStatus.LIMITED


@dataclass
class PermissionGate:
    """Tracks per-resource permission state and drives prompt decisions.

    The gate is meant to be driven from a single event loop. Each resource
    has its own state, so requests for different resources may be in flight
    at the same time; a resource never has more than one OS request pending.
    """

    platform: PermissionPlatform
    _states: dict[Resource, PermissionState] = field(default_factory=dict)
    _pending: set[Resource] = field(default_factory=set)
    _dismissed: set[Resource] = field(default_factory=set)

    def query_status(self, resource: Resource) -> AuthorizationStatus:
        """Read the OS status for a resource and refresh the cached state."""
        try:
            status = self.platform.get_authorization_status(resource)
        except OSCapabilityUnavailable:
            logger.warning(
                "Permission capability unavailable", extra={"resource": resource.value}
            )
            status = AuthorizationStatus.RESTRICTED
        if not isinstance(status, AuthorizationStatus):
            logger.warning(
                "Unrecognized authorization status",
                extra={"resource": resource.value, "status": repr(status)},
            )
            status = AuthorizationStatus.RESTRICTED
        self._store(resource, status)
        return status

    def decide(
        self, resource: Resource, status: AuthorizationStatus
    ) -> PermissionAction:
        """Return the next UI action for a resource in the given status."""
        return decide(resource, status)

    def evaluate(self, resource: Resource) -> PermissionAction:
        """Query the status and decide, raising the in-app prompt flag if needed."""
        action = decide(resource, self.query_status(resource))
        if action is PermissionAction.SHOW_IN_APP_PROMPT:
            if resource in self._dismissed or resource in self._pending:
                return PermissionAction.NO_OP
            self._set_prompt(resource, show=True)
        return action

    async def confirm_prompt(self, resource: Resource) -> PermissionAction:
        """Handle the user accepting the in-app explanation."""
        self._set_prompt(resource, show=False)
        return await self.authorize(resource)

    def dismiss_prompt(self, resource: Resource) -> None:
        """Handle the user declining the in-app explanation."""
        self._set_prompt(resource, show=False)
        self._dismissed.add(resource)

    async def authorize(self, resource: Resource) -> PermissionAction:
        """Request OS authorization and return the follow-up action."""
        if resource in self._pending:
            return PermissionAction.NO_OP
        status = await self.request_authorization(resource)
        return decide_after_request(resource, status)

    async def request_authorization(self, resource: Resource) -> AuthorizationStatus:
        """Ask the OS for access when the current status allows it."""
        if resource in self._pending:
            logger.info(
                "Authorization request already pending",
                extra={"resource": resource.value},
            )
            return self._status(resource)
        current = self.query_status(resource)
        if not _needs_os_request(resource, current):
            return current
        self._pending.add(resource)
        try:
            status = await self.platform.request_authorization(resource)
        except OSCapabilityUnavailable:
            logger.warning(
                "Permission request unavailable", extra={"resource": resource.value}
            )
            status = AuthorizationStatus.RESTRICTED
        finally:
            self._pending.discard(resource)
        if not isinstance(status, AuthorizationStatus):
            status = AuthorizationStatus.RESTRICTED
        self._store(resource, status)
        return status

    async def open_system_settings(self) -> None:
        """Ask the OS to show app settings, ignoring any failure."""
        try:
            await self.platform.open_app_settings()
        except Exception:
            logger.exception("Failed to open system settings")

    def begin_screen_cycle(self) -> Mapping[Resource, PermissionState]:
        """Forget dismissed prompts and re-query every resource."""
        self._dismissed.clear()
        for resource in Resource:
            self.query_status(resource)
        return self.snapshot()

    def snapshot(self) -> Mapping[Resource, PermissionState]:
        """Return a read-only copy of the current permission state."""
        return MappingProxyType(dict(self._states))

    def is_pending(self, resource: Resource) -> bool:
        """Return True while an OS request for the resource is outstanding."""
        return resource in self._pending

    def _status(self, resource: Resource) -> AuthorizationStatus:
        state = self._states.get(resource)
        if state is None:
            return AuthorizationStatus.NOT_DETERMINED
        return state.status

    def _store(self, resource: Resource, status: AuthorizationStatus) -> None:
        previous = self._states.get(resource)
        show = previous.show_request_prompt if previous else False
        if status is not AuthorizationStatus.NOT_DETERMINED:
            show = False
        self._states[resource] = PermissionState(
            status=status, show_request_prompt=show
        )

    def _set_prompt(self, resource: Resource, show: bool) -> None:
        self._states[resource] = PermissionState(
            status=self._status(resource), show_request_prompt=show
        )
