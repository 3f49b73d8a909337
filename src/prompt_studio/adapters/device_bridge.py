"""Permission platform backed by the mobile shell."""

import asyncio
import logging
from dataclasses import dataclass, field

from prompt_studio.domain.permissions import AuthorizationStatus, Resource
from prompt_studio.errors import OSCapabilityUnavailable
from prompt_studio.services.permissions import PermissionPlatform

logger = logging.getLogger(__name__)

_STATUS_NAMES: dict[str, AuthorizationStatus] = {
    "notdetermined": AuthorizationStatus.NOT_DETERMINED,
    "not_determined": AuthorizationStatus.NOT_DETERMINED,
    "prompt": AuthorizationStatus.NOT_DETERMINED,
    "authorized": AuthorizationStatus.AUTHORIZED,
    "granted": AuthorizationStatus.AUTHORIZED,
    "provisional": AuthorizationStatus.AUTHORIZED,
    "ephemeral": AuthorizationStatus.AUTHORIZED,
    "limited": AuthorizationStatus.LIMITED,
    "denied": AuthorizationStatus.DENIED,
    "restricted": AuthorizationStatus.RESTRICTED,
}

# PHAuthorizationStatus / AVAuthorizationStatus raw values.
_STATUS_CODES: dict[int, AuthorizationStatus] = {
    0: AuthorizationStatus.NOT_DETERMINED,
    1: AuthorizationStatus.RESTRICTED,
    2: AuthorizationStatus.DENIED,
    3: AuthorizationStatus.AUTHORIZED,
    4: AuthorizationStatus.LIMITED,
}


def map_raw_status(resource: Resource, raw: object) -> AuthorizationStatus:
    """Convert a shell-reported status into an AuthorizationStatus.

    Unknown values become Restricted. Limited only exists for the photo
    library, so other resources reporting it are treated as Restricted too.
    """
    status: AuthorizationStatus | None = None
    if isinstance(raw, int) and not isinstance(raw, bool):
        status = _STATUS_CODES.get(raw)
    elif isinstance(raw, str):
        key = raw.strip().lower()
        status = _STATUS_NAMES.get(key)
        if status is None and key.isdigit():
            status = _STATUS_CODES.get(int(key))
    if status is None:
        logger.warning(
            "Unrecognized raw authorization status",
            extra={"resource": resource.value, "raw": repr(raw)},
        )
        return AuthorizationStatus.RESTRICTED
    limited = status is AuthorizationStatus.LIMITED
    if limited and resource is not Resource.PHOTO_LIBRARY:
        return AuthorizationStatus.RESTRICTED
    return status


@dataclass
class DeviceBridge(PermissionPlatform):
    """Relays permission queries and requests to the mobile shell.

    The shell reports statuses as it observes them, drains queued commands,
    and posts back the outcome of each OS prompt it was asked to show.
    """

    statuses: dict[Resource, AuthorizationStatus] = field(default_factory=dict)
    commands: list[dict[str, str]] = field(default_factory=list)
    _waiters: dict[Resource, asyncio.Future[AuthorizationStatus]] = field(
        default_factory=dict
    )
    _callers: dict[Resource, int] = field(default_factory=dict)

    def report_status(self, resource: Resource, raw: object) -> AuthorizationStatus:
        """Record a status observed by the shell."""
        status = map_raw_status(resource, raw)
        self.statuses[resource] = status
        return status

    def get_authorization_status(self, resource: Resource) -> AuthorizationStatus:
        """Return the last status the shell reported."""
        status = self.statuses.get(resource)
        if status is None:
            raise OSCapabilityUnavailable(f"No status reported for {resource.value}")
        return status

    async def request_authorization(self, resource: Resource) -> AuthorizationStatus:
        """Queue an OS prompt for the shell and wait for its resolution."""
        waiter = self._waiters.get(resource)
        if waiter is None or waiter.done():
            waiter = asyncio.get_running_loop().create_future()
            self._waiters[resource] = waiter
            self.commands.append(
                {"type": "request_authorization", "resource": resource.value}
            )
        self._callers[resource] = self._callers.get(resource, 0) + 1
        try:
            # A cancelled caller must not cancel the prompt for the others.
            return await asyncio.shield(waiter)
        finally:
            remaining = self._callers[resource] - 1
            if remaining:
                self._callers[resource] = remaining
            else:
                # Nobody is left waiting, so the next request asks the shell again.
                self._callers.pop(resource, None)
                if self._waiters.get(resource) is waiter:
                    self._waiters.pop(resource)
                    waiter.cancel()

    def resolve_authorization(self, resource: Resource, raw: object) -> bool:
        """Complete an outstanding request with the shell's result.

        Returns False when no request for the resource was waiting.
        """
        status = self.report_status(resource, raw)
        waiter = self._waiters.get(resource)
        if waiter is None or waiter.done():
            return False
        waiter.set_result(status)
        return True

    async def open_app_settings(self) -> None:
        """Queue a settings redirect for the shell."""
        self.commands.append({"type": "open_settings"})

    def drain_commands(self) -> list[dict[str, str]]:
        """Return and forget every queued command."""
        drained = list(self.commands)
        self.commands.clear()
        return drained

    def has_pending_request(self, resource: Resource) -> bool:
        """Return True while a request for the resource awaits resolution."""
        waiter = self._waiters.get(resource)
        return waiter is not None and not waiter.done()
