"""Endpoints the mobile shell uses to relay OS permission state."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Request

from prompt_studio.api.models import StatusReport
from prompt_studio.domain.permissions import Resource  # noqa: TC001

if TYPE_CHECKING:
    from prompt_studio.containers import AppContainer

router = APIRouter(prefix="/device", tags=["device"])


@router.put("/permissions/{resource}")
async def report_status(
    resource: Resource, report: StatusReport, request: Request
) -> dict[str, str]:
    """Record the status the shell observed for a resource."""
    container: AppContainer = request.app.state.container
    status = container.device_bridge.report_status(resource, report.status)
    return {"resource": resource.value, "status": status.value}


@router.post("/permissions/{resource}/resolution")
async def resolve_request(
    resource: Resource, report: StatusReport, request: Request
) -> dict[str, object]:
    """Complete an outstanding OS authorization request."""
    container: AppContainer = request.app.state.container
    resolved = container.device_bridge.resolve_authorization(resource, report.status)
    status = container.device_bridge.statuses[resource]
    return {"resource": resource.value, "status": status.value, "resolved": resolved}


@router.get("/commands")
async def drain_commands(request: Request) -> dict[str, object]:
    """Return and clear the commands queued for the shell."""
    container: AppContainer = request.app.state.container
    return {"commands": container.device_bridge.drain_commands()}
