"""
Routes API - statut d'authentification des services externes.
"""
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...core.exceptions import BridgeError
from ...features.mcp import ToolBridge, ServiceState
from ...services.runtime import get_bridge
from ..errors import bridge_error_response

router = APIRouter()


class ServiceStatusUpdate(BaseModel):
    status: ServiceState
    name: str | None = None


@router.get("/services")
async def list_services(bridge: ToolBridge = Depends(get_bridge)):
    """Instantané des statuts (polling UI)."""
    return {"services": [status.to_dict() for status in bridge.registry.list_authenticated_services()]}


@router.put("/services/{service_id}/status")
async def update_service_status(
    service_id: str,
    update: ServiceStatusUpdate,
    bridge: ToolBridge = Depends(get_bridge),
):
    status = bridge.registry.update_service_status(service_id, update.status, name=update.name)
    return status.to_dict()


@router.post("/services/refresh/{server_id}")
async def refresh_services(server_id: str, bridge: ToolBridge = Depends(get_bridge)):
    """Relit les statuts auprès du serveur d'outils."""
    try:
        statuses = await bridge.refresh_service_statuses(server_id)
    except BridgeError as e:
        return bridge_error_response(e)
    return {"services": [status.to_dict() for status in statuses]}
