"""
Routes API - ressources UI produites par les outils.
"""
from fastapi import APIRouter, Depends, HTTPException

from ...features.mcp import ToolBridge
from ...services.runtime import get_bridge

router = APIRouter()


@router.get("/ui-resources")
async def list_ui_resources(bridge: ToolBridge = Depends(get_bridge)):
    return {"resources": [entry.to_dict() for entry in bridge.ui_resources.list_resources()]}


@router.get("/ui-resources/{resource_id}")
async def get_ui_resource(resource_id: str, bridge: ToolBridge = Depends(get_bridge)):
    entry = bridge.ui_resources.get(resource_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Ressource UI introuvable")
    return entry.to_dict()


@router.delete("/ui-resources/{resource_id}")
async def delete_ui_resource(resource_id: str, bridge: ToolBridge = Depends(get_bridge)):
    if not await bridge.remove_ui_resource(resource_id):
        raise HTTPException(status_code=404, detail="Ressource UI introuvable")
    return {"success": True, "resourceId": resource_id}
