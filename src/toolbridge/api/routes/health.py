"""
Routes API pour le health check.
"""
from fastapi import APIRouter, Depends

from ...features.mcp import ToolBridge
from ...services.runtime import get_bridge
from ...services.websocket_manager import create_connection_manager

router = APIRouter()


@router.get("/health")
async def health_check(bridge: ToolBridge = Depends(get_bridge)):
    """Health check: serveurs connectés, outils, ressources UI."""
    return {
        "status": "ok",
        "servers": {
            "configured": bridge.configured_server_ids(),
            "connected": bridge.connected_server_ids(),
        },
        "tools_count": len(bridge.registry.list_tools()),
        "ui_resources_count": len(bridge.ui_resources),
        "websocket_clients": create_connection_manager().get_connection_count(),
    }
