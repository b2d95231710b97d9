"""
Routes API - serveurs d'outils et appels d'outils.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...core.exceptions import BridgeError
from ...features.mcp import ToolBridge
from ...services.runtime import get_bridge
from ..errors import bridge_error_response

router = APIRouter()


class ToolCallRequest(BaseModel):
    arguments: Dict[str, Any] = Field(default_factory=dict)
    timeout_s: Optional[float] = Field(default=None, gt=0)


@router.get("/servers")
async def list_servers(bridge: ToolBridge = Depends(get_bridge)):
    """Serveurs configurés et état de leur connexion."""
    connected = set(bridge.connected_server_ids())
    servers = []
    for server_id in bridge.configured_server_ids():
        conn = bridge.get_connection(server_id)
        servers.append({
            "id": server_id,
            "connected": server_id in connected,
            "serverInfo": conn.server_info if conn else {},
            "toolsCount": len(bridge.registry.list_tools(server_id)),
        })
    return {"servers": servers}


@router.post("/servers/{server_id}/connect")
async def connect_server(server_id: str, bridge: ToolBridge = Depends(get_bridge)):
    try:
        conn = await bridge.connect(server_id)
    except BridgeError as e:
        return bridge_error_response(e)
    return {
        "success": True,
        "serverId": server_id,
        "serverInfo": conn.server_info,
        "tools": [tool.to_dict() for tool in bridge.registry.list_tools(server_id)],
    }


@router.post("/servers/{server_id}/disconnect")
async def disconnect_server(server_id: str, bridge: ToolBridge = Depends(get_bridge)):
    disconnected = await bridge.disconnect(server_id)
    return {"success": disconnected, "serverId": server_id}


@router.get("/tools")
async def list_tools(server_id: Optional[str] = None, bridge: ToolBridge = Depends(get_bridge)):
    return {"tools": [tool.to_dict() for tool in bridge.registry.list_tools(server_id)]}


@router.post("/tools/{server_id}/{tool_name}/call")
async def call_tool(
    server_id: str,
    tool_name: str,
    request: ToolCallRequest,
    bridge: ToolBridge = Depends(get_bridge),
):
    """Appelle un outil via le Request Dispatcher."""
    try:
        outcome = await bridge.invoke_tool(
            server_id,
            tool_name,
            request.arguments,
            timeout_s=request.timeout_s,
        )
    except BridgeError as e:
        return bridge_error_response(e)
    return outcome.to_dict()
