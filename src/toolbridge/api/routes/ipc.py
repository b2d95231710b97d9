"""
Routes API - canal IPC de l'UI vers l'hôte.

Chaque message passe par la Capability Gateway avant d'atteindre un handler.
Un canal refusé répond 204 sans corps: l'UI n'apprend rien de la raison.
"""
import json
from typing import Any, Awaitable, Callable, Dict

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from ...core.exceptions import BridgeError
from ...features.gateway import (
    CapabilityGateway,
    DialogBroker,
    MessageState,
    dialog_id_from_channel,
)
from ...features.mcp import ToolBridge
from ...services.runtime import get_bridge, get_dialogs, get_gateway
from ..errors import bridge_error_response

router = APIRouter()

_UNREADABLE = object()

IpcHandler = Callable[[ToolBridge, DialogBroker, Dict[str, Any]], Awaitable[Any]]


def _require_str(payload: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    raise ValueError(f"Champ requis manquant: {keys[0]}")


async def _call_tool(bridge: ToolBridge, dialogs: DialogBroker, payload: Dict[str, Any]):
    server_id = _require_str(payload, "serverId")
    tool_name = _require_str(payload, "toolName")
    args = payload.get("args") or {}
    if not isinstance(args, dict):
        raise ValueError("args doit être un objet")
    outcome = await bridge.invoke_tool(server_id, tool_name, args)
    return outcome.to_dict()


async def _list_tools(bridge: ToolBridge, dialogs: DialogBroker, payload: Dict[str, Any]):
    server_id = payload.get("serverId")
    return {"tools": [tool.to_dict() for tool in bridge.registry.list_tools(server_id)]}


async def _get_authentication_status(bridge: ToolBridge, dialogs: DialogBroker, payload: Dict[str, Any]):
    return {"services": [status.to_dict() for status in bridge.registry.list_authenticated_services()]}


async def _refresh_services(bridge: ToolBridge, dialogs: DialogBroker, payload: Dict[str, Any]):
    statuses = await bridge.refresh_service_statuses(_require_str(payload, "serverId"))
    return {"services": [status.to_dict() for status in statuses]}


async def _list_resources(bridge: ToolBridge, dialogs: DialogBroker, payload: Dict[str, Any]):
    return {"resources": [entry.to_dict() for entry in bridge.ui_resources.list_resources()]}


async def _remove_resource(bridge: ToolBridge, dialogs: DialogBroker, payload: Dict[str, Any]):
    resource_id = _require_str(payload, "resourceId")
    return {"success": await bridge.remove_ui_resource(resource_id)}


async def _auth_complete(bridge: ToolBridge, dialogs: DialogBroker, payload: Dict[str, Any]):
    status = await bridge.handle_auth_notification(payload, success=True)
    return {"success": True, "service": status.to_dict()}


async def _auth_failed(bridge: ToolBridge, dialogs: DialogBroker, payload: Dict[str, Any]):
    status = await bridge.handle_auth_notification(payload, success=False)
    return {"success": True, "service": status.to_dict()}


IPC_HANDLERS: Dict[str, IpcHandler] = {
    "mcp:action:callTool": _call_tool,
    "mcp:action:listTools": _list_tools,
    "mcp:action:getAuthenticationStatus": _get_authentication_status,
    "mcp:action:refreshServices": _refresh_services,
    "mcp:action:listResources": _list_resources,
    "mcp:action:removeResource": _remove_resource,
    "mcp:notifyAuthenticationComplete": _auth_complete,
    "mcp:notifyAuthenticationFailed": _auth_failed,
}


async def _dialog_action(bridge: ToolBridge, dialogs: DialogBroker, dialog_id: str, payload: Any):
    if not isinstance(payload, dict):
        payload = {"action": payload}
    resolved = dialogs.resolve(dialog_id, payload)
    if resolved:
        await bridge.emit("dialog-result", {"dialogId": dialog_id, **payload})
    return {"success": resolved}


async def _read_payload(request: Request) -> Any:
    """Corps JSON brut; la validation vient après le contrôle du canal."""
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return _UNREADABLE


@router.post("/ipc/{channel}")
async def ipc_message(
    channel: str,
    request: Request,
    bridge: ToolBridge = Depends(get_bridge),
    gateway: CapabilityGateway = Depends(get_gateway),
    dialogs: DialogBroker = Depends(get_dialogs),
):
    """Message UI -> hôte, filtré par la Capability Gateway."""

    async def handle(checked_channel: str, body: Any):
        if body is _UNREADABLE:
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": {"code": "invalid_payload", "message": "Corps JSON illisible"}},
            )
        if body is None:
            body = {}
        dialog_id = dialog_id_from_channel(checked_channel)
        if dialog_id is not None:
            return await _dialog_action(bridge, dialogs, dialog_id, body)
        if not isinstance(body, dict):
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": {"code": "invalid_payload", "message": "Objet JSON attendu"}},
            )
        handler = IPC_HANDLERS.get(checked_channel)
        if handler is None:
            return JSONResponse(
                status_code=404,
                content={"success": False, "error": {"code": "unknown_channel", "message": "Canal sans handler"}},
            )
        try:
            return await handler(bridge, dialogs, body)
        except BridgeError as e:
            return bridge_error_response(e)
        except ValueError as e:
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": {"code": "invalid_payload", "message": str(e)}},
            )

    message = await gateway.forward(channel, await _read_payload(request), handle)
    if message.state is not MessageState.FORWARDED:
        return Response(status_code=204)
    return message.result
