"""
Route WebSocket - flux d'événements hôte -> UI.

Les messages reçus du client sont ignorés: l'UI parle à l'hôte via /api/ipc,
qui passe par la Capability Gateway.
"""
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ...services.websocket_manager import create_connection_manager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Envoie `{channel, payload}` pour chaque événement autorisé:
    - mcp:auth-status-updated
    - mcp:ui-resource-available / mcp:ui-resource-removed
    - dialog-result
    """
    manager = create_connection_manager()
    await manager.connect(websocket)

    try:
        while True:
            await websocket.receive_text()
            logger.debug("[WS] message entrant ignoré (utiliser /api/ipc)")
    except WebSocketDisconnect:
        manager.disconnect(websocket)
    except Exception as e:
        logger.warning(f"[WS] erreur: {e}")
        manager.disconnect(websocket)
