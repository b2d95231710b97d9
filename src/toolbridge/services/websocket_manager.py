"""
Gestionnaire de connexions WebSocket (événements hôte -> UI).
"""
import logging
from typing import Set, Dict, Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Gère les connexions WebSocket actives."""

    def __init__(self):
        self.active_connections: Set["WebSocket"] = set()

    async def connect(self, websocket: "WebSocket"):
        """Accepte une nouvelle connexion WebSocket."""
        await websocket.accept()
        self.active_connections.add(websocket)

    def disconnect(self, websocket: "WebSocket"):
        """Déconnecte une connexion WebSocket."""
        self.active_connections.discard(websocket)

    async def broadcast(self, message: Dict[str, Any]):
        """
        Diffuse un message à toutes les connexions actives.

        Args:
            message: Message à diffuser (sera converti en JSON)
        """
        disconnected = set()

        for connection in list(self.active_connections):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.debug(f"[WS] envoi impossible, connexion retirée: {e}")
                disconnected.add(connection)

        for conn in disconnected:
            self.active_connections.discard(conn)

    async def publish(self, channel: str, payload: Dict[str, Any]):
        """Diffuse un événement de canal (format `{channel, payload}`)."""
        await self.broadcast({"channel": channel, "payload": payload})

    def get_connection_count(self) -> int:
        """Retourne le nombre de connexions actives."""
        return len(self.active_connections)


# Instance globale du gestionnaire
_manager: Optional[ConnectionManager] = None


def create_connection_manager() -> ConnectionManager:
    """
    Crée ou retourne l'instance globale du gestionnaire de connexions.

    Returns:
        Instance de ConnectionManager
    """
    global _manager
    if _manager is None:
        _manager = ConnectionManager()
    return _manager
