"""toolbridge.features.mcp.dispatcher

Request Dispatcher: point d'entrée unique des appels d'outils.

Aucun appelant ne parle directement à une ToolServerConnection: le passage
par `ToolBridge.invoke_tool` garantit que le dépliage des enveloppes et la
tenue du registre restent cohérents.

Aucun appel n'est rejoué automatiquement: un appel d'outil n'est pas
idempotent (envoi d'email, etc.), la politique de retry appartient à l'appelant.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from ...config.settings import BridgeConfig, Settings, ToolServerConfig
from ...core.constants import METHOD_TOOLS_CALL
from ...core.exceptions import EnvelopeParseError, ServerNotConfiguredError, ToolNotFoundError
from ..gateway.capability import CapabilityGateway, ChannelDecision
from .connection import ToolServerConnection
from .envelope import nested_text, unwrap_envelope
from .registry import ServiceState, ServiceStatus, ToolRegistry
from .ui_resources import UIResourceStore, extract_resources, validate_resource

logger = logging.getLogger(__name__)

EventSink = Callable[[str, dict[str, object]], Awaitable[None]]
ConnectionFactory = Callable[[ToolServerConfig, BridgeConfig, ToolRegistry], ToolServerConnection]

# Canaux hôte -> UI
CHANNEL_AUTH_STATUS_UPDATED = "mcp:auth-status-updated"
CHANNEL_UI_RESOURCE_AVAILABLE = "mcp:ui-resource-available"
CHANNEL_UI_RESOURCE_REMOVED = "mcp:ui-resource-removed"


@dataclass
class ToolCallOutcome:
    """Résultat normalisé d'un appel d'outil."""

    success: bool
    result: object = None
    error: str | None = None
    ui_resource_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"success": self.success, "result": self.result}
        if self.error is not None:
            payload["error"] = self.error
        if self.ui_resource_ids:
            payload["uiResourceIds"] = list(self.ui_resource_ids)
        return payload


class ToolBridge:
    """Possède les connexions, le Tool Registry et les ressources UI."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        registry: ToolRegistry | None = None,
        ui_resources: UIResourceStore | None = None,
        gateway: CapabilityGateway | None = None,
        connection_factory: ConnectionFactory | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._registry = registry if registry is not None else ToolRegistry()
        self._ui_resources = ui_resources if ui_resources is not None else UIResourceStore()
        self._gateway = gateway or CapabilityGateway()
        self._connection_factory = connection_factory or ToolServerConnection
        self._connections: dict[str, ToolServerConnection] = {}
        self._connect_locks: dict[str, asyncio.Lock] = {}
        self._event_sink: EventSink | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def ui_resources(self) -> UIResourceStore:
        return self._ui_resources

    def set_event_sink(self, sink: EventSink | None) -> None:
        """Destination des événements hôte -> UI (WebSocket, tests...)."""
        self._event_sink = sink

    # ------------------------------------------------------------------
    # Connexions
    # ------------------------------------------------------------------

    def configured_server_ids(self) -> list[str]:
        return list(self._settings.servers)

    def connected_server_ids(self) -> list[str]:
        return [server_id for server_id, conn in self._connections.items() if conn.is_alive]

    def get_connection(self, server_id: str) -> ToolServerConnection | None:
        conn = self._connections.get(server_id)
        if conn is not None and conn.is_alive:
            return conn
        return None

    async def connect(self, server_id: str) -> ToolServerConnection:
        """Retourne la connexion active, en la créant à la demande."""
        lock = self._connect_locks.setdefault(server_id, asyncio.Lock())
        async with lock:
            existing = self._connections.get(server_id)
            if existing is not None and existing.is_alive:
                return existing
            if existing is not None:
                # Connexion morte (crash): libère le processus avant de relancer
                self._connections.pop(server_id, None)
                await existing.close()

            config = self._settings.get_server(server_id)
            if config is None:
                raise ServerNotConfiguredError(
                    f"Serveur d'outils non configuré: {server_id}",
                    server_id=server_id,
                )

            conn = self._connection_factory(config, self._settings.bridge, self._registry)
            await conn.start()
            self._connections[server_id] = conn
            logger.info(f"[BRIDGE] {server_id}: connecté")
            return conn

    async def disconnect(self, server_id: str) -> bool:
        conn = self._connections.pop(server_id, None)
        if conn is None:
            return False
        await conn.close()
        for resource_id in self._ui_resources.clear_server(server_id):
            await self.emit(CHANNEL_UI_RESOURCE_REMOVED, {"resourceId": resource_id, "serverId": server_id})
        logger.info(f"[BRIDGE] {server_id}: déconnecté")
        return True

    async def shutdown(self) -> None:
        """Ferme toutes les connexions."""
        connections = list(self._connections.values())
        self._connections.clear()
        if connections:
            await asyncio.gather(*(conn.close() for conn in connections), return_exceptions=True)

    async def reset(self) -> None:
        """Ferme tout et vide l'état en mémoire (reconstruit à la reconnexion)."""
        await self.shutdown()
        self._ui_resources.clear()
        self._registry.clear_services()

    # ------------------------------------------------------------------
    # Appels d'outils
    # ------------------------------------------------------------------

    async def invoke_tool(
        self,
        server_id: str,
        tool_name: str,
        args: dict[str, object] | None = None,
        *,
        timeout_s: float | None = None,
    ) -> ToolCallOutcome:
        """Appelle `tool_name` sur `server_id` et retourne le résultat déplié.

        Raises:
            ServerNotConfiguredError: serveur inconnu
            ToolNotFoundError: outil absent du registre pour ce serveur
            ToolCallError: la réponse JSON-RPC porte un champ `error`
            RequestTimeoutError / TransportError
        """
        conn = await self.connect(server_id)

        if self._registry.find_tool(server_id, tool_name) is None:
            raise ToolNotFoundError(
                f"Outil {tool_name} introuvable sur {server_id}",
                server_id=server_id,
                tool_name=tool_name,
            )

        logger.info(f"[BRIDGE] appel {server_id}/{tool_name}")
        raw = await conn.request(
            METHOD_TOOLS_CALL,
            {"name": tool_name, "arguments": args or {}},
            timeout_s=timeout_s,
        )

        resource_ids = await self._register_ui_resources(server_id, tool_name, raw)

        try:
            value = unwrap_envelope(raw, max_depth=self._settings.bridge.max_unwrap_depth)
        except EnvelopeParseError as e:
            logger.warning(f"[BRIDGE] {server_id}/{tool_name}: enveloppe illisible {e}")
            return ToolCallOutcome(success=False, error=e.message, ui_resource_ids=resource_ids)

        if isinstance(raw, dict) and raw.get("isError") is True:
            error_text = nested_text(raw) or "Erreur de l'outil"
            return ToolCallOutcome(success=False, result=value, error=error_text, ui_resource_ids=resource_ids)

        return ToolCallOutcome(success=True, result=value, ui_resource_ids=resource_ids)

    async def _register_ui_resources(self, server_id: str, tool_name: str, raw: object) -> list[str]:
        ids: list[str] = []
        for resource in extract_resources(raw):
            if not validate_resource(resource):
                logger.warning(f"[BRIDGE] {server_id}/{tool_name}: ressource UI rejetée")
                continue
            resource_id = self._ui_resources.add(server_id, tool_name, resource)
            ids.append(resource_id)
            await self.emit(CHANNEL_UI_RESOURCE_AVAILABLE, {
                "resourceId": resource_id,
                "serverId": server_id,
                "tool": tool_name,
                "resource": resource,
            })
        return ids

    async def remove_ui_resource(self, resource_id: str) -> bool:
        entry = self._ui_resources.remove(resource_id)
        if entry is None:
            return False
        await self.emit(CHANNEL_UI_RESOURCE_REMOVED, {
            "resourceId": entry.id,
            "serverId": entry.server_id,
            "tool": entry.tool_name,
        })
        return True

    # ------------------------------------------------------------------
    # Services / authentification
    # ------------------------------------------------------------------

    async def refresh_service_statuses(self, server_id: str) -> list[ServiceStatus]:
        """Interroge l'outil de statut du serveur et met à jour le registre."""
        outcome = await self.invoke_tool(server_id, self._settings.bridge.status_tool, {})
        if not outcome.success:
            logger.warning(f"[BRIDGE] {server_id}: statut des services illisible ({outcome.error})")
            return self._registry.list_authenticated_services()

        entries = outcome.result
        if isinstance(entries, dict):
            entries = entries.get("services", [])
        if not isinstance(entries, list):
            logger.warning(f"[BRIDGE] {server_id}: statut des services inattendu: {str(entries)[:100]}")
            return self._registry.list_authenticated_services()

        for entry in entries:
            if isinstance(entry, dict) and isinstance(entry.get("id"), str):
                self._registry.update_service_status(
                    entry["id"],
                    entry.get("status", ServiceState.ERROR),
                    name=entry.get("name"),
                )
        return self._registry.list_authenticated_services()

    async def handle_auth_notification(self, payload: dict[str, object], *, success: bool) -> ServiceStatus:
        """Traite une notification de fin (ou d'échec) d'authentification."""
        service_id = payload.get("service") or payload.get("serviceKey") or payload.get("id")
        if not isinstance(service_id, str) or not service_id:
            raise ValueError("Notification d'authentification sans service")

        state = ServiceState.AUTHENTICATED if success else ServiceState.ERROR
        name = payload.get("name") if isinstance(payload.get("name"), str) else None
        status = self._registry.update_service_status(service_id, state, name=name)

        event: dict[str, object] = {"service": service_id, "status": state.value}
        if not success and payload.get("error") is not None:
            event["error"] = payload.get("error")
        await self.emit(CHANNEL_AUTH_STATUS_UPDATED, event)
        return status

    # ------------------------------------------------------------------
    # Événements hôte -> UI
    # ------------------------------------------------------------------

    async def emit(self, channel: str, payload: dict[str, object]) -> bool:
        """Envoie un événement vers l'UI après contrôle du canal entrant."""
        if self._gateway.check_inbound(channel) is not ChannelDecision.ALLOWED:
            return False
        if self._event_sink is None:
            return False
        await self._event_sink(channel, payload)
        return True
