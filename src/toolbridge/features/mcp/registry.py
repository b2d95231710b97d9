"""toolbridge.features.mcp.registry

Tool Registry: outils annoncés par chaque serveur et statut
d'authentification par service.

Invariant: un nom d'outil est unique au sein d'un serveur, mais peut exister
sur plusieurs serveurs. La recherche se fait toujours par (server_id, nom).
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping

logger = logging.getLogger(__name__)


class ServiceState(str, Enum):
    AUTHENTICATED = "authenticated"
    NOT_AUTHENTICATED = "not_authenticated"
    ERROR = "error"

    @classmethod
    def parse(cls, value: object) -> "ServiceState":
        """Convertit une valeur libre; toute valeur inconnue devient ERROR."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.AUTHENTICATED if value else cls.NOT_AUTHENTICATED
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.ERROR


@dataclass(frozen=True)
class ToolDescriptor:
    """Outil annoncé par `tools/list`."""

    server_id: str
    name: str
    description: str = ""
    input_schema: Mapping[str, object] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, server_id: str, data: Mapping[str, object]) -> "ToolDescriptor":
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError(f"Outil sans nom sur {server_id}: {data!r}")
        schema = data.get("inputSchema")
        return cls(
            server_id=server_id,
            name=name,
            description=str(data.get("description") or ""),
            input_schema=dict(schema) if isinstance(schema, Mapping) else {},
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "serverId": self.server_id,
            "name": self.name,
            "description": self.description,
            "inputSchema": dict(self.input_schema),
        }


@dataclass(frozen=True)
class ServiceStatus:
    """Statut d'authentification d'un service externe."""

    id: str
    name: str
    status: ServiceState

    def to_dict(self) -> dict[str, object]:
        return {"id": self.id, "name": self.name, "status": self.status.value}


class ToolRegistry:
    """Catalogue en mémoire, reconstruit à chaque session de connexion.

    Un seul verrou d'écriture: les mises à jour sont des remplacements
    complets (outils) ou des écrasements d'un champ (statuts).
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tools: dict[str, dict[str, ToolDescriptor]] = {}
        self._services: dict[str, ServiceStatus] = {}

    # ------------------------------------------------------------------
    # Outils
    # ------------------------------------------------------------------

    def register_tools(
        self,
        server_id: str,
        tools: Iterable[ToolDescriptor | Mapping[str, object]],
    ) -> list[ToolDescriptor]:
        """Remplace la liste complète des outils d'un serveur."""
        by_name: dict[str, ToolDescriptor] = {}
        for tool in tools:
            if not isinstance(tool, ToolDescriptor):
                try:
                    tool = ToolDescriptor.from_dict(server_id, tool)
                except ValueError as e:
                    logger.warning(f"[REGISTRY] {e}")
                    continue
            elif tool.server_id != server_id:
                raise ValueError(f"Outil {tool.name} appartient à {tool.server_id}, pas à {server_id}")

            if tool.name in by_name:
                logger.warning(f"[REGISTRY] {server_id}: outil {tool.name} annoncé deux fois, dernier conservé")
            by_name[tool.name] = tool

        with self._lock:
            self._tools[server_id] = by_name

        logger.info(f"[REGISTRY] {server_id}: {len(by_name)} outil(s) enregistré(s)")
        return list(by_name.values())

    def remove_server(self, server_id: str) -> None:
        with self._lock:
            self._tools.pop(server_id, None)

    def find_tool(self, server_id: str, name: str) -> ToolDescriptor | None:
        with self._lock:
            return self._tools.get(server_id, {}).get(name)

    def list_tools(self, server_id: str | None = None) -> list[ToolDescriptor]:
        with self._lock:
            if server_id is not None:
                return list(self._tools.get(server_id, {}).values())
            return [tool for tools in self._tools.values() for tool in tools.values()]

    def server_ids(self) -> list[str]:
        with self._lock:
            return list(self._tools)

    def find_servers_for_tool(self, name: str) -> list[str]:
        """Serveurs exposant un outil de ce nom (pour désambiguïsation côté UI)."""
        with self._lock:
            return [server_id for server_id, tools in self._tools.items() if name in tools]

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------

    def update_service_status(
        self,
        service_id: str,
        status: ServiceState | str,
        *,
        name: str | None = None,
    ) -> ServiceStatus:
        """Écrase le statut d'un service (last-write-wins)."""
        state = ServiceState.parse(status)
        with self._lock:
            previous = self._services.get(service_id)
            display_name = name or (previous.name if previous else service_id)
            updated = ServiceStatus(id=service_id, name=display_name, status=state)
            self._services[service_id] = updated
        logger.info(f"[REGISTRY] service {service_id} -> {state.value}")
        return updated

    def get_service_status(self, service_id: str) -> ServiceStatus | None:
        with self._lock:
            return self._services.get(service_id)

    def list_authenticated_services(self) -> list[ServiceStatus]:
        """Instantané des statuts connus (pas une vue vivante)."""
        with self._lock:
            return list(self._services.values())

    def clear_services(self) -> None:
        with self._lock:
            self._services.clear()
