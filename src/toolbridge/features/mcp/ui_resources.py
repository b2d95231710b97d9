"""toolbridge.features.mcp.ui_resources

Ressources UI retournées par les outils (artefacts affichables).

Arène indexée par id généré: création, lecture et suppression explicites.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from ...core.constants import ALLOWED_UI_MIME_TYPES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UIResource:
    id: str
    server_id: str
    tool_name: str
    resource: object
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, object]:
        return {
            "resourceId": self.id,
            "serverId": self.server_id,
            "tool": self.tool_name,
            "resource": self.resource,
            "timestamp": self.timestamp.isoformat(),
        }


def validate_resource(resource: object) -> bool:
    """Vérifie qu'une ressource peut être rendue côté UI."""
    if not isinstance(resource, dict):
        return False
    if not resource.get("mimeType") and not resource.get("uri"):
        return False
    mime_type = resource.get("mimeType")
    if mime_type and mime_type not in ALLOWED_UI_MIME_TYPES:
        logger.warning(f"[UI RESOURCES] type MIME non supporté: {mime_type}")
        return False
    return True


def extract_resources(result: object) -> list[object]:
    """Ressources candidates dans un résultat brut de `tools/call`."""
    if not isinstance(result, dict):
        return []
    if result.get("type") in ("ui_resource", "resource"):
        return [result.get("resource", result)]
    content = result.get("content")
    if not isinstance(content, list):
        return []
    return [
        item["resource"]
        for item in content
        if isinstance(item, dict) and item.get("type") == "resource" and item.get("resource")
    ]


class UIResourceStore:
    """Stockage en mémoire des ressources UI actives."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, UIResource] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def add(self, server_id: str, tool_name: str, resource: object) -> str:
        entry = UIResource(id=uuid.uuid4().hex, server_id=server_id, tool_name=tool_name, resource=resource)
        with self._lock:
            self._entries[entry.id] = entry
        return entry.id

    def get(self, resource_id: str) -> UIResource | None:
        with self._lock:
            return self._entries.get(resource_id)

    def remove(self, resource_id: str) -> UIResource | None:
        with self._lock:
            return self._entries.pop(resource_id, None)

    def list_resources(self) -> list[UIResource]:
        with self._lock:
            return sorted(self._entries.values(), key=lambda entry: entry.timestamp)

    def clear_server(self, server_id: str) -> list[str]:
        with self._lock:
            removed = [rid for rid, entry in self._entries.items() if entry.server_id == server_id]
            for rid in removed:
                del self._entries[rid]
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
