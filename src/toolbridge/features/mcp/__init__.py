"""
MCP Module - Pont JSON-RPC stdio vers les serveurs d'outils.

Couches (de la feuille vers l'entrée):
- framing: frames JSON délimitées par `\\n`
- correlation: requêtes en vol par id
- envelope: dépliage des résultats JSON-dans-JSON
- registry: outils et statuts des services
- connection: processus enfant et boucle de lecture
- dispatcher: ToolBridge, point d'entrée unique des appels
"""

from .framing import encode_frame, decode_frame, read_frames, FrameWriter
from .correlation import CorrelationTable, PendingRequest
from .envelope import unwrap_envelope, nested_text
from .registry import ToolRegistry, ToolDescriptor, ServiceStatus, ServiceState
from .ui_resources import UIResource, UIResourceStore, validate_resource, extract_resources
from .connection import ToolServerConnection
from .dispatcher import ToolBridge, ToolCallOutcome

__all__ = [
    # Framing
    "encode_frame",
    "decode_frame",
    "read_frames",
    "FrameWriter",
    # Correlation
    "CorrelationTable",
    "PendingRequest",
    # Envelope
    "unwrap_envelope",
    "nested_text",
    # Registry
    "ToolRegistry",
    "ToolDescriptor",
    "ServiceStatus",
    "ServiceState",
    # UI resources
    "UIResource",
    "UIResourceStore",
    "validate_resource",
    "extract_resources",
    # Connection / dispatch
    "ToolServerConnection",
    "ToolBridge",
    "ToolCallOutcome",
]
