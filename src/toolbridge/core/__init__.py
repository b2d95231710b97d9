"""
Cœur du Tool Bridge.
Modules indépendants sans dépendances externes au package.
"""

from .exceptions import (
    BridgeError,
    ConfigurationError,
    TransportError,
    ProtocolError,
    RequestTimeoutError,
    ToolNotFoundError,
    ServerNotConfiguredError,
    ToolCallError,
    EnvelopeParseError,
    CapabilityRejectedError,
)
from .constants import (
    JSONRPC_VERSION,
    MCP_PROTOCOL_VERSION,
    MAX_UNWRAP_DEPTH,
    PERMISSIVE_CSP,
)

__all__ = [
    # Exceptions
    "BridgeError",
    "ConfigurationError",
    "TransportError",
    "ProtocolError",
    "RequestTimeoutError",
    "ToolNotFoundError",
    "ServerNotConfiguredError",
    "ToolCallError",
    "EnvelopeParseError",
    "CapabilityRejectedError",
    # Constants
    "JSONRPC_VERSION",
    "MCP_PROTOCOL_VERSION",
    "MAX_UNWRAP_DEPTH",
    "PERMISSIVE_CSP",
]
