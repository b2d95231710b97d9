"""
Services applicatifs du Tool Bridge.
"""

from .websocket_manager import ConnectionManager, create_connection_manager
from .runtime import (
    init_runtime,
    reset_runtime,
    get_settings,
    get_bridge,
    get_gateway,
    get_dialogs,
    get_interceptor,
    create_ui_http_client,
)

__all__ = [
    "ConnectionManager",
    "create_connection_manager",
    "init_runtime",
    "reset_runtime",
    "get_settings",
    "get_bridge",
    "get_gateway",
    "get_dialogs",
    "get_interceptor",
    "create_ui_http_client",
]
