"""
Routes API par domaine.
"""

from . import health
from . import tools
from . import services
from . import ui_resources
from . import ipc
from . import oauth
from . import network
from . import dialogs
from . import websocket

__all__ = [
    "health",
    "tools",
    "services",
    "ui_resources",
    "ipc",
    "oauth",
    "network",
    "dialogs",
    "websocket",
]
