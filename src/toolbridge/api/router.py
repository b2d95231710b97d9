"""
Router principal de l'API.
"""
from fastapi import APIRouter

from .routes import (
    health,
    tools,
    services,
    ui_resources,
    ipc,
    oauth,
    network,
    dialogs,
    websocket,
)

# Router principal
api_router = APIRouter()

api_router.include_router(health.router, prefix="", tags=["health"])
api_router.include_router(websocket.router, prefix="", tags=["websocket"])

api_router.include_router(tools.router, prefix="/api", tags=["tools"])
api_router.include_router(services.router, prefix="/api", tags=["services"])
api_router.include_router(ui_resources.router, prefix="/api", tags=["ui-resources"])
api_router.include_router(ipc.router, prefix="/api", tags=["ipc"])
api_router.include_router(oauth.router, prefix="/api", tags=["oauth"])
api_router.include_router(network.router, prefix="/api", tags=["network"])
api_router.include_router(dialogs.router, prefix="/api", tags=["dialogs"])
