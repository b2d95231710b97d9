"""
Tool Bridge - Application FastAPI Factory.
Serveurs d'outils MCP en stdio + passerelle de capacités pour l'UI.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config.loader import load_config
from .config.settings import Settings
from .services.runtime import init_runtime, get_dialogs, reset_runtime
from .services.websocket_manager import create_connection_manager
from .api.router import api_router

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Factory pour créer l'application FastAPI.

    Args:
        settings: Configuration explicite (sinon lue depuis config.toml)

    Returns:
        Instance configurée de FastAPI
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Gestion du cycle de vie de l'application."""
        await _startup(app, settings)
        yield
        await _shutdown(app)

    app = FastAPI(
        title="Tool Bridge",
        description="Pont entre une UI non fiable et des serveurs d'outils MCP",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    return app


async def _startup(app: FastAPI, settings: Optional[Settings]):
    """Initialisation au démarrage."""
    if settings is None:
        settings = Settings.from_config(load_config())

    bridge = init_runtime(settings)
    bridge.set_event_sink(create_connection_manager().publish)
    app.state.bridge = bridge

    logger.info(f"[STARTUP] {len(settings.servers)} serveur(s) d'outils configuré(s)")

    for server_id, server in settings.servers.items():
        if not server.auto_connect:
            continue
        try:
            await bridge.connect(server_id)
        except Exception as e:
            logger.error(f"[STARTUP] connexion automatique impossible ({server_id}): {e}")


async def _shutdown(app: FastAPI):
    """Arrêt propre: processus enfants, dialogues en attente."""
    bridge = getattr(app.state, "bridge", None)
    if bridge is not None:
        await bridge.shutdown()
        bridge.set_event_sink(None)
    get_dialogs().cancel_all()
    reset_runtime()
    logger.info("[SHUTDOWN] Tool Bridge arrêté")
