"""
Configuration des tests pytest.
"""
import os
import sys
from pathlib import Path

import pytest

# Ajoute src au path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from toolbridge.config.settings import BridgeConfig, Settings, ToolServerConfig  # noqa: E402
from toolbridge.core.exceptions import TransportError  # noqa: E402
from toolbridge.features.mcp import ToolRegistry  # noqa: E402

FAKE_SERVER_PATH = Path(__file__).resolve().parent / "fixtures" / "fake_tool_server_stdio.py"


def pytest_configure(config):
    """Enregistre les marqueurs utilisés par la suite."""
    config.addinivalue_line("markers", "asyncio: marque un test comme asynchrone")
    config.addinivalue_line("markers", "unit: tests unitaires (aucun processus enfant)")
    config.addinivalue_line("markers", "integration: tests lançant le faux serveur d'outils stdio")


@pytest.fixture
def fake_server_config() -> ToolServerConfig:
    """Serveur d'outils réel (sous-processus) basé sur le faux serveur stdio."""
    return ToolServerConfig(
        server_id="fake",
        command=sys.executable,
        args=[str(FAKE_SERVER_PATH)],
    )


@pytest.fixture
def fast_bridge_config() -> BridgeConfig:
    """Délais courts pour que les tests de timeout restent rapides."""
    return BridgeConfig(request_timeout_s=5.0, init_timeout_s=5.0, shutdown_grace_s=0.5)


class StubConnection:
    """Connexion factice: réponses `tools/call` programmées par nom d'outil.

    Mime la surface de ToolServerConnection utilisée par ToolBridge.
    """

    def __init__(self, config: ToolServerConfig, bridge_config: BridgeConfig, registry: ToolRegistry):
        self.config = config
        self.bridge_config = bridge_config
        self.registry = registry
        self.server_info = {"name": f"stub-{config.server_id}"}
        self.calls: list[tuple[str, dict]] = []
        self.results: dict[str, object] = {}
        self.tools: list[dict] = []
        self.alive = False
        self.closed = False

    @property
    def server_id(self) -> str:
        return self.config.server_id

    @property
    def is_alive(self) -> bool:
        return self.alive

    async def start(self):
        self.alive = True
        self.registry.register_tools(self.server_id, self.tools)
        return self

    async def close(self):
        self.alive = False
        self.closed = True
        self.registry.remove_server(self.server_id)

    async def request(self, method, params=None, *, timeout_s=None):
        if not self.alive:
            raise TransportError("Connexion fermée", server_id=self.server_id)
        self.calls.append((method, params))
        result = self.results[params["name"]]
        if isinstance(result, BaseException):
            raise result
        return result


class StubFactory:
    """Fabrique de StubConnection; `tools` / `results` sont partagés par serveur."""

    def __init__(self):
        self.tools: dict[str, list[dict]] = {}
        self.results: dict[str, dict[str, object]] = {}
        self.created: list[StubConnection] = []

    def __call__(self, config, bridge_config, registry):
        conn = StubConnection(config, bridge_config, registry)
        conn.tools = self.tools.get(config.server_id, [])
        conn.results = self.results.setdefault(config.server_id, {})
        self.created.append(conn)
        return conn


@pytest.fixture
def stub_factory() -> StubFactory:
    return StubFactory()


@pytest.fixture
def stub_settings() -> Settings:
    """Deux serveurs configurés (jamais lancés: connexions factices)."""
    return Settings(
        servers={
            "paragon": ToolServerConfig(server_id="paragon", command="paragon-mcp"),
            "other": ToolServerConfig(server_id="other", command="other-mcp"),
        }
    )
