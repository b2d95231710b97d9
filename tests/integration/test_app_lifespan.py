"""Tests d'intégration - cycle de vie de l'application et flux WebSocket.

fastapi.testclient.TestClient exécute le lifespan (startup/shutdown),
contrairement à httpx.ASGITransport.
"""

from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from toolbridge.config.settings import Settings, ToolServerConfig
from toolbridge.main import create_app
from toolbridge.services import runtime
from toolbridge.services.websocket_manager import create_connection_manager


def _wait_for_ws_clients(count: int, timeout_s: float = 2.0) -> None:
    manager = create_connection_manager()
    deadline = time.monotonic() + timeout_s
    while manager.get_connection_count() < count:
        assert time.monotonic() < deadline, "client WebSocket non enregistré"
        time.sleep(0.01)


@pytest.fixture
def settings() -> Settings:
    # auto_connect désactivé: aucun processus lancé au démarrage
    return Settings(servers={"paragon": ToolServerConfig(server_id="paragon", command="paragon-mcp")})


@pytest.mark.integration
def test_lifespan_initialises_and_resets_runtime(settings):
    with TestClient(create_app(settings)) as client:
        assert runtime.get_bridge().settings is settings
        health = client.get("/health")
        assert health.json()["servers"] == {"configured": ["paragon"], "connected": []}

    # Arrêt: instances globales oubliées
    assert runtime._bridge is None


@pytest.mark.integration
def test_auth_notification_is_pushed_on_websocket(settings):
    with TestClient(create_app(settings)) as client:
        with client.websocket_connect("/ws") as ws:
            _wait_for_ws_clients(1)

            response = client.post("/api/ipc/mcp:notifyAuthenticationComplete", json={"service": "gmail"})
            assert response.status_code == 200

            assert ws.receive_json() == {
                "channel": "mcp:auth-status-updated",
                "payload": {"service": "gmail", "status": "authenticated"},
            }


@pytest.mark.integration
def test_auto_connect_failure_does_not_block_startup():
    settings = Settings(
        servers={
            "broken": ToolServerConfig(
                server_id="broken",
                command="/nonexistent/toolbridge-server",
                auto_connect=True,
            )
        }
    )
    with TestClient(create_app(settings)) as client:
        assert client.get("/health").json()["servers"]["connected"] == []
