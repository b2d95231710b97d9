"""Tests d'intégration - API HTTP (httpx.ASGITransport, connexions factices).

Le lifespan n'est pas exécuté par ASGITransport: les instances globales sont
remplacées via `app.dependency_overrides`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import AsyncGenerator

import httpx
import pytest
from fastapi import FastAPI

from toolbridge.features.gateway import CapabilityGateway, DialogBroker, NetworkPolicyInterceptor
from toolbridge.features.mcp import ToolBridge
from toolbridge.main import create_app
from toolbridge.services.runtime import (
    get_bridge,
    get_dialogs,
    get_gateway,
    get_interceptor,
    get_settings,
)


def _double_encoded(value: object) -> dict:
    inner = json.dumps(value)
    middle = json.dumps({"content": [{"type": "text", "text": inner}]})
    return {"content": [{"type": "text", "text": middle}]}


@pytest.fixture
def events():
    return []


@pytest.fixture
def bridge(stub_settings, stub_factory, events) -> ToolBridge:
    stub_factory.tools["paragon"] = [
        {"name": "gmail_send_email"},
        {"name": "get_authenticated_services"},
        {"name": "ui_card"},
    ]
    stub_factory.results["paragon"] = {
        "gmail_send_email": _double_encoded({"success": True}),
        "get_authenticated_services": _double_encoded(
            [{"id": "gmail", "name": "Gmail", "status": "authenticated"}]
        ),
        "ui_card": {
            "content": [
                {"type": "text", "text": "{}"},
                {"type": "resource", "resource": {"uri": "ui://card/1", "mimeType": "text/html"}},
            ]
        },
    }
    bridge = ToolBridge(stub_settings, gateway=CapabilityGateway(), connection_factory=stub_factory)

    async def sink(channel, payload):
        events.append((channel, payload))

    bridge.set_event_sink(sink)
    return bridge


@pytest.fixture
def dialogs() -> DialogBroker:
    return DialogBroker()


@pytest.fixture
def app(stub_settings, bridge, dialogs) -> FastAPI:
    app = create_app(stub_settings)
    app.dependency_overrides[get_settings] = lambda: stub_settings
    app.dependency_overrides[get_bridge] = lambda: bridge
    gateway = CapabilityGateway()
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_dialogs] = lambda: dialogs
    app.dependency_overrides[get_interceptor] = lambda: NetworkPolicyInterceptor(stub_settings.network)
    return app


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health_and_servers(async_client: httpx.AsyncClient):
    health = await async_client.get("/health")
    assert health.status_code == 200
    assert health.json()["servers"]["configured"] == ["paragon", "other"]

    connect = await async_client.post("/api/servers/paragon/connect")
    assert connect.status_code == 200
    assert {tool["name"] for tool in connect.json()["tools"]} == {
        "gmail_send_email",
        "get_authenticated_services",
        "ui_card",
    }

    servers = (await async_client.get("/api/servers")).json()["servers"]
    assert {server["id"]: server["connected"] for server in servers} == {"paragon": True, "other": False}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_call_tool_returns_unwrapped_result(async_client: httpx.AsyncClient):
    response = await async_client.post(
        "/api/tools/paragon/gmail_send_email/call",
        json={"arguments": {"to": "a@b.c"}},
    )
    assert response.status_code == 200
    assert response.json() == {"success": True, "result": {"success": True}}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_call_tool_error_mapping(async_client: httpx.AsyncClient):
    missing_server = await async_client.post("/api/tools/nope/x/call", json={})
    assert missing_server.status_code == 404
    assert missing_server.json()["error"]["code"] == "server_not_configured"

    missing_tool = await async_client.post("/api/tools/paragon/nope/call", json={})
    assert missing_tool.status_code == 404
    assert missing_tool.json()["error"]["code"] == "tool_not_found"

    invalid_timeout = await async_client.post(
        "/api/tools/paragon/gmail_send_email/call",
        json={"timeout_s": 0},
    )
    assert invalid_timeout.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_services_routes(async_client: httpx.AsyncClient):
    refreshed = await async_client.post("/api/services/refresh/paragon")
    assert refreshed.json()["services"] == [{"id": "gmail", "name": "Gmail", "status": "authenticated"}]

    updated = await async_client.put("/api/services/gmail/status", json={"status": "error"})
    assert updated.json()["status"] == "error"

    listed = (await async_client.get("/api/services")).json()["services"]
    assert listed == [{"id": "gmail", "name": "Gmail", "status": "error"}]

    invalid = await async_client.put("/api/services/gmail/status", json={"status": "maybe"})
    assert invalid.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_ui_resource_routes(async_client: httpx.AsyncClient, events):
    call = await async_client.post("/api/tools/paragon/ui_card/call", json={})
    resource_id = call.json()["uiResourceIds"][0]

    listed = (await async_client.get("/api/ui-resources")).json()["resources"]
    assert [entry["resourceId"] for entry in listed] == [resource_id]
    assert (await async_client.get(f"/api/ui-resources/{resource_id}")).status_code == 200

    assert (await async_client.delete(f"/api/ui-resources/{resource_id}")).status_code == 200
    assert (await async_client.delete(f"/api/ui-resources/{resource_id}")).status_code == 404
    assert (await async_client.get(f"/api/ui-resources/{resource_id}")).status_code == 404
    assert [channel for channel, _ in events] == ["mcp:ui-resource-available", "mcp:ui-resource-removed"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_ipc_allowed_channel_reaches_handler(async_client: httpx.AsyncClient):
    response = await async_client.post(
        "/api/ipc/mcp:action:callTool",
        json={"serverId": "paragon", "toolName": "gmail_send_email", "args": {"to": "a@b.c"}},
    )
    assert response.status_code == 200
    assert response.json()["result"] == {"success": True}

    invalid = await async_client.post("/api/ipc/mcp:action:callTool", json={"serverId": "paragon"})
    assert invalid.status_code == 400

    unknown = await async_client.post("/api/ipc/mcp:action:doesNotExist", json={})
    assert unknown.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_ipc_rejected_channel_is_silent(async_client: httpx.AsyncClient, bridge, stub_factory):
    response = await async_client.post("/api/ipc/evil-channel", json={"serverId": "paragon"})

    assert response.status_code == 204
    assert response.content == b""
    assert stub_factory.created == []


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.parametrize(
    "body",
    [
        {"json": [1, 2]},
        {"json": "text"},
        {"content": b"{not json", "headers": {"content-type": "application/json"}},
    ],
)
async def test_ipc_rejected_channel_checked_before_body(async_client: httpx.AsyncClient, caplog, body):
    with caplog.at_level(logging.WARNING, logger="toolbridge.features.gateway.capability"):
        response = await async_client.post("/api/ipc/evil-channel", **body)

    assert response.status_code == 204
    assert response.content == b""
    assert any("evil-channel" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_ipc_allowed_channel_with_non_object_body_is_400(async_client: httpx.AsyncClient):
    listed = await async_client.post("/api/ipc/mcp:action:listTools", json=[1, 2])
    assert listed.status_code == 400
    assert listed.json()["error"]["code"] == "invalid_payload"

    unreadable = await async_client.post(
        "/api/ipc/mcp:action:listTools",
        content=b"{not json",
        headers={"content-type": "application/json"},
    )
    assert unreadable.status_code == 400

    empty = await async_client.post("/api/ipc/mcp:action:listTools")
    assert empty.status_code == 200


@pytest.mark.asyncio
@pytest.mark.integration
async def test_ipc_auth_notification_updates_status(async_client: httpx.AsyncClient, bridge, events):
    response = await async_client.post(
        "/api/ipc/mcp:notifyAuthenticationComplete",
        json={"service": "gmail"},
    )
    assert response.json()["service"]["status"] == "authenticated"
    assert events == [("mcp:auth-status-updated", {"service": "gmail", "status": "authenticated"})]

    missing = await async_client.post("/api/ipc/mcp:notifyAuthenticationFailed", json={})
    assert missing.status_code == 400


@pytest.mark.asyncio
@pytest.mark.integration
async def test_ipc_dialog_action_resolves_dialog(async_client: httpx.AsyncClient, dialogs, events):
    dialog_id = dialogs.open()
    waiter = asyncio.create_task(dialogs.wait(dialog_id, timeout_s=5.0))
    await asyncio.sleep(0)

    response = await async_client.post(f"/api/ipc/dialog-action-{dialog_id}", json={"action": "confirm"})

    assert response.json() == {"success": True}
    assert await waiter == {"action": "confirm"}
    assert events == [("dialog-result", {"dialogId": dialog_id, "action": "confirm"})]

    again = await async_client.post(f"/api/ipc/dialog-action-{dialog_id}", json={"action": "confirm"})
    assert again.json() == {"success": False}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_host_dialog_round_trip(async_client: httpx.AsyncClient, dialogs, events):
    opening = asyncio.create_task(
        async_client.post(
            "/api/dialogs",
            json={"title": "Limite atteinte", "message": "Passer à Pro ?", "actions": ["cancel", "upgrade"]},
        )
    )

    async def _requested():
        while not events:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_requested(), timeout=5.0)
    channel, request = events[0]
    assert channel == "dialog-request"
    assert request["actions"] == ["cancel", "upgrade"]

    # Réponse brute de l'UI (chaîne d'action)
    answer = await async_client.post(f"/api/ipc/{request['channel']}", json="upgrade")
    assert answer.json() == {"success": True}

    response = await asyncio.wait_for(opening, timeout=5.0)
    assert response.json() == {"result": {"action": "upgrade"}}
    assert events[-1] == ("dialog-result", {"dialogId": request["dialogId"], "action": "upgrade"})
    assert len(dialogs) == 0

    expired = await async_client.post("/api/dialogs", json={"title": "t", "message": "m", "timeout_s": 0.05})
    assert expired.json() == {"result": {"action": "cancel"}}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_oauth_callback(async_client: httpx.AsyncClient):
    missing = await async_client.get("/api/oauth/callback", params={"code": "abc"})
    assert missing.status_code == 400

    ok = await async_client.get("/api/oauth/callback", params={"code": "abc", "state": "xyz"})
    assert ok.status_code == 200
    assert "leviousa://oauth/callback?code=abc&amp;state=xyz" in ok.text


@pytest.mark.asyncio
@pytest.mark.integration
async def test_network_policy_routes(async_client: httpx.AsyncClient):
    policy = (await async_client.get("/api/network/policy")).json()
    assert "http://localhost:3000/*" in policy["rewrite_patterns"]

    rewritten = await async_client.post(
        "/api/network/rewrite-headers",
        json={
            "url": "http://localhost:3000/app",
            "headers": {"Content-Security-Policy": "default-src 'none'", "X-Test": "1"},
        },
    )
    body = rewritten.json()
    assert body["rewritten"] is True
    assert body["headers"]["content-security-policy"] == policy["csp"]
    assert body["headers"]["x-test"] == "1"
