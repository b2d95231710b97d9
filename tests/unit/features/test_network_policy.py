"""Tests unitaires - Network Policy Interceptor.

Objectifs:
    - Origines partenaires / dev local: CSP remplacée, clés en minuscules
    - Autres origines: en-têtes inchangés
    - Intégration httpx via event_hooks (MockTransport, aucun appel réseau)
"""

from __future__ import annotations

import httpx
import pytest

from toolbridge.config.settings import NetworkPolicyConfig
from toolbridge.core.constants import PERMISSIVE_CSP
from toolbridge.features.gateway import NetworkPolicyInterceptor, url_matches


@pytest.fixture
def interceptor():
    return NetworkPolicyInterceptor()


@pytest.mark.unit
@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://connect.useparagon.com/oauth", True),
        ("https://passport.useparagon.com/x/y", True),
        ("https://api.useparagon.com/", True),
        ("http://localhost:3000/app", True),
        ("http://localhost:3001/app", False),
        ("https://example.com/useparagon.com/", False),
    ],
)
def test_should_rewrite(interceptor, url, expected):
    assert interceptor.should_rewrite(url) is expected


@pytest.mark.unit
def test_url_matches_observe_patterns():
    assert url_matches("https://example.com/a", ("https://*/*",))
    assert not url_matches("ftp://example.com/a", ("https://*/*", "http://*/*"))


@pytest.mark.unit
def test_rewrite_replaces_csp_and_lowercases_keys(interceptor):
    headers = {
        "Content-Security-Policy": "default-src 'none'",
        "Content-Security-Policy-Report-Only": "default-src 'none'",
        "X-Frame-Options": "DENY",
    }

    rewritten = interceptor.rewrite_response_headers("https://connect.useparagon.com/ui", headers)

    assert rewritten == {
        "content-security-policy": PERMISSIVE_CSP,
        "x-frame-options": "DENY",
    }


@pytest.mark.unit
def test_header_keys_differing_only_by_case_are_kept(interceptor):
    items = [
        ("X-Trace", "a"),
        ("x-trace", "b"),
        ("Content-Security-Policy", "default-src 'none'"),
    ]
    url = "https://connect.useparagon.com/ui"

    assert interceptor.rewrite_header_items(url, items) == [
        ("x-trace", "a"),
        ("x-trace", "b"),
        ("content-security-policy", PERMISSIVE_CSP),
    ]

    merged = interceptor.rewrite_response_headers(url, httpx.Headers(items))
    assert merged == {"x-trace": "a, b", "content-security-policy": PERMISSIVE_CSP}


@pytest.mark.unit
def test_other_origins_are_untouched(interceptor):
    headers = {"Content-Security-Policy": "default-src 'none'", "X-Custom": "1"}
    assert interceptor.rewrite_response_headers("https://example.com/", headers) == headers


@pytest.mark.unit
def test_custom_csp_from_config():
    interceptor = NetworkPolicyInterceptor(
        NetworkPolicyConfig(rewrite_patterns=["https://partner.test/*"], csp="default-src 'self'")
    )
    rewritten = interceptor.rewrite_response_headers("https://partner.test/x", {})
    assert rewritten == {"content-security-policy": "default-src 'self'"}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_httpx_hooks_rewrite_partner_responses(interceptor):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers=[
                ("Content-Security-Policy", "default-src 'none'"),
                ("Set-Cookie", "a=1"),
                ("Set-Cookie", "b=2"),
            ],
            text="ok",
        )

    client = interceptor.install(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    async with client:
        partner = await client.get("https://connect.useparagon.com/ui")
        other = await client.get("https://example.com/")

    assert partner.headers["content-security-policy"] == PERMISSIVE_CSP
    assert partner.headers.get_list("set-cookie") == ["a=1", "b=2"]
    assert other.headers["content-security-policy"] == "default-src 'none'"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_ui_http_client_has_policy_installed():
    from toolbridge.config.settings import Settings
    from toolbridge.services import runtime

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"Content-Security-Policy": "default-src 'none'"})

    runtime.init_runtime(Settings())
    try:
        async with runtime.create_ui_http_client(transport=httpx.MockTransport(handler)) as client:
            response = await client.get("http://localhost:3000/app")
    finally:
        runtime.reset_runtime()

    assert response.headers["content-security-policy"] == PERMISSIVE_CSP
