"""toolbridge.features.gateway.deeplink

Deep link de fin d'OAuth: `<scheme>://oauth/callback?code=<code>&state=<state>`.
"""

from __future__ import annotations

from urllib.parse import parse_qs, urlencode, urlsplit


def _require(value: object, name: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"Paramètre OAuth manquant: {name}")
    return value


def build_deep_link(scheme: str, code: object, state: object) -> str:
    """Construit le deep link; `code` et `state` sont obligatoires."""
    query = urlencode({"code": _require(code, "code"), "state": _require(state, "state")})
    return f"{scheme}://oauth/callback?{query}"


def parse_deep_link(url: str, *, scheme: str | None = None) -> tuple[str, str]:
    """Retourne (code, state) d'un deep link de callback."""
    parts = urlsplit(url)
    if scheme is not None and parts.scheme != scheme:
        raise ValueError(f"Schéma inattendu: {parts.scheme}")
    if parts.netloc != "oauth" or parts.path != "/callback":
        raise ValueError(f"Deep link inattendu: {url}")

    params = parse_qs(parts.query)
    code = params.get("code", [None])[0]
    state = params.get("state", [None])[0]
    return _require(code, "code"), _require(state, "state")
