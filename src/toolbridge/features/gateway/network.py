"""toolbridge.features.gateway.network

Network Policy Interceptor pour la pile HTTP côté UI.

Deux points d'accroche:
1. observation: toutes les requêtes correspondant à un motif large
   (diagnostic uniquement, aucune mutation)
2. réécriture: réponses des origines partenaires / dev local; clés d'en-têtes
   en minuscules et Content-Security-Policy remplacée par une politique
   permissive explicite. Les autres en-têtes passent inchangés.

Les motifs suivent le format des filtres d'URL du navigateur hôte
(`https://*.example.com/*`).
"""

from __future__ import annotations

import fnmatch
import logging
from typing import Iterable, Mapping

import httpx

from ...config.settings import NetworkPolicyConfig

logger = logging.getLogger(__name__)

CSP_HEADER = "content-security-policy"
CSP_REPORT_ONLY_HEADER = "content-security-policy-report-only"


def url_matches(url: str, patterns: Iterable[str]) -> bool:
    return any(fnmatch.fnmatchcase(url, pattern) for pattern in patterns)


class NetworkPolicyInterceptor:
    def __init__(self, config: NetworkPolicyConfig | None = None) -> None:
        self._config = config or NetworkPolicyConfig()

    @property
    def csp(self) -> str:
        return self._config.csp

    def should_rewrite(self, url: str) -> bool:
        return url_matches(url, self._config.rewrite_patterns)

    def observe_request(self, url: str, resource_type: str | None = None) -> None:
        """Journalise une requête sortante (ne modifie rien)."""
        if url_matches(url, self._config.observe_patterns):
            logger.debug(f"[NETWORK] requête {resource_type or 'http'}: {url}")

    def rewrite_header_items(self, url: str, items: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
        """Réécrit une liste `(clé, valeur)`; les en-têtes répétés sont conservés."""
        items = list(items)
        if not self.should_rewrite(url):
            return items

        rewritten: list[tuple[str, str]] = []
        for key, value in items:
            key = key.lower()
            if key == CSP_HEADER:
                logger.debug(f"[NETWORK] CSP d'origine remplacée pour {url}: {value}")
            elif key != CSP_REPORT_ONLY_HEADER:
                rewritten.append((key, value))
        rewritten.append((CSP_HEADER, self._config.csp))
        logger.info(f"[NETWORK] CSP permissive appliquée: {url}")
        return rewritten

    def rewrite_response_headers(self, url: str, headers: Mapping[str, str]) -> dict[str, str]:
        """Retourne les en-têtes à appliquer à la réponse de `url`.

        Vue dictionnaire de `rewrite_header_items`: des clés qui ne diffèrent
        que par la casse sont fusionnées, valeurs jointes par `", "` comme le
        fait `httpx.Headers`.
        """
        if not self.should_rewrite(url):
            return dict(headers)
        items = headers.multi_items() if isinstance(headers, httpx.Headers) else headers.items()
        return dict(httpx.Headers(self.rewrite_header_items(url, items)))

    # ------------------------------------------------------------------
    # Intégration httpx
    # ------------------------------------------------------------------

    async def _on_request(self, request: httpx.Request) -> None:
        self.observe_request(str(request.url))

    async def _on_response(self, response: httpx.Response) -> None:
        url = str(response.request.url)
        if not self.should_rewrite(url):
            return
        # multi_items: les en-têtes répétés (set-cookie) sont conservés
        response.headers = httpx.Headers(self.rewrite_header_items(url, response.headers.multi_items()))

    def install(self, client: httpx.AsyncClient) -> httpx.AsyncClient:
        """Branche les deux points d'accroche sur un client httpx."""
        hooks = client.event_hooks
        hooks.setdefault("request", []).append(self._on_request)
        hooks.setdefault("response", []).append(self._on_response)
        client.event_hooks = hooks
        return client
