"""toolbridge.features.mcp.correlation

Correlation Table: associe chaque requête en vol à sa complétion.

Règles:
- id entier monotone, unique sur la durée de vie de la connexion
- exactement une complétion par id; une réponse dupliquée ou inconnue est
  une erreur de protocole (journalisée, ignorée)
- aucune garantie FIFO: la corrélation se fait uniquement par id
- un timeout retire la requête de la table; l'appel n'est pas annulé côté
  serveur (at-most-once du point de vue de l'appelant)
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable

from ...core.constants import DEFAULT_REQUEST_TIMEOUT_S, JSONRPC_VERSION
from ...core.exceptions import RequestTimeoutError, ToolCallError

logger = logging.getLogger(__name__)

FrameSender = Callable[[dict[str, object]], Awaitable[None]]


@dataclass
class PendingRequest:
    """Requête émise, en attente de sa réponse."""

    id: int
    method: str
    future: asyncio.Future
    issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _error_message(error: object) -> str:
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return "Erreur serveur"


class CorrelationTable:
    """Table des requêtes en vol d'une connexion."""

    def __init__(self, *, server_id: str, default_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S) -> None:
        self._server_id = server_id
        self._default_timeout_s = default_timeout_s
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def pending_ids(self) -> list[int]:
        return list(self._pending)

    def register(self, method: str) -> PendingRequest:
        """Alloue un id et enregistre la requête."""
        loop = asyncio.get_running_loop()
        pending = PendingRequest(id=next(self._ids), method=method, future=loop.create_future())
        self._pending[pending.id] = pending
        return pending

    def discard(self, request_id: int) -> None:
        self._pending.pop(request_id, None)

    def resolve(self, frame: dict[str, object]) -> bool:
        """Complète la requête correspondant à une frame de réponse.

        Returns:
            False si l'id est inconnu (réponse tardive, dupliquée ou invalide).
        """
        request_id = frame.get("id")
        # bool est un int: `true` ne doit pas compléter la requête 1
        pending = self._pending.pop(request_id, None) if type(request_id) is int else None
        if pending is None:
            logger.warning(f"[CORRELATION] {self._server_id}: réponse sans requête en vol (id={request_id!r}), ignorée")
            return False

        if pending.future.done():
            return False

        if "error" in frame:
            error = frame.get("error")
            pending.future.set_exception(
                ToolCallError(_error_message(error), error=error, method=pending.method)
            )
        else:
            pending.future.set_result(frame.get("result"))
        return True

    def reject_all(self, make_error: Callable[[], BaseException]) -> int:
        """Rejette toutes les requêtes en vol (fermeture de la connexion).

        `make_error` est appelé une fois par requête: chaque appelant reçoit
        sa propre instance d'exception.
        """
        pending_list = list(self._pending.values())
        self._pending.clear()
        for pending in pending_list:
            if not pending.future.done():
                pending.future.set_exception(make_error())
        return len(pending_list)

    async def dispatch(
        self,
        send: FrameSender,
        method: str,
        params: dict[str, object] | None = None,
        *,
        timeout_s: float | None = None,
    ) -> object:
        """Émet une requête et suspend l'appelant jusqu'à sa réponse.

        Returns:
            Le champ `result` de la réponse.

        Raises:
            ToolCallError: la réponse porte un champ `error`.
            RequestTimeoutError: pas de réponse dans le délai.
            TransportError: écriture impossible ou connexion fermée.
        """
        timeout = self._default_timeout_s if timeout_s is None else timeout_s
        pending = self.register(method)
        frame: dict[str, object] = {
            "jsonrpc": JSONRPC_VERSION,
            "id": pending.id,
            "method": method,
            "params": params or {},
        }

        try:
            await send(frame)
            return await asyncio.wait_for(pending.future, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[CORRELATION] {self._server_id}: timeout {method} (id={pending.id}, {timeout}s)")
            raise RequestTimeoutError(
                f"Pas de réponse à {method} après {timeout}s",
                method=method,
                request_id=pending.id,
                timeout_s=timeout,
            )
        finally:
            self.discard(pending.id)
