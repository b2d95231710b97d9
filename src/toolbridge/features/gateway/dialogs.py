"""toolbridge.features.gateway.dialogs

Dialogues hôte -> UI résolus par un canal `dialog-action-<id>`.

Cycle: l'hôte ouvre un dialogue et publie `dialog-request` vers l'UI, l'UI
répond sur `dialog-action-<id>`, le résultat est diffusé sur `dialog-result`.
Sans réponse avant le délai, le dialogue vaut une annulation.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

DIALOG_ACTION_PREFIX = "dialog-action-"
DIALOG_REQUEST_CHANNEL = "dialog-request"
DEFAULT_DIALOG_TIMEOUT_S = 120.0
CANCEL_ACTION: dict[str, object] = {"action": "cancel"}

Emitter = Callable[[str, dict[str, object]], Awaitable[bool]]


def dialog_channel(dialog_id: str) -> str:
    return f"{DIALOG_ACTION_PREFIX}{dialog_id}"


def dialog_id_from_channel(channel: str) -> str | None:
    if not channel.startswith(DIALOG_ACTION_PREFIX):
        return None
    return channel[len(DIALOG_ACTION_PREFIX):] or None


class DialogBroker:
    """Dialogues ouverts par l'hôte, en attente d'une action de l'UI."""

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Future] = {}

    def __contains__(self, dialog_id: object) -> bool:
        return dialog_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def open(self) -> str:
        dialog_id = uuid.uuid4().hex
        self._pending[dialog_id] = asyncio.get_running_loop().create_future()
        return dialog_id

    def resolve(self, dialog_id: str, payload: object) -> bool:
        """Résout un dialogue; un id inconnu est journalisé et ignoré."""
        future = self._pending.pop(dialog_id, None)
        if future is None or future.done():
            logger.warning(f"[DIALOG] action pour un dialogue inconnu: {dialog_id}")
            return False
        future.set_result(payload if isinstance(payload, dict) else {"action": payload})
        return True

    async def wait(self, dialog_id: str, timeout_s: float | None = None) -> dict[str, object]:
        """Attend l'action de l'UI; un timeout équivaut à une annulation."""
        future = self._pending.get(dialog_id)
        if future is None:
            raise KeyError(dialog_id)
        return await self._await(dialog_id, future, timeout_s)

    async def ask(
        self,
        emit: Emitter,
        request: dict[str, object],
        timeout_s: float | None = DEFAULT_DIALOG_TIMEOUT_S,
    ) -> dict[str, object]:
        """Ouvre un dialogue, le publie vers l'UI et attend l'action.

        Args:
            emit: publication hôte -> UI (ex. `ToolBridge.emit`), False si
                l'événement n'a pas pu partir
            request: contenu affiché (titre, message, actions...)
            timeout_s: délai avant annulation

        Returns:
            Le payload de l'action UI, ou `{"action": "cancel"}`.
        """
        dialog_id = self.open()
        # Référence prise avant la publication: l'UI peut répondre pendant `emit`
        future = self._pending[dialog_id]
        payload = {**request, "dialogId": dialog_id, "channel": dialog_channel(dialog_id)}

        if not await emit(DIALOG_REQUEST_CHANNEL, payload):
            self._pending.pop(dialog_id, None)
            logger.warning(f"[DIALOG] dialogue {dialog_id} non publié, annulé")
            return dict(CANCEL_ACTION)

        logger.info(f"[DIALOG] dialogue {dialog_id} ouvert")
        return await self._await(dialog_id, future, timeout_s)

    async def _await(self, dialog_id: str, future: asyncio.Future, timeout_s: float | None) -> dict[str, object]:
        try:
            return await asyncio.wait_for(asyncio.shield(future), timeout=timeout_s)
        except asyncio.TimeoutError:
            self._pending.pop(dialog_id, None)
            logger.info(f"[DIALOG] dialogue {dialog_id} expiré, annulé")
            return dict(CANCEL_ACTION)

    def cancel_all(self) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_result(dict(CANCEL_ACTION))
        self._pending.clear()
