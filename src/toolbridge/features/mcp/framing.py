"""toolbridge.features.mcp.framing

Transport Framer: JSON-RPC délimité par des retours à la ligne sur stdio.

- Une frame = un objet JSON sur une seule ligne terminée par `\n`.
- Les écritures sont sérialisées par connexion (pas de frames entrelacées).
- Une ligne illisible est journalisée puis ignorée: la boucle de lecture survit.

Ce module ne connaît rien des méthodes MCP.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Callable

from ...core.exceptions import ProtocolError, TransportError

logger = logging.getLogger(__name__)

FrameHandler = Callable[[dict[str, object]], None]


def encode_frame(message: dict[str, object]) -> bytes:
    """Sérialise un message en une ligne JSON terminée par `\\n`."""
    # json.dumps échappe les retours à la ligne contenus dans les chaînes
    return (json.dumps(message, ensure_ascii=False, separators=(",", ":")) + "\n").encode("utf-8")


def decode_frame(raw_line: bytes, *, server_id: str | None = None) -> dict[str, object] | None:
    """Décode une ligne lue sur stdout.

    Returns:
        L'objet JSON, ou None pour une ligne vide.

    Raises:
        ProtocolError: ligne non JSON ou JSON qui n'est pas un objet.
    """
    text = raw_line.decode("utf-8", errors="replace").strip()
    if not text:
        return None

    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProtocolError(
            message=f"Frame JSON invalide: {e.msg}",
            server_id=server_id,
            preview=text,
        ) from e

    if not isinstance(obj, dict):
        raise ProtocolError(
            message="Frame JSON-RPC inattendue (objet attendu)",
            server_id=server_id,
            preview=text,
        )
    return obj


class FrameWriter:
    """Écrit des frames sur le stdin d'un processus, une à la fois."""

    def __init__(self, writer: asyncio.StreamWriter, *, server_id: str) -> None:
        self._writer = writer
        self._server_id = server_id
        self._lock = asyncio.Lock()

    async def send(self, message: dict[str, object]) -> None:
        data = encode_frame(message)
        async with self._lock:
            if self._writer.is_closing():
                raise TransportError("stdin fermé", server_id=self._server_id)
            try:
                self._writer.write(data)
                await self._writer.drain()
            except (BrokenPipeError, ConnectionResetError, RuntimeError) as e:
                raise TransportError(f"Écriture impossible: {e}", server_id=self._server_id) from e

    async def close(self) -> None:
        async with self._lock:
            if self._writer.is_closing():
                return
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except (BrokenPipeError, ConnectionResetError):
                pass


async def read_frames(
    reader: asyncio.StreamReader,
    on_frame: FrameHandler,
    *,
    server_id: str,
) -> None:
    """Boucle de lecture: appelle `on_frame` pour chaque ligne complète.

    Se termine sur EOF.

    Raises:
        TransportError: ligne plus longue que la limite du StreamReader.
    """
    while True:
        try:
            line = await reader.readline()
        except ValueError as e:
            # "Separator is not found, and chunk exceed the limit"
            raise TransportError(
                f"Frame trop volumineuse (augmenter bridge.stream_limit_bytes): {e}",
                server_id=server_id,
            ) from e

        if not line:
            return

        try:
            frame = decode_frame(line, server_id=server_id)
        except ProtocolError as e:
            logger.warning(f"[TRANSPORT] {server_id}: frame ignorée {e}")
            continue

        if frame is None:
            continue
        on_frame(frame)
