"""toolbridge.features.mcp.connection

Connexion à un serveur d'outils stdio (un processus enfant).

La connexion possède exclusivement:
- le processus et ses pipes stdin/stdout/stderr
- sa boucle de lecture (frames livrées séquentiellement)
- sa Correlation Table (requêtes en vol)
- sa tranche du Tool Registry

Sur chaque chemin de sortie (fermeture demandée, crash, EOF, frame trop
volumineuse) les requêtes en vol sont rejetées avec une TransportError et
les outils du serveur sont retirés du registre.

Important:
- stderr n'est jamais interprété comme du JSON-RPC (logs uniquement).
- Une ligne stdout non JSON est journalisée puis ignorée.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Coroutine

from ...config.settings import BridgeConfig, ToolServerConfig
from ...core.constants import (
    CLIENT_NAME,
    CLIENT_VERSION,
    JSONRPC_VERSION,
    MCP_PROTOCOL_VERSION,
    METHOD_INITIALIZE,
    METHOD_INITIALIZED,
    METHOD_TOOLS_LIST,
    METHOD_TOOLS_LIST_CHANGED,
)
from ...core.exceptions import BridgeError, ToolCallError, TransportError
from .correlation import CorrelationTable
from .framing import FrameWriter, read_frames
from .registry import ToolDescriptor, ToolRegistry

logger = logging.getLogger(__name__)

# Garde-fou contre un serveur qui pagine indéfiniment
_MAX_TOOL_PAGES = 50


class ToolServerConnection:
    """Connexion JSON-RPC vers un serveur d'outils lancé en sous-processus."""

    def __init__(
        self,
        config: ToolServerConfig,
        bridge_config: BridgeConfig | None = None,
        registry: ToolRegistry | None = None,
    ) -> None:
        self._config = config
        self._bridge_config = bridge_config or BridgeConfig()
        self._registry = registry if registry is not None else ToolRegistry()
        self._table = CorrelationTable(
            server_id=config.server_id,
            default_timeout_s=self._bridge_config.request_timeout_s,
        )

        self._process: asyncio.subprocess.Process | None = None
        self._writer: FrameWriter | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

        self._closed = False
        self._close_reason: str | None = None

        self.capabilities: dict[str, object] = {}
        self.server_info: dict[str, object] = {}

    @property
    def server_id(self) -> str:
        return self._config.server_id

    @property
    def process(self) -> asyncio.subprocess.Process | None:
        return self._process

    @property
    def pending_count(self) -> int:
        return len(self._table)

    @property
    def close_reason(self) -> str | None:
        return self._close_reason

    @property
    def is_alive(self) -> bool:
        return (
            not self._closed
            and self._process is not None
            and self._process.returncode is None
        )

    async def __aenter__(self) -> ToolServerConnection:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Cycle de vie
    # ------------------------------------------------------------------

    async def start(self) -> ToolServerConnection:
        """Lance le processus puis effectue la poignée de main MCP."""
        if self._process is not None:
            return self

        env = {**os.environ, **self._config.env}
        try:
            self._process = await asyncio.create_subprocess_exec(
                self._config.command,
                *self._config.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=self._bridge_config.stream_limit_bytes,
                env=env,
                cwd=self._config.cwd,
            )
        except OSError as e:
            self._closed = True
            self._close_reason = str(e)
            raise TransportError(
                f"Impossible de démarrer {self._config.command}: {e}",
                server_id=self.server_id,
            ) from e

        assert self._process.stdin is not None
        assert self._process.stdout is not None
        assert self._process.stderr is not None

        logger.info(f"[CONNECTION] {self.server_id}: processus démarré (pid={self._process.pid})")

        self._writer = FrameWriter(self._process.stdin, server_id=self.server_id)
        self._reader_task = self._spawn(self._read_stdout())
        self._spawn(self._drain_stderr())
        self._spawn(self._watch_exit())

        try:
            await self._handshake()
        except BaseException:
            await self.close()
            raise
        return self

    async def close(self) -> None:
        """Ferme la connexion (idempotent) et termine le processus."""
        self._teardown("fermeture demandée")
        await self._terminate_process()

        current = asyncio.current_task()
        others = [task for task in self._tasks if task is not current and not task.done()]
        for task in others:
            task.cancel()
        if others:
            await asyncio.gather(*others, return_exceptions=True)

    async def _handshake(self) -> None:
        result = await self.request(
            METHOD_INITIALIZE,
            {
                "protocolVersion": MCP_PROTOCOL_VERSION,
                "capabilities": {"experimental": {}, "sampling": {}},
                "clientInfo": {"name": CLIENT_NAME, "version": CLIENT_VERSION},
            },
            timeout_s=self._bridge_config.init_timeout_s,
        )
        if isinstance(result, dict):
            capabilities = result.get("capabilities")
            server_info = result.get("serverInfo")
            self.capabilities = capabilities if isinstance(capabilities, dict) else {}
            self.server_info = server_info if isinstance(server_info, dict) else {}

        await self.notify(METHOD_INITIALIZED)
        await self.refresh_tools()

    # ------------------------------------------------------------------
    # Requêtes
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        params: dict[str, object] | None = None,
        *,
        timeout_s: float | None = None,
    ) -> object:
        """Envoie une requête et attend sa réponse (voir CorrelationTable.dispatch)."""
        if self._closed or self._writer is None:
            raise TransportError(
                f"Connexion fermée: {self._close_reason or 'non démarrée'}",
                server_id=self.server_id,
            )
        try:
            return await self._table.dispatch(self._writer.send, method, params, timeout_s=timeout_s)
        except TransportError as e:
            self._teardown(e.message)
            raise

    async def notify(self, method: str, params: dict[str, object] | None = None) -> None:
        """Envoie une notification (pas d'id, pas de réponse)."""
        if self._closed or self._writer is None:
            raise TransportError("Connexion fermée", server_id=self.server_id)
        message: dict[str, object] = {"jsonrpc": JSONRPC_VERSION, "method": method}
        if params is not None:
            message["params"] = params
        await self._writer.send(message)

    async def refresh_tools(self) -> list[ToolDescriptor]:
        """Liste les outils (toutes les pages) et remplace l'entrée du registre."""
        tools: list[object] = []
        cursor: object | None = None
        for _ in range(_MAX_TOOL_PAGES):
            params = {"cursor": cursor} if cursor else None
            try:
                result = await self.request(METHOD_TOOLS_LIST, params)
            except ToolCallError as e:
                logger.warning(f"[CONNECTION] {self.server_id}: tools/list indisponible ({e.message})")
                break
            if not isinstance(result, dict):
                break
            page = result.get("tools")
            if isinstance(page, list):
                tools.extend(page)
            cursor = result.get("nextCursor")
            if not cursor:
                break

        registered = self._registry.register_tools(self.server_id, tools)
        logger.info(f"[CONNECTION] {self.server_id}: outils {[tool.name for tool in registered]}")
        return registered

    # ------------------------------------------------------------------
    # Boucles
    # ------------------------------------------------------------------

    def _on_frame(self, frame: dict[str, object]) -> None:
        if isinstance(frame.get("method"), str):
            self._on_server_message(frame)
            return
        if "id" in frame and ("result" in frame or "error" in frame):
            self._table.resolve(frame)
            return
        logger.warning(f"[CONNECTION] {self.server_id}: frame JSON-RPC non reconnue ignorée: {str(frame)[:100]}")

    def _on_server_message(self, frame: dict[str, object]) -> None:
        method = frame["method"]
        if "id" in frame:
            # Requête serveur -> client: non supportée, on répond pour ne pas bloquer le serveur
            logger.info(f"[CONNECTION] {self.server_id}: requête serveur {method} non supportée")
            self._spawn(self._reply_method_not_found(frame.get("id"), method))
            return
        if method == METHOD_TOOLS_LIST_CHANGED:
            self._spawn(self._refresh_tools_quietly())
            return
        logger.debug(f"[CONNECTION] {self.server_id}: notification {method} {frame.get('params')}")

    async def _reply_method_not_found(self, req_id: object, method: object) -> None:
        if self._closed or self._writer is None:
            return
        try:
            await self._writer.send({
                "jsonrpc": JSONRPC_VERSION,
                "id": req_id,
                "error": {"code": -32601, "message": f"Method not found: {method}"},
            })
        except TransportError as e:
            logger.warning(f"[CONNECTION] {self.server_id}: réponse impossible ({e.message})")

    async def _refresh_tools_quietly(self) -> None:
        try:
            await self.refresh_tools()
        except BridgeError as e:
            logger.warning(f"[CONNECTION] {self.server_id}: rafraîchissement des outils échoué {e}")

    async def _read_stdout(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        try:
            await read_frames(self._process.stdout, self._on_frame, server_id=self.server_id)
            reason = "stdout fermé"
        except TransportError as e:
            reason = e.message
            logger.error(f"[CONNECTION] {self.server_id}: {reason}")

        self._teardown(reason)
        await self._terminate_process()

    async def _drain_stderr(self) -> None:
        assert self._process is not None and self._process.stderr is not None
        stream = self._process.stderr
        while True:
            try:
                line = await stream.readline()
            except ValueError:
                logger.info(f"[{self.server_id} stderr] <ligne tronquée>")
                continue
            if not line:
                return
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                logger.info(f"[{self.server_id} stderr] {text}")

    async def _watch_exit(self) -> None:
        assert self._process is not None
        returncode = await self._process.wait()

        # Laisse la boucle de lecture livrer les dernières réponses
        reader = self._reader_task
        if reader is not None and not reader.done():
            try:
                await asyncio.wait_for(asyncio.shield(reader), timeout=self._bridge_config.shutdown_grace_s)
            except asyncio.TimeoutError:
                pass

        self._teardown(f"processus terminé (code {returncode})")

    # ------------------------------------------------------------------
    # Fermeture
    # ------------------------------------------------------------------

    def _teardown(self, reason: str) -> None:
        if self._closed:
            return
        self._closed = True
        self._close_reason = reason

        rejected = self._table.reject_all(
            lambda: TransportError(f"Connexion fermée: {reason}", server_id=self.server_id)
        )
        self._registry.remove_server(self.server_id)
        logger.info(f"[CONNECTION] {self.server_id}: fermée ({reason}), {rejected} requête(s) rejetée(s)")

    async def _terminate_process(self) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return

        grace = self._bridge_config.shutdown_grace_s
        if self._writer is not None:
            # EOF sur stdin: la plupart des serveurs stdio s'arrêtent d'eux-mêmes
            await self._writer.close()

        try:
            await asyncio.wait_for(process.wait(), timeout=grace)
            return
        except asyncio.TimeoutError:
            pass

        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=grace)
        except asyncio.TimeoutError:
            logger.warning(f"[CONNECTION] {self.server_id}: SIGTERM ignoré, kill")
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()

    # ------------------------------------------------------------------
    # Tâches de fond
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[object, object, None]) -> asyncio.Task[None]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"[CONNECTION] {self.server_id}: tâche de fond en échec: {exc!r}")
