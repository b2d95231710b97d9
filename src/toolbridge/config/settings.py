"""
Dataclasses pour la configuration.
"""
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

from ..core.constants import (
    DEFAULT_REQUEST_TIMEOUT_S,
    DEFAULT_INIT_TIMEOUT_S,
    DEFAULT_SHUTDOWN_GRACE_S,
    DEFAULT_STREAM_LIMIT_BYTES,
    MIN_STREAM_LIMIT_BYTES,
    MAX_STREAM_LIMIT_BYTES,
    MAX_UNWRAP_DEPTH,
    DEFAULT_STATUS_TOOL,
    PERMISSIVE_CSP,
    DEFAULT_OBSERVE_PATTERNS,
    DEFAULT_REWRITE_PATTERNS,
    DEFAULT_DEEP_LINK_SCHEME,
)
from ..core.exceptions import ConfigurationError


def _clamp_stream_limit(value: int) -> int:
    if value <= 0:
        return DEFAULT_STREAM_LIMIT_BYTES
    return min(MAX_STREAM_LIMIT_BYTES, max(MIN_STREAM_LIMIT_BYTES, value))


@dataclass
class ToolServerConfig:
    """Commande de lancement d'un serveur d'outils stdio."""
    server_id: str
    command: str
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    cwd: Optional[str] = None
    auto_connect: bool = False

    @classmethod
    def from_dict(cls, server_id: str, data: Dict[str, Any]) -> "ToolServerConfig":
        """Crée une instance depuis un dictionnaire."""
        command = data.get("command")
        if not isinstance(command, str) or not command:
            raise ConfigurationError(
                message=f"Commande manquante pour le serveur {server_id}",
                config_key=f"servers.{server_id}.command"
            )
        return cls(
            server_id=server_id,
            command=command,
            args=[str(arg) for arg in data.get("args", [])],
            env={str(k): str(v) for k, v in data.get("env", {}).items()},
            cwd=data.get("cwd"),
            auto_connect=bool(data.get("auto_connect", False))
        )


@dataclass
class BridgeConfig:
    """Paramètres du transport et de la corrélation."""
    request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S
    init_timeout_s: float = DEFAULT_INIT_TIMEOUT_S
    max_unwrap_depth: int = MAX_UNWRAP_DEPTH
    stream_limit_bytes: int = DEFAULT_STREAM_LIMIT_BYTES
    shutdown_grace_s: float = DEFAULT_SHUTDOWN_GRACE_S
    status_tool: str = DEFAULT_STATUS_TOOL

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BridgeConfig":
        """Crée une instance depuis un dictionnaire."""
        return cls(
            request_timeout_s=float(data.get("request_timeout_s", DEFAULT_REQUEST_TIMEOUT_S)),
            init_timeout_s=float(data.get("init_timeout_s", DEFAULT_INIT_TIMEOUT_S)),
            max_unwrap_depth=int(data.get("max_unwrap_depth", MAX_UNWRAP_DEPTH)),
            stream_limit_bytes=_clamp_stream_limit(int(data.get("stream_limit_bytes", DEFAULT_STREAM_LIMIT_BYTES))),
            shutdown_grace_s=float(data.get("shutdown_grace_s", DEFAULT_SHUTDOWN_GRACE_S)),
            status_tool=data.get("status_tool", DEFAULT_STATUS_TOOL)
        )


@dataclass
class NetworkPolicyConfig:
    """Motifs d'URL observés / réécrits et CSP appliquée."""
    observe_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_OBSERVE_PATTERNS))
    rewrite_patterns: List[str] = field(default_factory=lambda: list(DEFAULT_REWRITE_PATTERNS))
    csp: str = PERMISSIVE_CSP

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkPolicyConfig":
        """Crée une instance depuis un dictionnaire."""
        return cls(
            observe_patterns=list(data.get("observe_patterns", DEFAULT_OBSERVE_PATTERNS)),
            rewrite_patterns=list(data.get("rewrite_patterns", DEFAULT_REWRITE_PATTERNS)),
            csp=data.get("csp", PERMISSIVE_CSP)
        )


@dataclass
class GatewayConfig:
    """Configuration de la frontière UI."""
    deep_link_scheme: str = DEFAULT_DEEP_LINK_SCHEME

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GatewayConfig":
        """Crée une instance depuis un dictionnaire."""
        return cls(
            deep_link_scheme=data.get("deep_link_scheme", DEFAULT_DEEP_LINK_SCHEME)
        )


@dataclass
class Settings:
    """Configuration globale de l'application."""
    bridge: BridgeConfig = field(default_factory=BridgeConfig)
    servers: Dict[str, ToolServerConfig] = field(default_factory=dict)
    network: NetworkPolicyConfig = field(default_factory=NetworkPolicyConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "Settings":
        """Crée une instance depuis la configuration chargée."""
        from .loader import init_servers

        return cls(
            bridge=BridgeConfig.from_dict(config.get("bridge", {})),
            servers=init_servers(config),
            network=NetworkPolicyConfig.from_dict(config.get("network", {})),
            gateway=GatewayConfig.from_dict(config.get("gateway", {}))
        )

    def get_server(self, server_id: str) -> Optional[ToolServerConfig]:
        """Récupère la configuration d'un serveur par son id."""
        return self.servers.get(server_id)
