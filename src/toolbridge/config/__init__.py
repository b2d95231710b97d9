"""
Configuration du Tool Bridge.
"""

from .loader import load_config, reload_config, get_config
from .settings import Settings, BridgeConfig, ToolServerConfig, NetworkPolicyConfig, GatewayConfig

__all__ = [
    "load_config",
    "reload_config",
    "get_config",
    "Settings",
    "BridgeConfig",
    "ToolServerConfig",
    "NetworkPolicyConfig",
    "GatewayConfig",
]
