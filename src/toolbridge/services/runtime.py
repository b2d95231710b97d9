"""
Instances globales partagées par les routes (injectées depuis main.py).

Les routes y accèdent via `Depends(get_...)`, ce qui permet aux tests de les
remplacer avec `app.dependency_overrides`.
"""
from typing import Optional

import httpx

from ..config.settings import Settings
from ..features.gateway import CapabilityGateway, DialogBroker, NetworkPolicyInterceptor
from ..features.mcp import ToolBridge

_settings: Optional[Settings] = None
_bridge: Optional[ToolBridge] = None
_gateway: Optional[CapabilityGateway] = None
_dialogs: Optional[DialogBroker] = None
_interceptor: Optional[NetworkPolicyInterceptor] = None


def init_runtime(settings: Settings) -> ToolBridge:
    """Crée les instances globales à partir de la configuration."""
    global _settings, _bridge, _gateway, _dialogs, _interceptor
    _settings = settings
    _gateway = CapabilityGateway()
    _bridge = ToolBridge(settings, gateway=_gateway)
    _dialogs = DialogBroker()
    _interceptor = NetworkPolicyInterceptor(settings.network)
    return _bridge


def reset_runtime():
    """Oublie les instances globales (arrêt ou tests)."""
    global _settings, _bridge, _gateway, _dialogs, _interceptor
    _settings = None
    _bridge = None
    _gateway = None
    _dialogs = None
    _interceptor = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def get_bridge() -> ToolBridge:
    if _bridge is None:
        return init_runtime(get_settings())
    return _bridge


def get_gateway() -> CapabilityGateway:
    if _gateway is None:
        init_runtime(get_settings())
    return _gateway


def get_dialogs() -> DialogBroker:
    if _dialogs is None:
        init_runtime(get_settings())
    return _dialogs


def get_interceptor() -> NetworkPolicyInterceptor:
    if _interceptor is None:
        init_runtime(get_settings())
    return _interceptor


def create_ui_http_client(**kwargs) -> httpx.AsyncClient:
    """Client HTTP de la pile réseau UI, avec la politique réseau branchée."""
    client = httpx.AsyncClient(**kwargs)
    return get_interceptor().install(client)
