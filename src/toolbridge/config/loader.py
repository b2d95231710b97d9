"""toolbridge.config.loader

Chargement de la configuration TOML.

Note d'architecture:
- Le package `config/` est consommé par la couche Features.
- Il ne doit donc pas dépendre de `features/*` afin d'éviter les imports circulaires.
"""
import os
import re
import tomllib
from pathlib import Path
from typing import Dict, Any, Optional

from ..core.exceptions import ConfigurationError

# Cache global de configuration
_config_cache: Optional[Dict[str, Any]] = None

_ENV_VAR_RE = re.compile(r'\$\{([^}]+)\}')


def _expand_env_vars(obj: Any) -> Any:
    """
    Récursivement étend les variables d'environnement ${VAR} dans la config.

    Args:
        obj: Valeur à traiter (str, dict, list)

    Returns:
        Valeur avec variables d'environnement expansées
    """
    if isinstance(obj, str):
        def replace_env_var(match):
            return os.environ.get(match.group(1), match.group(0))
        return _ENV_VAR_RE.sub(replace_env_var, obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


def _default_config_path() -> str:
    env_path = os.getenv("TOOLBRIDGE_CONFIG")
    if env_path:
        return env_path
    # Remonte de 4 niveaux: loader.py -> config -> toolbridge -> src -> project
    current_file = os.path.abspath(__file__)
    project_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(current_file))))
    return os.path.join(project_dir, "config.toml")


def _clear_config_cache():
    """Vide le cache de configuration."""
    global _config_cache
    _config_cache = None


def load_config(config_path: str = None) -> Dict[str, Any]:
    """
    Charge la configuration depuis config.toml.

    Un fichier absent n'est pas une erreur: la configuration par défaut
    (aucun serveur) est utilisée.

    Args:
        config_path: Chemin vers le fichier config (optionnel)

    Returns:
        Dictionnaire de configuration

    Raises:
        ConfigurationError: Si le fichier est invalide
    """
    global _config_cache

    if _config_cache is not None:
        return _config_cache

    path = Path(config_path or _default_config_path())
    if not path.exists():
        _config_cache = {}
        return _config_cache

    try:
        with open(path, "rb") as f:
            raw_config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(
            message=f"Fichier de configuration invalide ({path}): {e}",
            config_key="config_path"
        ) from e

    _config_cache = _expand_env_vars(raw_config)
    return _config_cache


def reload_config(config_path: str = None) -> Dict[str, Any]:
    """
    Recharge la configuration depuis le fichier.

    Returns:
        Nouvelle configuration chargée
    """
    _clear_config_cache()
    return load_config(config_path)


def get_config() -> Dict[str, Any]:
    """
    Retourne la configuration en cache.

    Returns:
        Configuration actuelle
    """
    if _config_cache is None:
        return load_config()
    return _config_cache


def init_servers(config: Dict[str, Any]) -> Dict[str, "ToolServerConfig"]:
    """
    Initialise les serveurs d'outils depuis la configuration.

    Args:
        config: Configuration chargée

    Returns:
        Dictionnaire server_id -> ToolServerConfig
    """
    from .settings import ToolServerConfig

    servers = {}
    servers_config = config.get("servers", {})
    if not isinstance(servers_config, dict):
        raise ConfigurationError(
            message="La section [servers] doit être une table",
            config_key="servers"
        )

    for server_id, server_data in servers_config.items():
        servers[server_id] = ToolServerConfig.from_dict(server_id, server_data)

    return servers
