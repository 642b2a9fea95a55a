"""Process settings: config/settings.yaml over built-in defaults, plus environment overrides."""

import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"
_SETTINGS_FILE = "settings.yaml"
ROLES = ("server", "client")

_DEFAULTS: dict[str, Any] = {
    # server = authoritative side, client = peer mirroring the server
    "role": "server",
    "paths": {
        "extensions_dirs": ["sandbox/extensions"],
        "config_dir": "sandbox/config",
        "client_config_dir": "sandbox/config/cl_plugins",
        "autoload_file": "sandbox/config/autoload.json",
    },
    "network": {
        "host": "127.0.0.1",
        "port": 27016,
        "reconnect_delay": 5.0,
    },
    "logging": {
        "file": "sandbox/logs/modhost.log",
        "level": "INFO",
        "log_to_console": False,
        "max_bytes": 10485760,  # 10 MB
        "backup_count": 3,
        "levels": {},
    },
    "extensions": {
        # Server side: extensions enabled at startup
        "active": {"basecommands": True},
    },
    "permissions": {
        "admins": [],
    },
    "tick_interval": 1.0,
}

# Environment variable -> dot path. Values are parsed as YAML scalars.
_ENV_OVERRIDES = {
    "MODHOST_ROLE": "role",
    "MODHOST_HOST": "network.host",
    "MODHOST_PORT": "network.port",
}

_cache: dict[Path, dict[str, Any]] = {}


class NetworkSettings(BaseModel):
    """Validated view of the ``network`` section."""

    host: str = "127.0.0.1"
    port: int = Field(default=27016, ge=0, le=65535)
    reconnect_delay: float = Field(default=5.0, gt=0)


def network_settings(settings: dict[str, Any]) -> NetworkSettings:
    """Raises pydantic.ValidationError on a malformed network section."""
    return NetworkSettings.model_validate(settings.get("network") or {})


def get_default_settings() -> dict[str, Any]:
    return copy.deepcopy(_DEFAULTS)


def get_setting(settings: dict[str, Any], path: str, default: Any = None) -> Any:
    """Nested value by dot path, e.g. get_setting(s, "network.port")."""
    node: Any = settings
    for key in path.split("."):
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node


def _set_path(settings: dict[str, Any], path: str, value: Any) -> None:
    *parents, leaf = path.split(".")
    node = settings
    for key in parents:
        node = node.setdefault(key, {})
    node[leaf] = value


def _merge(target: dict[str, Any], overlay: dict[str, Any]) -> None:
    """Recursive in-place merge; None in the overlay keeps the default."""
    for key, value in overlay.items():
        if value is None:
            continue
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _merge(current, value)
        else:
            target[key] = value


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (yaml.YAMLError, OSError) as e:
        logger.warning("Ignoring %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: top level must be a mapping", path)
        return {}
    return data


def _apply_env(settings: dict[str, Any]) -> None:
    for var, path in _ENV_OVERRIDES.items():
        raw = os.environ.get(var)
        if raw is None or not raw.strip():
            continue
        _set_path(settings, path, yaml.safe_load(raw.strip()))
    role = str(settings.get("role", "server")).lower()
    if role not in ROLES:
        logger.warning("Unknown role %r, falling back to server", role)
        role = "server"
    settings["role"] = role


def reload_settings() -> None:
    """Forget cached settings so the next load_settings() reads the file again."""
    _cache.clear()


def load_settings(config_dir: Path | None = None) -> dict[str, Any]:
    """Defaults, then <config_dir>/settings.yaml, then MODHOST_* environment variables.

    The result is cached per config directory until reload_settings().
    """
    config_dir = (config_dir or _CONFIG_DIR).resolve()
    cached = _cache.get(config_dir)
    if cached is not None:
        return cached
    settings = get_default_settings()
    _merge(settings, _read_yaml(config_dir / _SETTINGS_FILE))
    _apply_env(settings)
    _cache[config_dir] = settings
    return settings
