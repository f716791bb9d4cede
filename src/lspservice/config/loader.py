"""Loading config.yaml files into a typed Config.

Each level's YAML is read into a dict, the dicts are deep-merged with
``LSPSERVICE_*`` environment variables on top, and the result is converted
to the dataclasses in ``schema``. Unreadable or malformed files are logged
and skipped; a broken user file never stops the service from starting.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from lspservice.config.merge import merge_configs
from lspservice.config.paths import config_sources
from lspservice.config.schema import (
    BridgeSettings,
    Config,
    LanguageConfig,
    LoggingConfig,
    ServerConfig,
)

_log = logging.getLogger("lspservice.config")

_cached_config: Config | None = None

_DEFAULT_SERVER = ServerConfig()
_DEFAULT_BRIDGE = BridgeSettings()


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Top-level mapping of a YAML file, or {} if missing, unreadable or not a mapping."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}

    if data is not None and not isinstance(data, dict):
        _log.warning("Ignoring %s: expected a mapping at the top level", path)
        return {}
    return data or {}


def env_overrides() -> dict[str, Any]:
    """Config dict from LSPSERVICE_LOG, LSPSERVICE_HOST and LSPSERVICE_PORT."""
    overrides: dict[str, Any] = {}

    if log_path := os.environ.get("LSPSERVICE_LOG"):
        overrides["logging"] = {"file": log_path}

    server: dict[str, Any] = {}
    if host := os.environ.get("LSPSERVICE_HOST"):
        server["host"] = host
    if port := os.environ.get("LSPSERVICE_PORT"):
        try:
            server["port"] = int(port)
        except ValueError:
            _log.warning("Ignoring invalid LSPSERVICE_PORT: %r", port)
    if server:
        overrides["server"] = server

    return overrides


def _parse_languages(data: Any) -> list[LanguageConfig]:
    """Parse the languages section.

    Either a mapping of name to executable path (or to an entry), or a list
    of entries with a ``name`` key. Both forms merge across config levels.
    """
    if isinstance(data, dict):
        entries = list(data.items())
    elif isinstance(data, list):
        entries = [(item.get("name"), item) for item in data if isinstance(item, dict)]
    else:
        entries = []

    languages: list[LanguageConfig] = []
    for name, entry in entries:
        if not isinstance(name, str) or not name.strip():
            continue
        if isinstance(entry, str):
            entry = {"executable": entry}
        elif not isinstance(entry, dict):
            entry = {}
        languages.append(
            LanguageConfig(
                name=name.strip().lower(),
                executable=entry.get("executable"),
                args=[str(a) for a in entry.get("args") or []],
                env={str(k): str(v) for k, v in (entry.get("env") or {}).items()},
            )
        )
    return languages


def _idle_timeout(value: Any) -> float | None:
    # None can't override through the merge, so 0/false disables the timer
    if not value:
        return None
    return float(value)


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert a merged config dict to a Config; missing keys take defaults."""
    server = data.get("server") or {}
    bridge = data.get("bridge") or {}
    log_data = data.get("logging") or {}

    return Config(
        server=ServerConfig(
            host=server.get("host", _DEFAULT_SERVER.host),
            port=int(server.get("port", _DEFAULT_SERVER.port)),
        ),
        bridge=BridgeSettings(
            forward_stderr=bool(bridge.get("forward_stderr", _DEFAULT_BRIDGE.forward_stderr)),
            idle_timeout=_idle_timeout(bridge.get("idle_timeout", _DEFAULT_BRIDGE.idle_timeout)),
            stop_timeout=float(bridge.get("stop_timeout", _DEFAULT_BRIDGE.stop_timeout)),
            stderr_grace=float(bridge.get("stderr_grace", _DEFAULT_BRIDGE.stderr_grace)),
            chunk_size=int(bridge.get("chunk_size", _DEFAULT_BRIDGE.chunk_size)),
        ),
        logging=LoggingConfig(
            level=log_data.get("level"),
            verbose=log_data.get("verbose"),
            file=log_data.get("file"),
        ),
        languages=_parse_languages(data.get("languages")),
        extra={
            k: v
            for k, v in data.items()
            if k not in {"server", "bridge", "logging", "languages"}
        },
    )


def load_config(
    project_root: str | None = None,
    config_file: str | Path | None = None,
    reload: bool = False,
) -> Config:
    """Load and merge config from every level plus the environment.

    Only the plain global config (no project root, no explicit file) is
    cached; pass ``reload=True`` to re-read it.
    """
    global _cached_config

    is_global = project_root is None and config_file is None
    if is_global and _cached_config is not None and not reload:
        return _cached_config

    layers: list[dict[str, Any]] = []
    for level, path in config_sources(project_root, config_file):
        data = load_yaml_file(path)
        if data:
            _log.debug("Loaded %s config from %s", level.value, path)
            layers.append(data)
    layers.append(env_overrides())

    config = dict_to_config(merge_configs(*layers))
    if is_global:
        _cached_config = config
    return config


def get_config() -> Config:
    """The cached global config, loaded on first use."""
    return _cached_config if _cached_config is not None else load_config()


def reset_config() -> None:
    """Forget the cached global config."""
    global _cached_config
    _cached_config = None
