"""Hierarchical YAML configuration for lspservice.

System, user, project and ``--config`` files are merged in that order, and
``LSPSERVICE_LOG`` / ``LSPSERVICE_HOST`` / ``LSPSERVICE_PORT`` win over all
of them. See ``paths`` for file locations.

Example config.yaml:
    server:
      host: 0.0.0.0
      port: 8080
    bridge:
      forward_stderr: false
      idle_timeout: 300
    languages:
      swift: /usr/bin/sourcekit-lsp
      python:
        executable: pylsp
"""

from lspservice.config.loader import get_config, load_config, reset_config
from lspservice.config.paths import ConfigLevel, config_sources, get_config_paths
from lspservice.config.schema import (
    BridgeSettings,
    Config,
    LanguageConfig,
    LoggingConfig,
    ServerConfig,
)

__all__ = [
    "BridgeSettings",
    "Config",
    "ConfigLevel",
    "LanguageConfig",
    "LoggingConfig",
    "ServerConfig",
    "config_sources",
    "get_config",
    "get_config_paths",
    "load_config",
    "reset_config",
]
