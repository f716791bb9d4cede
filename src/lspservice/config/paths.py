"""Where lspservice looks for config.yaml.

Levels, lowest priority first:

    system   /etc/lspservice/            %PROGRAMDATA%\\lspservice\\
    user     $XDG_CONFIG_HOME/lspservice/, ~/.config/lspservice/ or ~/.lspservice/
             %APPDATA%\\lspservice\\ on Windows
    project  <project_root>/.lspservice/
    explicit the --config file
"""

from __future__ import annotations

import os
import sys
from enum import Enum
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "lspservice"
SHORT_NAME = ".lspservice"


class ConfigLevel(Enum):
    SYSTEM = "system"
    USER = "user"
    PROJECT = "project"
    EXPLICIT = "explicit"


def _windows_dir(variable: str) -> Path | None:
    root = os.environ.get(variable)
    return Path(root) / APP_NAME if root else None


def get_system_config_path() -> Path | None:
    """System config file (may not exist); None if it cannot be located."""
    if sys.platform == "win32":
        directory = _windows_dir("PROGRAMDATA")
    else:
        directory = Path("/etc") / APP_NAME
    return directory / CONFIG_FILENAME if directory else None


def get_user_config_path() -> Path | None:
    """User config file (may not exist); None if it cannot be located."""
    if sys.platform == "win32":
        directory = _windows_dir("APPDATA")
        return directory / CONFIG_FILENAME if directory else None

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME
    home = Path.home()
    if (home / ".config").exists():
        return home / ".config" / APP_NAME / CONFIG_FILENAME
    return home / SHORT_NAME / CONFIG_FILENAME


def get_project_config_path(project_root: str) -> Path:
    return Path(project_root) / SHORT_NAME / CONFIG_FILENAME


def config_sources(
    project_root: str | None = None, config_file: str | Path | None = None
) -> list[tuple[ConfigLevel, Path]]:
    """Config files to merge, lowest priority first, tagged with their level."""
    sources: list[tuple[ConfigLevel, Path | None]] = [
        (ConfigLevel.SYSTEM, get_system_config_path()),
        (ConfigLevel.USER, get_user_config_path()),
    ]
    if project_root:
        sources.append((ConfigLevel.PROJECT, get_project_config_path(project_root)))
    if config_file is not None:
        sources.append((ConfigLevel.EXPLICIT, Path(config_file).expanduser()))
    return [(level, path) for level, path in sources if path is not None]


def get_config_paths(project_root: str | None = None) -> list[Path]:
    """System, user and project config paths, lowest priority first."""
    return [path for _, path in config_sources(project_root)]
