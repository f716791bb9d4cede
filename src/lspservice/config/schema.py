"""Configuration schema dataclasses for lspservice.

One dataclass per top-level section of config.yaml. Every field has a
default, so a file only needs the keys it changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ServerConfig:
    """HTTP/WebSocket listener configuration."""

    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class BridgeSettings:
    """Session bridge behaviour and timings.

    Example config.yaml:
        bridge:
          forward_stderr: true
          idle_timeout: 300  # 0 or false keeps orphaned sessions running
          stop_timeout: 5.0
    """

    forward_stderr: bool = True  # Send server stderr to the client as text frames
    idle_timeout: float | None = 30.0  # Stop a session this long after its peer left (None: never)
    stop_timeout: float = 5.0  # Seconds between SIGTERM and SIGKILL
    stderr_grace: float = 1.0  # Wait for stderr/exit status after stdout EOF
    chunk_size: int = 65536  # Max bytes per read from the server's pipes


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, takes precedence over level
    file: str | None = None  # Log file path


@dataclass
class LanguageConfig:
    """Language server launch entry.

    Example config.yaml:
        languages:
          - name: swift
            executable: /usr/bin/sourcekit-lsp
          - name: python
            executable: pylsp
            args: ["-v"]
            env:
              PYTHONPATH: "${HOME}/lib"
    """

    name: str
    executable: str | None = None
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class Config:
    """Merged configuration from every level."""

    server: ServerConfig = field(default_factory=ServerConfig)
    bridge: BridgeSettings = field(default_factory=BridgeSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    languages: list[LanguageConfig] = field(default_factory=list)

    # Unknown top-level keys, kept for tools that share the file
    extra: dict[str, Any] = field(default_factory=dict)
