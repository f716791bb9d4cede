"""lspservice: stdio language servers exposed over WebSockets."""

__version__ = "0.1.0"

# Public API
from lspservice.config import BridgeSettings, Config, get_config, load_config
from lspservice.errors import (
    BridgeError,
    LaunchError,
    LaunchFailure,
    PeerClosed,
    PeerProtocolViolation,
    SessionClosed,
    SessionNotReady,
    UnconfiguredLanguage,
    WriteError,
)
from lspservice.languages import LanguageStore, LaunchConfig, normalize_language
from lspservice.process import ExitReason, ProcessHandle, StreamRelay, TerminationState
from lspservice.session import (
    BridgeRegistry,
    LanguageServerSession,
    SessionBridge,
    SessionState,
)

__all__ = [
    # Config
    "BridgeSettings",
    "Config",
    "load_config",
    "get_config",
    # Languages
    "LanguageStore",
    "LaunchConfig",
    "normalize_language",
    # Process
    "ExitReason",
    "ProcessHandle",
    "StreamRelay",
    "TerminationState",
    # Session
    "BridgeRegistry",
    "LanguageServerSession",
    "SessionBridge",
    "SessionState",
    # Errors
    "BridgeError",
    "LaunchError",
    "LaunchFailure",
    "PeerClosed",
    "PeerProtocolViolation",
    "SessionClosed",
    "SessionNotReady",
    "UnconfiguredLanguage",
    "WriteError",
]
