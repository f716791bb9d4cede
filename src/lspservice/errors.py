"""Error taxonomy for the session bridge.

Errors split into two groups:
- Peer-reportable conditions (unconfigured language, launch failure) that
  are sent to the client as a readable message before the connection closes.
- Internal conditions (write failures, protocol violations, closed peers)
  that are logged and contained inside the bridge.

Process termination is not an error; it is reported through
``TerminationState`` on the session's terminated callback.
"""

from __future__ import annotations

from enum import Enum


class BridgeError(Exception):
    """Base class for all bridge errors."""

    peer_reportable: bool = False

    @property
    def readable_message(self) -> str:
        """Human-readable description suitable for a client."""
        return str(self)


class UnconfiguredLanguage(BridgeError):
    """No usable language server executable is on record for a language."""

    peer_reportable = True

    def __init__(self, language: str, detail: str | None = None) -> None:
        self.language = language
        self.detail = detail
        message = f"Language {language.capitalize()} is not supported"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class LaunchFailure(Enum):
    """Kind of OS-level spawn failure."""

    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    RESOURCES = "resources"


class LaunchError(BridgeError):
    """The operating system refused to spawn the language server."""

    peer_reportable = True

    def __init__(self, executable: str, kind: LaunchFailure, detail: str = "") -> None:
        self.executable = executable
        self.kind = kind
        if kind is LaunchFailure.NOT_FOUND:
            message = f"Executable not found: {executable}"
        elif kind is LaunchFailure.PERMISSION_DENIED:
            message = f"Permission denied: {executable}"
        else:
            message = f"Could not start {executable}: {detail or 'OS error'}"
        super().__init__(message)


class WriteError(BridgeError):
    """Writing to the language server's stdin failed."""


class SessionNotReady(BridgeError):
    """A send was attempted before the session finished starting."""


class SessionClosed(BridgeError):
    """A send was attempted on a stopped session."""


class PeerProtocolViolation(BridgeError):
    """A client sent data while no session was routed to it."""


class PeerClosed(BridgeError):
    """The network peer is no longer open for writing."""
