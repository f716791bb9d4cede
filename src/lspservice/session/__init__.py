"""Language server sessions and the bridge that routes peers to them."""

from lspservice.session.bridge import BridgeRegistry, SessionBridge
from lspservice.session.session import LanguageServerSession, SessionState

__all__ = [
    "BridgeRegistry",
    "LanguageServerSession",
    "SessionBridge",
    "SessionState",
]
