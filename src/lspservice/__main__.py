"""Entry point for running the language service.

Usage:
    python -m lspservice --language swift=/usr/bin/sourcekit-lsp --port 8080

Clients connect to ws://HOST:PORT/lspservice/api/language/<language>/websocket
and exchange LSP frames as binary WebSocket messages.
"""

import sys

from lspservice.cli import main

if __name__ == "__main__":
    sys.exit(main())
