"""Language server subprocess handling.

ProcessHandle owns the subprocess and its pipes; StreamRelay drains its
output streams concurrently.
"""

from lspservice.process.handle import (
    ExitReason,
    ProcessHandle,
    TerminationState,
)
from lspservice.process.relay import StreamRelay

__all__ = [
    "ExitReason",
    "ProcessHandle",
    "StreamRelay",
    "TerminationState",
]
