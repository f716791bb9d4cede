"""Shared test utilities for lspservice tests."""

from __future__ import annotations

import asyncio
import shutil
import sys
import time
from collections.abc import Callable

import pytest

from lspservice.errors import PeerClosed
from lspservice.languages import LaunchConfig

CAT = shutil.which("cat")

requires_cat = pytest.mark.skipif(CAT is None, reason="cat is not available")
posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals and pipes")

# Small language-server stand-ins, run with the current interpreter
STDERR_THEN_WAIT = (
    "import sys\n"
    "sys.stderr.write('warming up\\n'); sys.stderr.flush()\n"
    "sys.stdin.read()\n"
)
UTF8_STDERR_THEN_WAIT = (
    "import sys\n"
    "sys.stderr.buffer.write(b'h\\xc3\\xa9llo\\n\\n'); sys.stderr.flush()\n"
    "sys.stdin.read()\n"
)
PRINT_AND_EXIT = (
    "import sys\n"
    "for i in range(50):\n"
    "    sys.stdout.write(f'line {i}\\n')\n"
    "sys.stdout.flush()\n"
    "sys.exit(3)\n"
)
IGNORE_SIGTERM = (
    "import signal, sys, time\n"
    "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
    "sys.stdout.write('ready\\n'); sys.stdout.flush()\n"
    "time.sleep(60)\n"
)
CLOSE_OUTPUT_AND_WAIT = (
    "import os, time\n"
    "os.close(1); os.close(2)\n"
    "time.sleep(60)\n"
)

PRINT_AND_EXIT_OUTPUT = b"".join(f"line {i}\n".encode() for i in range(50))


def python_config(language: str, code: str) -> LaunchConfig:
    """LaunchConfig running ``code`` with the current interpreter."""
    return LaunchConfig(
        language=language,
        executable_path=sys.executable,
        arguments=("-c", code),
    )


class MockPeer:
    """In-memory stand-in for a WebSocket peer."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str | bytes]] = []
        self.closed = False
        self.close_count = 0

    @property
    def is_open(self) -> bool:
        return not self.closed

    @property
    def texts(self) -> list[str]:
        return [data for kind, data in self.messages if kind == "text"]  # type: ignore[misc]

    @property
    def received(self) -> bytes:
        return b"".join(data for kind, data in self.messages if kind == "bytes")  # type: ignore[misc]

    async def send_text(self, data: str) -> None:
        if self.closed:
            raise PeerClosed("mock peer closed")
        self.messages.append(("text", data))

    async def send_bytes(self, data: bytes) -> None:
        if self.closed:
            raise PeerClosed("mock peer closed")
        self.messages.append(("bytes", data))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.close_count += 1
        self.closed = True


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll ``predicate`` until it is true, failing after ``timeout`` seconds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)
