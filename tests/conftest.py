"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from lspservice.config.schema import BridgeSettings
from lspservice.languages import LanguageStore, LaunchConfig
from tests.utils import CAT, MockPeer

# Configure pytest-asyncio; asyncio_mode = "auto" is also set in pyproject.toml
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture
def settings() -> BridgeSettings:
    """Bridge settings with short timings."""
    return BridgeSettings(
        forward_stderr=True,
        idle_timeout=None,
        stop_timeout=1.0,
        stderr_grace=0.5,
        chunk_size=4096,
    )


@pytest.fixture
def store() -> LanguageStore:
    """Store with swift served by cat, which echoes stdin to stdout."""
    configs = []
    if CAT is not None:
        configs.append(LaunchConfig(language="swift", executable_path=CAT))
    return LanguageStore(configs)


@pytest.fixture
def peer() -> MockPeer:
    return MockPeer()


@pytest.fixture(scope="session")
def anyio_backend():
    """Set anyio backend to asyncio."""
    return "asyncio"
