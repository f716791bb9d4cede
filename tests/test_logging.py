"""Tests for logging setup."""

from __future__ import annotations

import logging

import pytest

import lspservice.logging as lsp_logging
from lspservice.config.schema import LoggingConfig


@pytest.fixture
def fresh_logger(monkeypatch: pytest.MonkeyPatch):
    """Let setup_logging run again and drop the handlers it adds."""
    monkeypatch.setattr(lsp_logging, "_initialized", False)
    monkeypatch.delenv("LSPSERVICE_LOG", raising=False)
    logger = lsp_logging.logger
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    for handler in logger.handlers[len(handlers):]:
        handler.close()
    logger.handlers = handlers
    logger.setLevel(level)


class TestResolveLevel:
    def test_default_is_info(self):
        assert lsp_logging.resolve_level(None) == logging.INFO
        assert lsp_logging.resolve_level(LoggingConfig()) == logging.INFO

    def test_level_name(self):
        assert lsp_logging.resolve_level(LoggingConfig(level="debug")) == logging.DEBUG
        assert lsp_logging.resolve_level(LoggingConfig(level="trace")) == lsp_logging.TRACE
        assert lsp_logging.resolve_level(LoggingConfig(level="nonsense")) == logging.INFO

    def test_verbose_takes_precedence(self):
        config = LoggingConfig(level="error", verbose=3)
        assert lsp_logging.resolve_level(config) == lsp_logging.VERBOSE

    def test_verbosity_range(self):
        assert lsp_logging.resolve_level(LoggingConfig(verbose=0)) == logging.ERROR
        assert lsp_logging.resolve_level(LoggingConfig(verbose=4)) == lsp_logging.TRACE
        assert lsp_logging.resolve_level(LoggingConfig(verbose=9)) == lsp_logging.TRACE


def test_uvicorn_level_follows_debugging():
    assert lsp_logging.uvicorn_log_level(LoggingConfig(level="debug")) == "info"
    assert lsp_logging.uvicorn_log_level(LoggingConfig(verbose=4)) == "info"
    assert lsp_logging.uvicorn_log_level(LoggingConfig()) == "warning"


def test_get_logger_children():
    assert lsp_logging.get_logger() is logging.getLogger("lspservice")
    assert lsp_logging.get_logger("bridge").name == "lspservice.bridge"


class TestSetupLogging:
    def test_file_handler(self, fresh_logger, tmp_path):
        log_file = tmp_path / "service.log"
        lsp_logging.setup_logging(LoggingConfig(level="debug", file=str(log_file)))

        logging.getLogger("lspservice.session.bridge").info("Swift client connected")
        for handler in fresh_logger.handlers:
            handler.flush()

        assert fresh_logger.level == logging.DEBUG
        assert "info: Swift client connected" in log_file.read_text()

    def test_env_log_file(self, fresh_logger, tmp_path, monkeypatch: pytest.MonkeyPatch):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("LSPSERVICE_LOG", str(log_file))
        lsp_logging.setup_logging(LoggingConfig())

        assert any(isinstance(h, logging.FileHandler) for h in fresh_logger.handlers)

    def test_stderr_fallback(self, fresh_logger):
        before = len(fresh_logger.handlers)
        lsp_logging.setup_logging(LoggingConfig(verbose=1))

        added = fresh_logger.handlers[before:]
        assert len(added) == 1
        assert type(added[0]) is logging.StreamHandler
        assert fresh_logger.level == logging.WARNING

    def test_second_call_is_noop(self, fresh_logger):
        lsp_logging.setup_logging(LoggingConfig())
        count = len(fresh_logger.handlers)
        lsp_logging.setup_logging(LoggingConfig(level="debug"))
        assert len(fresh_logger.handlers) == count
