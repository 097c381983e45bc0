"""Tests for the rich logging setup."""

import logging

import pytest
from rich.logging import RichHandler

import logger


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


class TestSetupLogging:
    """Handler level follows the debug switch unless LOGLEVEL overrides it."""

    @pytest.mark.parametrize("debug, level", [(True, logging.DEBUG), (False, logging.INFO)])
    def test_debug_switch(self, restore_root_logger, monkeypatch, debug, level):
        monkeypatch.delenv("LOGLEVEL", raising=False)
        logger.setup_logging(debug)

        handlers = [h for h in restore_root_logger.handlers if isinstance(h, RichHandler)]
        assert len(handlers) == 1
        assert handlers[0].level == level
        assert handlers[0].console is logger.console

    def test_env_override(self, restore_root_logger, monkeypatch):
        monkeypatch.setenv("LOGLEVEL", "WARNING")
        logger.setup_logging(True)

        handler = next(h for h in restore_root_logger.handlers if isinstance(h, RichHandler))
        assert handler.level == logging.WARNING
