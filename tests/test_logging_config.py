"""Tests for setup_logging."""

import logging
from pathlib import Path

import pytest

from modhost.logging_config import setup_logging


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("ext").setLevel(logging.NOTSET)


class TestSetupLogging:
    def test_file_handler_and_levels(self, tmp_path: Path, restore_root) -> None:
        settings = {
            "role": "client",
            "logging": {
                "file": "logs/test.log",
                "level": "WARNING",
                "levels": {"ext": "DEBUG"},
            },
        }
        setup_logging(tmp_path, settings)
        assert restore_root.level == logging.WARNING
        assert len(restore_root.handlers) == 1
        logging.getLogger("ext.chat").debug("chat debug line")
        logging.getLogger("modhost.other").info("filtered out")
        for handler in restore_root.handlers:
            handler.flush()
        text = (tmp_path / "logs" / "test.log").read_text(encoding="utf-8")
        assert "[client] ext.chat: chat debug line" in text
        assert "filtered out" not in text

    def test_console_handler(self, tmp_path: Path, restore_root) -> None:
        setup_logging(tmp_path, {"logging": {"file": "x.log", "log_to_console": True}})
        kinds = {type(h) for h in restore_root.handlers}
        assert logging.StreamHandler in kinds
        assert len(restore_root.handlers) == 2
