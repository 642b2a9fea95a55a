"""Tests for the peer-local auto-load list."""

import json
import logging
from pathlib import Path

from modhost.extensions import AutoLoadList, Environment
from tests.sources import COUNTING_PLUGIN


class TestAutoLoadList:
    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        autoload = AutoLoadList(tmp_path / "autoload.json")
        assert autoload.load() == {}

    def test_corrupt_file_is_ignored(self, tmp_path: Path, caplog) -> None:
        path = tmp_path / "autoload.json"
        path.write_text("[oops", encoding="utf-8")
        with caplog.at_level(logging.WARNING):
            assert AutoLoadList(path).load() == {}
        assert "Ignoring auto-load list" in caplog.text

    def test_false_entries_are_dropped(self, tmp_path: Path) -> None:
        path = tmp_path / "autoload.json"
        path.write_text(json.dumps({"hud": True, "old": False}), encoding="utf-8")
        assert AutoLoadList(path).load() == {"hud": True}

    def test_set_requires_load(self, tmp_path: Path) -> None:
        assert AutoLoadList(tmp_path / "autoload.json").set("hud", True) is False

    def test_set_persists(self, tmp_path: Path) -> None:
        path = tmp_path / "autoload.json"
        autoload = AutoLoadList(path)
        autoload.load()
        assert autoload.set("hud", True) is True
        assert autoload.set("radar", True) is True
        assert autoload.set("hud", False) is True
        assert json.loads(path.read_text(encoding="utf-8")) == {"radar": True}
        assert autoload.entries == {"radar": True}

    async def test_apply_enables_entries(self, tmp_path: Path, write_ext, make_manager) -> None:
        write_ext("hud/client.py", COUNTING_PLUGIN, name="hud")
        write_ext("radar/client.py", COUNTING_PLUGIN, name="radar")
        manager = make_manager(Environment.CLIENT)
        await manager.load("radar", defer_enable=True)
        path = tmp_path / "autoload.json"
        path.write_text(json.dumps({"hud": True, "radar": True, "ghost": True}), encoding="utf-8")
        enabled = await AutoLoadList(path).apply(manager)
        assert sorted(enabled) == ["hud", "radar"]
        assert manager.registry.is_enabled("hud")
        assert manager.registry.is_enabled("radar")
