"""Shared fixtures: on-disk extension trees and a wired manager."""

import textwrap
from pathlib import Path
from typing import Callable

import pytest

from modhost.commands import CommandRegistry
from modhost.extensions import ConfigStore, Environment, ExtensionManager, FileCatalog
from modhost.game import HeadlessServer
from modhost.hooks import HookBus


@pytest.fixture
def ext_root(tmp_path: Path) -> Path:
    root = tmp_path / "extensions"
    root.mkdir()
    return root


@pytest.fixture
def write_ext(ext_root: Path) -> Callable[..., Path]:
    """write_ext("chat/shared.py", source, **fmt) writes a dedented file under ext_root."""

    def _write(rel: str, source: str, **fmt: str) -> Path:
        path = ext_root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        text = textwrap.dedent(source)
        if fmt:
            text = text.replace("{name}", fmt.get("name", "")).replace(
                "{side}", fmt.get("side", "")
            )
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def printed() -> list[str]:
    return []


@pytest.fixture
def make_manager(
    ext_root: Path, tmp_path: Path, printed: list[str]
) -> Callable[..., ExtensionManager]:
    """Build a manager over ext_root after the test has written its files."""

    def _make(
        environment: Environment = Environment.SERVER,
        roots: list[Path] | None = None,
        game: HeadlessServer | None = None,
    ) -> ExtensionManager:
        catalog = FileCatalog.scan(roots or [ext_root])
        config_dir = tmp_path / ("config" if environment is Environment.SERVER else "cl_config")
        return ExtensionManager(
            catalog=catalog,
            config_store=ConfigStore(config_dir),
            commands=CommandRegistry(
                game=game, printer=lambda client, message: printed.append(message)
            ),
            hooks=HookBus(),
            environment=environment,
            game=game,
        )

    return _make
