"""Peer-local auto-load list: client-side extensions the player wants enabled on every map."""

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from modhost.extensions.config_store import read_document, write_document
from modhost.extensions.errors import ConfigParseError, ConfigWriteError, ExtensionError

if TYPE_CHECKING:
    from modhost.extensions.manager import ExtensionManager

logger = logging.getLogger(__name__)


class AutoLoadList:
    """Persisted {name: true} mapping. Meant for client-only extensions, not shared ones."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._entries: dict[str, bool] | None = None

    @property
    def entries(self) -> dict[str, bool]:
        return dict(self._entries or {})

    def load(self) -> dict[str, bool]:
        try:
            data = read_document(self._path, "autoload") or {}
        except ConfigParseError as e:
            logger.warning("Ignoring auto-load list: %s", e)
            data = {}
        self._entries = {str(k): bool(v) for k, v in data.items() if v}
        return self.entries

    def set(self, name: str, autoload: bool) -> bool:
        """Add or remove name and persist. False before load() ran or on write error."""
        if self._entries is None:
            return False
        if autoload:
            self._entries[name] = True
        else:
            self._entries.pop(name, None)
        try:
            write_document(self._path, self._entries, "autoload")
        except ConfigWriteError as e:
            logger.error("Error writing auto-load list: %s", e)
            return False
        return True

    async def apply(self, manager: "ExtensionManager") -> list[str]:
        """Load the list and enable each entry. Returns the names that came up."""
        enabled: list[str] = []
        for name in self.load():
            try:
                if name.lower() not in manager.registry:
                    await manager.load(name, defer_enable=True)
                await manager.enable(name)
            except ExtensionError as e:
                logger.error("Auto-load of %s failed: %s", name, e)
                continue
            if manager.registry.is_enabled(name.lower()):
                enabled.append(name)
        return enabled
