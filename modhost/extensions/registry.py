"""Extension registry: name -> live instance. No I/O; mutated only by the lifecycle manager."""

import threading
from typing import TYPE_CHECKING, Iterable

from modhost.extensions.errors import DuplicateRegistration

if TYPE_CHECKING:
    from modhost.extensions.contract import Plugin


class ExtensionRegistry:
    """Single source of truth for "does this extension exist" and "is it enabled"."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._plugins: dict[str, "Plugin"] = {}

    def register(self, name: str, instance: "Plugin") -> None:
        """Insert instance. Re-registration is only valid after unregister()."""
        with self._lock:
            if name in self._plugins:
                raise DuplicateRegistration(name)
            self._plugins[name] = instance

    def unregister(self, name: str) -> None:
        """Drop a registration. Used to roll back a load that failed midway."""
        with self._lock:
            self._plugins.pop(name, None)

    def lookup(self, name: str) -> "Plugin | None":
        with self._lock:
            return self._plugins.get(name)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._plugins

    def names(self) -> list[str]:
        with self._lock:
            return list(self._plugins)

    def items(self) -> list[tuple[str, "Plugin"]]:
        with self._lock:
            return list(self._plugins.items())

    def list_enabled(self) -> list[tuple[str, "Plugin"]]:
        """Snapshot of enabled instances; safe to iterate while a transition runs."""
        with self._lock:
            return [(n, p) for n, p in self._plugins.items() if p.enabled]

    def is_enabled(self, name: str) -> bool:
        plugin = self.lookup(name)
        return plugin is not None and plugin.enabled

    def enabled_map(self, names: Iterable[str]) -> dict[str, bool]:
        """{name: enabled} for the given names; unknown names map to False."""
        return {name: self.is_enabled(name) for name in names}
