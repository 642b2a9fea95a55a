"""Replicate enablement state: full sync per peer on connect, delta on every toggle."""

import logging
from typing import TYPE_CHECKING, Iterable

from modhost.extensions.errors import ExtensionError
from modhost.net.messages import PluginEnable, PluginSync
from modhost.net.transport import Message, Transport

if TYPE_CHECKING:
    from modhost.extensions.manager import ExtensionManager
    from modhost.extensions.registry import ExtensionRegistry

logger = logging.getLogger(__name__)


class SyncBroadcaster:
    """Authoritative side. Only extensions in the shared set are ever announced.

    Between the enable announce and the end of initialise() an extension counts as
    enabled in the full table, so a peer connecting in that window still converges.
    """

    def __init__(
        self,
        transport: Transport,
        registry: "ExtensionRegistry",
        shared_names: Iterable[str],
    ) -> None:
        self._transport = transport
        self._registry = registry
        self._names = frozenset(shared_names)
        self._enabling: set[str] = set()

    @property
    def shared_names(self) -> frozenset[str]:
        return self._names

    def has_peers(self) -> bool:
        return bool(self._transport.peers())

    def build_plugin_data(self) -> dict[str, bool]:
        data = self._registry.enabled_map(sorted(self._names))
        for name in self._enabling:
            data[name] = True
        return data

    async def send_full_sync(self, peer_id: str) -> None:
        message = PluginSync(plugins=self.build_plugin_data())
        logger.debug("Full sync to %s: %s", peer_id, message.plugins)
        await self._transport.send(peer_id, message)

    def enable_settled(self, name: str) -> None:
        """initialise() succeeded; the registry reports name from here on."""
        self._enabling.discard(name)

    async def broadcast_state(self, name: str, enabled: bool) -> None:
        if name not in self._names:
            logger.debug("Not syncing %s: not in the shared set", name)
            return
        if enabled:
            self._enabling.add(name)
        else:
            self._enabling.discard(name)
        if not self.has_peers():
            return
        await self._transport.broadcast(PluginEnable(plugin=name, enabled=enabled))


class SyncReceiver:
    """Peer side: mirror the authoritative table through the local manager."""

    def __init__(self, manager: "ExtensionManager") -> None:
        self._manager = manager

    async def handle(self, message: Message) -> None:
        if isinstance(message, PluginSync):
            await self.apply_full_sync(message)
        else:
            await self.apply_delta(message)

    async def apply_full_sync(self, message: PluginSync) -> None:
        for name, enabled in message.plugins.items():
            if enabled:
                await self._apply(name, True)
            elif self._manager.registry.is_enabled(name):
                # Only happens after a reconnect; a fresh peer has nothing enabled.
                await self._apply(name, False)

    async def apply_delta(self, message: PluginEnable) -> None:
        await self._apply(message.plugin, message.enabled)

    async def _apply(self, name: str, enabled: bool) -> None:
        try:
            if enabled:
                await self._manager.enable(name)
            else:
                await self._manager.disable(name)
        except ExtensionError as e:
            logger.error(
                "Cannot %s %s from sync: %s", "enable" if enabled else "disable", name, e
            )
