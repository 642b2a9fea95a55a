"""Extension lifecycle: resolve -> load segments -> enable <-> disable. Drives sync broadcasts.

States per name: UNLOADED -> LOADED -> ENABLED <-> DISABLED. Code is never reloaded once
an instance exists; disable/enable reset its state instead.
"""

import asyncio
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Mapping

from modhost.extensions.builder import ExtensionBuilder
from modhost.extensions.catalog import FileCatalog
from modhost.extensions.config_store import ConfigStore
from modhost.extensions.context import ExtensionContext
from modhost.extensions.contract import Environment, ExtensionState, Plugin
from modhost.extensions.errors import (
    ExtensionError,
    ExtensionNotFound,
    InitialiseFailure,
    RegistrationFailure,
)
from modhost.extensions.registry import ExtensionRegistry
from modhost.hooks import HookBus, Hooks

if TYPE_CHECKING:
    from modhost.commands import CommandRegistry
    from modhost.game import GameServer
    from modhost.net.sync import SyncBroadcaster

logger = logging.getLogger(__name__)


class ExtensionManager:
    """Owns the registry and runs every lifecycle transition.

    Transitions for one name are serialized by a per-name lock; different extensions
    may interleave. Failures are raised as ExtensionError subclasses and never leave a
    half-registered instance behind.
    """

    def __init__(
        self,
        catalog: FileCatalog,
        config_store: ConfigStore,
        commands: "CommandRegistry",
        hooks: HookBus,
        environment: Environment = Environment.SERVER,
        registry: ExtensionRegistry | None = None,
        game: "GameServer | None" = None,
    ) -> None:
        self._catalog = catalog
        self._config_store = config_store
        self._commands = commands
        self._hooks = hooks
        self._environment = environment
        self._registry = registry or ExtensionRegistry()
        self._game = game
        self._enabled_once: set[str] = set()
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._sync: "SyncBroadcaster | None" = None
        self._hooks.set_plugin_source(self._registry.list_enabled)

    def set_sync_broadcaster(self, sync: "SyncBroadcaster") -> None:
        """Inject the broadcaster (authoritative side only)."""
        self._sync = sync

    @property
    def registry(self) -> ExtensionRegistry:
        return self._registry

    @property
    def catalog(self) -> FileCatalog:
        return self._catalog

    @property
    def environment(self) -> Environment:
        return self._environment

    def state(self, name: str) -> ExtensionState:
        name = name.lower()
        plugin = self._registry.lookup(name)
        if plugin is None:
            return ExtensionState.UNLOADED
        if plugin.enabled:
            return ExtensionState.ENABLED
        if name in self._enabled_once:
            return ExtensionState.DISABLED
        return ExtensionState.LOADED

    def _make_context(self, name: str) -> ExtensionContext:
        return ExtensionContext(
            extension_id=name,
            logger=logging.getLogger(f"ext.{name}"),
            environment=self._environment,
            commands=self._commands,
            hooks=self._hooks,
            config_store=self._config_store,
            manager=self,
            game=self._game,
        )

    async def load(self, name: str, defer_enable: bool = False) -> Plugin:
        """Load code segments for name; enable unless deferred. No-op if already loaded."""
        name = name.lower()
        async with self._locks[name]:
            return await self._load(name, defer_enable)

    async def enable(self, name: str) -> Plugin:
        """Enable a loaded extension. Enabling an enabled extension resets it."""
        name = name.lower()
        async with self._locks[name]:
            return await self._enable(name)

    async def disable(self, name: str) -> None:
        """Disable an enabled extension. No-op otherwise."""
        name = name.lower()
        async with self._locks[name]:
            await self._disable(name)

    async def _load(self, name: str, defer_enable: bool) -> Plugin:
        existing = self._registry.lookup(name)
        if existing is not None:
            return existing
        descriptor = self._catalog.resolve(name)
        if descriptor is None:
            raise ExtensionNotFound(name)
        if self._environment is Environment.SERVER:
            segment, segment_path = "server", descriptor.server_segment()
        else:
            segment, segment_path = "client", descriptor.client
        if descriptor.shared is None and segment_path is None:
            raise ExtensionNotFound(name)

        builder = ExtensionBuilder(name, self._registry, self._make_context)
        try:
            if descriptor.shared is not None:
                shared = builder.apply_shared(descriptor.shared)
                if shared.is_networked:
                    shared.setup_data_table()
                    shared.init_data_table()
            if segment_path is not None:
                builder.apply_environment(segment_path, segment)
            plugin = builder.finish()
        except ExtensionError:
            self._registry.unregister(name)
            raise
        except Exception as e:
            self._registry.unregister(name)
            raise RegistrationFailure(name, f"data table setup failed: {e}") from e

        if plugin.is_networked and descriptor.shared is None:
            logger.warning("%s is networked but has no shared segment; no data table", name)
        plugin.is_shared = descriptor.is_shared
        logger.info(
            "Loaded extension %s (shared=%s, %s=%s)",
            name,
            descriptor.has_shared_code,
            segment,
            segment_path is not None,
        )
        if defer_enable or self._environment is Environment.CLIENT:
            # Peers enable only on sync messages or from the auto-load list.
            return plugin
        return await self._enable(name)

    async def _enable(self, name: str) -> Plugin:
        plugin = self._registry.lookup(name)
        if plugin is None:
            raise ExtensionNotFound(name)
        if plugin.enabled:
            await self._disable(name)

        if plugin.has_config:
            plugin.config = self._config_store.load(
                name,
                plugin.resolved_config_name,
                plugin.default_config,
                check=plugin.check_config,
            )

        announce = self._announces(plugin)
        if announce:
            await self._sync.broadcast_state(name, True)

        try:
            ok = await plugin.initialise()
        except InitialiseFailure:
            await self._abort_enable(plugin, announce)
            raise
        except Exception as e:
            await self._abort_enable(plugin, announce)
            raise InitialiseFailure(name, str(e) or type(e).__name__) from e
        if not ok:
            await self._abort_enable(plugin, announce)
            raise InitialiseFailure(name, f"{name} failed to initialise")

        plugin.enabled = True
        if announce:
            self._sync.enable_settled(name)
        self._enabled_once.add(name)
        logger.info("Extension %s enabled", name)
        return plugin

    async def _abort_enable(self, plugin: Plugin, announced: bool) -> None:
        """Undo a failed initialise: no commands stay bound and peers are told."""
        try:
            await plugin.cleanup()
        except Exception as e:
            logger.exception("cleanup after failed initialise of %s: %s", plugin.name, e)
        plugin.enabled = False
        if announced:
            await self._sync.broadcast_state(plugin.name, False)

    async def _disable(self, name: str) -> None:
        plugin = self._registry.lookup(name)
        if plugin is None or not plugin.enabled:
            return
        try:
            await plugin.cleanup()
        except Exception as e:
            logger.exception("cleanup failed for %s: %s", name, e)
        plugin.enabled = False
        if self._announces(plugin):
            await self._sync.broadcast_state(name, False)
        logger.info("Extension %s disabled", name)
        await self._hooks.call(Hooks.PLUGIN_UNLOAD, name)

    def _announces(self, plugin: Plugin) -> bool:
        return (
            self._environment is Environment.SERVER
            and plugin.is_shared
            and self._sync is not None
        )

    async def preload(self) -> list[str]:
        """Load every folder extension without enabling it. Failures are logged."""
        loaded: list[str] = []
        for name in self._catalog.folder_extensions():
            try:
                await self.load(name, defer_enable=True)
                loaded.append(name)
            except ExtensionError as e:
                logger.error("Failed to load extension %s: %s", name, e)
        return loaded

    async def enable_active(self, active: Mapping[str, bool]) -> dict[str, str]:
        """Load/enable every name mapped to True. Returns {name: error} for failures."""
        failures: dict[str, str] = {}
        for name, wanted in active.items():
            if not wanted:
                continue
            try:
                if name.lower() in self._registry:
                    await self.enable(name)
                else:
                    await self.load(name)
            except ExtensionError as e:
                logger.error("Failed to enable extension %s: %s", name, e)
                failures[name] = str(e)
        return failures

    async def shutdown(self) -> None:
        """Disable everything that is enabled."""
        for name, _plugin in self._registry.list_enabled():
            await self.disable(name)
