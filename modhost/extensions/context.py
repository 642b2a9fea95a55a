"""ExtensionContext: kernel API for extensions. Single entry point; no direct core imports in extensions."""

import logging
from typing import TYPE_CHECKING, Any

from modhost.extensions.contract import Environment

if TYPE_CHECKING:
    from modhost.commands import CommandRegistry
    from modhost.extensions.config_store import ConfigStore
    from modhost.extensions.manager import ExtensionManager
    from modhost.game import GameServer
    from modhost.hooks import HookBus


class ExtensionContext:
    """Everything an extension can do: only through this object."""

    def __init__(
        self,
        extension_id: str,
        logger: logging.Logger,
        environment: Environment,
        commands: "CommandRegistry",
        hooks: "HookBus",
        config_store: "ConfigStore",
        manager: "ExtensionManager",
        game: "GameServer | None" = None,
    ) -> None:
        self.extension_id = extension_id
        self.logger = logger
        self.environment = environment
        self.commands = commands
        self.hooks = hooks
        self.config_store = config_store
        self._manager = manager
        self.game = game

    @property
    def is_server(self) -> bool:
        return self.environment is Environment.SERVER

    @property
    def manager(self) -> "ExtensionManager":
        """Lifecycle manager; admin extensions use it to load and unload others."""
        return self._manager

    def get_extension(self, name: str) -> Any:
        """Instance of another loaded extension, or None."""
        return self._manager.registry.lookup(name)

    def admin_print(self, caller: Any, message: str) -> None:
        """Report to whoever issued a command (console when caller is None)."""
        self.commands.admin_print(caller, message)
