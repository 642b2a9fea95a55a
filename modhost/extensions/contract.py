"""Extension contract: Plugin base class, lifecycle states and environments.

A plugin subclasses Plugin, overrides initialise() and declares capabilities through
class flags (has_config, is_networked) instead of relying on attribute presence.
"""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from modhost.extensions.datatable import DataTable, DataTableVar

if TYPE_CHECKING:
    from modhost.commands import Command
    from modhost.extensions.context import ExtensionContext


class Environment(Enum):
    SERVER = "server"  # authoritative side
    CLIENT = "client"  # peer mirroring server state


class ExtensionState(Enum):
    UNLOADED = "unloaded"
    LOADED = "loaded"
    ENABLED = "enabled"
    DISABLED = "disabled"


class Plugin:
    """Base class for extensions. Instances persist across disable/enable cycles."""

    version = "1.0"

    has_config = False
    config_name: str | None = None  # defaults to <name>.json
    default_config: dict[str, Any] = {}
    check_config = False  # write back keys added from default_config
    silent_config_save = False

    is_networked = False  # calls setup_data_table() right after the shared segment

    def __init__(self) -> None:
        self.name = ""
        self.enabled = False
        self.is_shared = False
        self.config: dict[str, Any] | None = None
        self.commands: dict[str, "Command"] = {}
        self.dt: DataTable | None = None
        self.context: "ExtensionContext | None" = None
        self._dt_vars: dict[str, DataTableVar] = {}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r} enabled={self.enabled}>"

    @property
    def logger(self) -> logging.Logger:
        if self.context is not None:
            return self.context.logger
        return logging.getLogger(f"ext.{self.name or type(self).__name__}")

    @property
    def resolved_config_name(self) -> str:
        return self.config_name or f"{self.name}.json"

    def attach(self, name: str, context: "ExtensionContext | None") -> None:
        """Bind identity and kernel API. Called once by ExtensionBuilder.register()."""
        self.name = name
        self.context = context

    async def initialise(self) -> bool:
        return True

    async def cleanup(self) -> None:
        """Default cleanup removes every command bound through bind_command().

        A command another plugin has since re-bound under the same name is left alone.
        """
        if self.context is None:
            self.commands.clear()
            return
        for con_cmd, command in list(self.commands.items()):
            if self.context.commands.get(con_cmd) is command:
                self.context.commands.remove(con_cmd)
            del self.commands[con_cmd]

    def bind_command(
        self,
        con_cmd: str,
        chat_cmds: str | list[str] | None,
        func: Callable[..., Any],
        allow_by_default: bool = False,
        silent: bool = False,
    ) -> "Command":
        """Register a command owned by this plugin; cleanup() removes it again."""
        if self.context is None:
            raise RuntimeError(f"Plugin {self.name!r} is not attached to a context")
        command = self.context.commands.register(
            con_cmd, chat_cmds, func, allow_by_default=allow_by_default, silent=silent
        )
        self.commands[con_cmd] = command
        return command

    def save_config(self) -> bool:
        if self.context is None or self.config is None:
            return False
        return self.context.config_store.save(
            self.name,
            self.resolved_config_name,
            self.config,
            silent=self.silent_config_save,
        )

    # Networked fields

    def setup_data_table(self) -> None:
        """Declare networked fields with add_dt_var(). Only used when is_networked."""

    def add_dt_var(
        self, type_: str, name: str, default: Any, access: str | None = None
    ) -> None:
        if self.dt is not None:
            raise RuntimeError(f"Data table of {self.name!r} is already initialised")
        self._dt_vars[name] = DataTableVar(type=type_, default=default, access=access)

    def init_data_table(self) -> None:
        self.dt = DataTable(f"modhost_dt_{self.name}", self._dt_vars)
        network_update = getattr(self, "network_update", None)
        if callable(network_update):
            self.dt.set_change_callback(network_update)
        self._dt_vars = {}
