"""Extension system: catalog, config store, registry, contract, builder, manager."""

from modhost.extensions.autoload import AutoLoadList
from modhost.extensions.builder import ExtensionBuilder
from modhost.extensions.catalog import ExtensionDescriptor, FileCatalog
from modhost.extensions.config_store import ConfigStore
from modhost.extensions.context import ExtensionContext
from modhost.extensions.contract import Environment, ExtensionState, Plugin
from modhost.extensions.datatable import DataTable
from modhost.extensions.errors import (
    ConfigParseError,
    ConfigWriteError,
    DuplicateRegistration,
    ExtensionError,
    ExtensionNotFound,
    InitialiseFailure,
    RegistrationFailure,
)
from modhost.extensions.manager import ExtensionManager
from modhost.extensions.registry import ExtensionRegistry

__all__ = [
    "AutoLoadList",
    "ConfigParseError",
    "ConfigStore",
    "ConfigWriteError",
    "DataTable",
    "DuplicateRegistration",
    "Environment",
    "ExtensionBuilder",
    "ExtensionContext",
    "ExtensionDescriptor",
    "ExtensionError",
    "ExtensionManager",
    "ExtensionNotFound",
    "ExtensionRegistry",
    "ExtensionState",
    "FileCatalog",
    "InitialiseFailure",
    "Plugin",
    "RegistrationFailure",
]
