"""Two-phase construction of one extension instance from its code segments.

Each segment file defines a module-level ``setup(builder)``. The shared segment calls
``builder.register(instance)``; the environment segment receives the same builder, so
it sees the very instance the shared segment registered and can add behavior to it
with ``builder.extend(Mixin)``. A segment of an extension without shared code
registers its own instance.
"""

import importlib.util
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from modhost.extensions.contract import Plugin
from modhost.extensions.errors import ExtensionError, RegistrationFailure

if TYPE_CHECKING:
    from modhost.extensions.context import ExtensionContext
    from modhost.extensions.registry import ExtensionRegistry

logger = logging.getLogger(__name__)


class ExtensionBuilder:
    """Carries instance identity across the shared and environment load steps."""

    def __init__(
        self,
        name: str,
        registry: "ExtensionRegistry",
        context_factory: Callable[[str], "ExtensionContext | None"],
    ) -> None:
        self.name = name
        self._registry = registry
        self._context_factory = context_factory
        self.instance: Plugin | None = None

    def register(self, instance: Plugin) -> Plugin:
        """Insert instance into the registry under this builder's name."""
        if not isinstance(instance, Plugin):
            raise RegistrationFailure(
                self.name, f"register() expects a Plugin, got {type(instance).__name__}"
            )
        self._registry.register(self.name, instance)
        instance.attach(self.name, self._context_factory(self.name))
        self.instance = instance
        return instance

    def extend(self, mixin: type) -> Plugin:
        """Layer mixin over the registered instance's class. Identity is preserved."""
        if self.instance is None:
            raise RegistrationFailure(
                self.name, "extend() called before the plugin registered itself"
            )
        base = type(self.instance)
        self.instance.__class__ = type(
            base.__name__, (mixin, base), {"__module__": mixin.__module__}
        )
        return self.instance

    def apply_shared(self, path: Path) -> Plugin:
        self._execute(path, "shared")
        if self.instance is None:
            raise RegistrationFailure(self.name)
        return self.instance

    def apply_environment(self, path: Path, segment: str) -> None:
        self._execute(path, segment)

    def finish(self) -> Plugin:
        """Return the registered instance; RegistrationFailure if there is none."""
        plugin = self._registry.lookup(self.name)
        if plugin is None:
            raise RegistrationFailure(self.name)
        return plugin

    def _execute(self, path: Path, segment: str) -> None:
        module_name = f"modhost_ext_{self.name}_{segment}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise RegistrationFailure(self.name, f"cannot load {path}")
        mod = importlib.util.module_from_spec(spec)
        sys.modules[spec.name] = mod
        try:
            spec.loader.exec_module(mod)
        except Exception as e:
            sys.modules.pop(spec.name, None)
            raise RegistrationFailure(
                self.name, f"failed to execute {path.name}: {e}"
            ) from e
        setup = getattr(mod, "setup", None)
        if not callable(setup):
            raise RegistrationFailure(self.name, f"{path.name} defines no setup(builder)")
        logger.debug("Running %s segment of %s", segment, self.name)
        try:
            setup(self)
        except ExtensionError:
            raise
        except Exception as e:
            raise RegistrationFailure(
                self.name, f"{segment} setup failed: {e}"
            ) from e
