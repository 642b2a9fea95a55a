"""Extension lifecycle errors. All are local to one extension and never stop the control loop."""


class ExtensionError(Exception):
    """Base class for lifecycle failures of a single extension."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(message)
        self.name = name
        self.message = message

    def __str__(self) -> str:
        return self.message


class ExtensionNotFound(ExtensionError):
    """No code segment matched the extension name."""

    def __init__(self, name: str, message: str = "plugin does not exist") -> None:
        super().__init__(name, message)


class RegistrationFailure(ExtensionError):
    """Segments ran but no instance ended up in the registry."""

    def __init__(
        self, name: str, message: str = "plugin did not register itself"
    ) -> None:
        super().__init__(name, message)


class DuplicateRegistration(ExtensionError):
    """An extension tried to register twice under the same name."""

    def __init__(self, name: str) -> None:
        super().__init__(name, f"plugin {name} is already registered")


class InitialiseFailure(ExtensionError):
    """initialise() returned False or raised. The instance stays loaded."""


class ConfigParseError(ExtensionError):
    """Persisted config could not be parsed. Degrades to defaults."""


class ConfigWriteError(ExtensionError):
    """Config could not be written. Logged only."""
