"""Per-extension JSON config: load, save, default generation, additive key check.

A missing or corrupt file never blocks an extension: it degrades to defaults.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any

from modhost.extensions.errors import ConfigParseError, ConfigWriteError

logger = logging.getLogger(__name__)


def read_document(path: Path, extension: str = "") -> dict[str, Any] | None:
    """Return the parsed document, None if the file is absent. Raises ConfigParseError."""
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        raise ConfigParseError(extension, f"cannot parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigParseError(extension, f"{path} must contain a JSON object")
    return data


def write_document(path: Path, document: dict[str, Any], extension: str = "") -> None:
    """Atomic write via temp file + replace. Raises ConfigWriteError."""
    tmp = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(
            json.dumps(document, ensure_ascii=False, indent=4), encoding="utf-8"
        )
        tmp.replace(path)
    except (OSError, TypeError, ValueError) as e:
        raise ConfigWriteError(extension, f"cannot write {path}: {e}") from e


def fill_missing_keys(document: dict[str, Any], defaults: dict[str, Any]) -> bool:
    """Add keys present in defaults but missing in document. Mutates document.

    Nested dicts are merged recursively; keys already present are kept as they are.
    Returns True if anything was added.
    """
    changed = False
    for key, value in defaults.items():
        if key not in document:
            document[key] = copy.deepcopy(value)
            changed = True
        elif isinstance(value, dict) and isinstance(document[key], dict):
            if fill_missing_keys(document[key], value):
                changed = True
    return changed


class ConfigStore:
    """Reads and writes <config_dir>/<config_name> documents."""

    def __init__(self, config_dir: Path) -> None:
        self._config_dir = config_dir

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    def path_for(self, config_name: str) -> Path:
        return self._config_dir / config_name

    def load(
        self,
        extension: str,
        config_name: str,
        defaults: dict[str, Any],
        check: bool = False,
    ) -> dict[str, Any]:
        """Return the persisted document merged over defaults.

        Missing or unparsable files regenerate (and persist) the defaults. Keys missing
        from a valid file are filled in memory; with check=True the merged result is
        written back when anything was added.
        """
        path = self.path_for(config_name)
        try:
            document = read_document(path, extension)
        except ConfigParseError as e:
            logger.warning("Config for %s is invalid, using defaults: %s", extension, e)
            document = None
        if document is None:
            return self.generate_default(extension, config_name, defaults, persist=True)
        added = fill_missing_keys(document, defaults)
        if added and check:
            self.save(extension, config_name, document)
        return document

    def save(
        self,
        extension: str,
        config_name: str,
        document: dict[str, Any],
        silent: bool = False,
    ) -> bool:
        """Write the document. Failure is logged and returned as False, never raised."""
        try:
            write_document(self.path_for(config_name), document, extension)
        except ConfigWriteError as e:
            logger.error("Error writing %s config file: %s", extension, e)
            return False
        if not silent:
            logger.info("%s config file updated.", extension)
        return True

    def generate_default(
        self,
        extension: str,
        config_name: str,
        defaults: dict[str, Any],
        persist: bool,
    ) -> dict[str, Any]:
        """Deep copy of defaults, optionally persisted."""
        document = copy.deepcopy(defaults)
        if persist:
            try:
                write_document(self.path_for(config_name), document, extension)
                logger.info("%s config file created.", extension)
            except ConfigWriteError as e:
                logger.error("Error writing %s config file: %s", extension, e)
        return document
