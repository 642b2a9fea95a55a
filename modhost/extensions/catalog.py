"""File catalog: one scan of the extension roots at process start, read-only afterwards.

Discovering a new extension requires a restart. The lifecycle manager never has to
handle a file that appeared after the index was built.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

SHARED_FILE = "shared.py"
SERVER_FILE = "server.py"
CLIENT_FILE = "client.py"
_SEGMENT_FILES = frozenset({SHARED_FILE, SERVER_FILE, CLIENT_FILE})

# PluginEnable carries the name as string(25).
MAX_SYNC_NAME_LENGTH = 25


@dataclass(frozen=True)
class ExtensionDescriptor:
    """Which code segments exist for one extension name."""

    name: str
    shared: Path | None = None
    server: Path | None = None
    client: Path | None = None
    fallback: Path | None = None  # legacy <name>.py or case-insensitive match

    @property
    def has_shared_code(self) -> bool:
        return self.shared is not None

    @property
    def has_server_code(self) -> bool:
        return self.server is not None or self.fallback is not None

    @property
    def has_client_code(self) -> bool:
        return self.client is not None

    @property
    def is_shared(self) -> bool:
        """Runs on both sides, so its enabled state is replicated to peers."""
        return self.has_shared_code

    def server_segment(self) -> Path | None:
        return self.server or self.fallback


class FileCatalog:
    """Immutable index of extension files, keyed by POSIX path relative to its root."""

    def __init__(self, files: dict[str, Path]) -> None:
        self._files = dict(files)
        self._index = frozenset(self._files)

    @classmethod
    def scan(cls, roots: Iterable[Path]) -> "FileCatalog":
        """Collect every *.py under each root. The first root providing a path wins."""
        files: dict[str, Path] = {}
        for root in roots:
            if not root.is_dir():
                logger.warning("Extension root %s does not exist, skipping", root)
                continue
            for path in sorted(root.rglob("*.py")):
                rel = path.relative_to(root)
                if "__pycache__" in rel.parts or rel.name == "__init__.py":
                    continue
                files.setdefault(rel.as_posix(), path.resolve())
        logger.info("File catalog built: %d extension files", len(files))
        return cls(files)

    @property
    def files(self) -> frozenset[str]:
        return self._index

    def __contains__(self, rel: str) -> bool:
        return rel in self._index

    def __len__(self) -> int:
        return len(self._index)

    def path(self, rel: str) -> Path | None:
        return self._files.get(rel)

    def resolve(self, name: str) -> ExtensionDescriptor | None:
        """Resolve segments for name; None when nothing matches."""
        shared = self.path(f"{name}/{SHARED_FILE}")
        server = self.path(f"{name}/{SERVER_FILE}")
        client = self.path(f"{name}/{CLIENT_FILE}")
        fallback = None
        if server is None:
            fallback = self.path(f"{name}.py") or self._search_case_insensitive(name)
        if not any((shared, server, client, fallback)):
            return None
        return ExtensionDescriptor(
            name=name, shared=shared, server=server, client=client, fallback=fallback
        )

    def _search_case_insensitive(self, name: str) -> Path | None:
        wanted = f"{name.lower()}.py"
        for rel in sorted(self._index):
            parts = rel.split("/")
            if len(parts) > 1 and parts[-1] in _SEGMENT_FILES:
                continue
            if parts[-1].lower() == wanted:
                return self._files[rel]
        return None

    def folder_extensions(self) -> list[str]:
        """Names of extensions that live in their own folder."""
        names = set()
        for rel in self._index:
            parts = rel.split("/")
            if len(parts) == 2 and parts[1] in _SEGMENT_FILES:
                names.add(parts[0])
        return sorted(names)

    def shared_extensions(self) -> list[str]:
        """Names with a shared segment: the set replicated to peers."""
        names: list[str] = []
        for rel in sorted(self._index):
            parts = rel.split("/")
            if len(parts) != 2 or parts[1] != SHARED_FILE:
                continue
            if len(parts[0]) > MAX_SYNC_NAME_LENGTH:
                logger.warning(
                    "Shared extension %s has a name longer than %d characters; "
                    "its state will not be synced",
                    parts[0],
                    MAX_SYNC_NAME_LENGTH,
                )
                continue
            names.append(parts[0])
        return names
