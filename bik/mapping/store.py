"""Resolution of mapping references to their raw text."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

logger = logging.getLogger(__name__)

STORED_PREFIX = "mapping:"


class MappingStore:
    """Reads mappings by reference.

    A reference is either `mapping:<id>` for a mapping registered in memory,
    or `<prefix>:<file>` where the prefix (user, module, base...) names a
    directory. A reference without prefix is read under the default prefix,
    or as a plain file path.
    """

    def __init__(
        self,
        directories: Mapping[str, str | Path] | None = None,
        default_prefix: str = "user",
    ) -> None:
        self.directories = {prefix: Path(path) for prefix, path in (directories or {}).items()}
        self.default_prefix = default_prefix
        self._stored: dict[str, str] = {}

    def register(self, mapping_id: int | str, content: str) -> str:
        """Store a mapping in memory and return its reference."""
        self._stored[str(mapping_id)] = content
        return f"{STORED_PREFIX}{mapping_id}"

    def read(self, reference: str | None, default_prefix: str | None = None) -> str | None:
        """Get the content of a mapping, or None when it cannot be found."""
        if not reference or not reference.strip():
            return None
        reference = reference.strip()

        if reference.startswith(STORED_PREFIX):
            content = self._stored.get(reference[len(STORED_PREFIX):].strip())
            return content.strip() if content and content.strip() else None

        path = self._path(reference, default_prefix or self.default_prefix)
        if path is None or not path.is_file():
            logger.debug("Mapping %r not found", reference)
            return None
        content = path.read_text(encoding="utf-8").strip()
        return content or None

    def prefix_of(self, reference: str) -> str | None:
        prefix, sep, _ = reference.partition(":")
        return prefix if sep and prefix in self.directories else None

    def _path(self, reference: str, default_prefix: str) -> Path | None:
        prefix = self.prefix_of(reference)
        if prefix is not None:
            return self.directories[prefix] / reference[len(prefix) + 1:]
        direct = Path(reference)
        if direct.is_file():
            return direct
        directory = self.directories.get(default_prefix)
        return directory / reference if directory is not None else None
