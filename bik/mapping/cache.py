"""Cache of normalized mappings, keyed by the hash of their text."""

from __future__ import annotations

import hashlib
import json
from collections import OrderedDict
from typing import Any, Callable

from .models import NormalizedConfig


class MappingCache:
    """Keeps parsed mappings so a config is normalized once per run.

    The cache is owned by the caller and passed to the processor. A changed
    text gives a new key, but a changed base or included mapping does not, so
    clear the cache when the mapping files are edited.
    """

    def __init__(self, maxsize: int = 128) -> None:
        self.maxsize = maxsize
        self._entries: OrderedDict[str, NormalizedConfig] = OrderedDict()

    @staticmethod
    def key(text: str, **options: Any) -> str:
        digest = hashlib.sha256(text.encode("utf-8"))
        if options:
            digest.update(json.dumps(options, sort_keys=True, default=str).encode("utf-8"))
        return digest.hexdigest()

    def get(self, key: str) -> NormalizedConfig | None:
        config = self._entries.get(key)
        if config is not None:
            self._entries.move_to_end(key)
        return config

    def set(self, key: str, config: NormalizedConfig) -> None:
        self._entries[key] = config
        self._entries.move_to_end(key)
        while len(self._entries) > self.maxsize:
            self._entries.popitem(last=False)

    def get_or_parse(
        self,
        text: str,
        parse: Callable[[str], NormalizedConfig],
        **options: Any,
    ) -> NormalizedConfig:
        key = self.key(text, **options)
        config = self.get(key)
        if config is None:
            config = parse(text)
            self.set(key, config)
        return config

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
