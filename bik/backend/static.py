"""In-memory vocabulary backend built from a schema file."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .interface import VocabularyBackend
from ..schema.loader import SchemaLoader
from ..schema.models import SchemaConfig

logger = logging.getLogger(__name__)

DEFAULT_DATATYPES = [
    "literal",
    "uri",
    "resource",
    "resource:item",
    "resource:itemset",
    "resource:media",
    "resource:annotation",
    "numeric:timestamp",
    "numeric:integer",
    "numeric:interval",
    "numeric:duration",
    "geography",
    "geography:coordinates",
    "geometry",
    "geometry:coordinates",
    "geometry:position",
    "boolean",
    "html",
    "xml",
]


class StaticBackend(VocabularyBackend):
    """Vocabulary backend answering from a loaded `SchemaConfig`."""

    def __init__(self, schema: SchemaConfig | None = None) -> None:
        schema = schema or SchemaLoader().load()
        self.schema = schema
        # term -> "Vocabulary label:Property label"
        self._terms: dict[str, str] = {}
        # term -> property id
        self._ids: dict[str, int | str | None] = {}
        for vocabulary in schema.vocabularies:
            for prop in vocabulary.properties:
                term = vocabulary.term(prop)
                self._terms[term] = f"{vocabulary.label}:{prop.label}"
                self._ids[term] = prop.id
        self._custom_vocabs = {
            custom_vocab.label: custom_vocab.id for custom_vocab in schema.custom_vocabs
        }
        self._datatypes = list(dict.fromkeys(
            DEFAULT_DATATYPES
            + schema.datatypes
            + [f"customvocab:{custom_vocab.id}" for custom_vocab in schema.custom_vocabs]
        ))

    @classmethod
    def from_file(cls, schema_path: str | Path | None) -> StaticBackend:
        schema = SchemaLoader().load(schema_path)
        logger.debug(
            "Loaded %d vocabularies and %d custom vocabs from %s",
            len(schema.vocabularies), len(schema.custom_vocabs), schema_path or "defaults",
        )
        return cls(schema)

    def list_terms(self) -> Dict[str, str]:
        return dict(self._terms)

    def get_property_id(self, term: str) -> Optional[int | str]:
        return self._ids.get(term)

    def get_custom_vocab_id(self, label: str) -> Optional[int | str]:
        return self._custom_vocabs.get(label)

    def datatype_names(self) -> List[str]:
        return list(self._datatypes)
