"""Vocabulary definitions used to resolve destination fields."""

from .dublin_core import DUBLIN_CORE
from .loader import SchemaLoader
from .models import CustomVocabSchema, PropertySchema, SchemaConfig, VocabularySchema

__all__ = [
    "CustomVocabSchema",
    "DUBLIN_CORE",
    "PropertySchema",
    "SchemaConfig",
    "SchemaLoader",
    "VocabularySchema",
]
