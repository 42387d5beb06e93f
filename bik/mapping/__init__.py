"""Mapping layer converting source documents into destination records.

This module provides functionality to:
- Parse line and xml mappings into normalized configs
- Resolve destination descriptors against a vocabulary
- Compile patterns and evaluate them with filters
- Query json and xml documents with four path languages
- Compose a mapping with its base mapper
"""

from .cache import MappingCache
from .destination import DestinationDescriptor, DestinationResolver
from .errors import (
    ConfigSyntaxError,
    FieldResolutionError,
    FilterEvaluationError,
    InclusionDepthExceeded,
    MappingError,
    MappingNotFound,
    QueryBackendError,
)
from .models import (
    AutofillerBlock,
    ConfigInfo,
    Destination,
    DestinationRecord,
    MappingEntry,
    Modifier,
    NormalizedConfig,
    Querier,
    Source,
)
from .parser import MappingParser, compose
from .pattern import compile_pattern
from .processor import MappingProcessor
from .store import MappingStore

__all__ = [
    # Models
    "AutofillerBlock",
    "ConfigInfo",
    "Destination",
    "DestinationRecord",
    "MappingEntry",
    "Modifier",
    "NormalizedConfig",
    "Querier",
    "Source",
    # Errors
    "ConfigSyntaxError",
    "FieldResolutionError",
    "FilterEvaluationError",
    "InclusionDepthExceeded",
    "MappingError",
    "MappingNotFound",
    "QueryBackendError",
    # Parsing
    "DestinationDescriptor",
    "DestinationResolver",
    "MappingParser",
    "compile_pattern",
    "compose",
    # Processor
    "MappingCache",
    "MappingProcessor",
    "MappingStore",
]
