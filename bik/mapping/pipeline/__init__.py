"""Composable pipeline used to convert one source document."""

from .context import MappingContext
from .filters import FILTERS, FilterArgs, FilterPipeline, FilterRegistry
from .queriers import (
    JmesPathBackend,
    JsdotBackend,
    JsonPathBackend,
    QueryBackend,
    QuerySession,
    XPathBackend,
    create_backend,
)
from .record_builder import RecordBuilder
from .value_resolution import ValueResolver

__all__ = [
    "MappingContext",
    "ValueResolver",
    "RecordBuilder",
    # Filters
    "FILTERS",
    "FilterArgs",
    "FilterPipeline",
    "FilterRegistry",
    # Query backends
    "QueryBackend",
    "QuerySession",
    "JsdotBackend",
    "JmesPathBackend",
    "JsonPathBackend",
    "XPathBackend",
    "create_backend",
]
