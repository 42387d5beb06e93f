"""Exceptions raised while loading and evaluating mappings."""


class MappingError(Exception):
    """Base exception for the mapping engine."""


class ConfigSyntaxError(MappingError):
    """A section header, a map line or an xml mapping cannot be parsed."""


class FieldResolutionError(MappingError):
    """A destination field matches no known property."""


class QueryBackendError(MappingError):
    """A path expression is malformed or cannot run on the document."""


class FilterEvaluationError(MappingError):
    """A filter cannot compute its output from the current value."""


class InclusionDepthExceeded(MappingError):
    """Too many nested includes, generally a recursive mapping."""


class MappingNotFound(MappingError):
    """A mapping reference cannot be resolved to any content."""
