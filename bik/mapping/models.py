from __future__ import annotations
from typing import Any, Dict, List, Literal, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator
from enum import Enum

# Bare tokens filled from the variables instead of a query on the document.
RESERVED_TOKENS = ("{{ value }}", "{{ label }}", "{{ list }}")


class Querier(str, Enum):
    """Path-expression backends available to extract source values."""
    JSDOT = "jsdot"
    JMESPATH = "jmespath"
    JSONPATH = "jsonpath"
    XPATH = "xpath"


class SectionType(str, Enum):
    RAW = "raw"
    RAW_OR_PATTERN = "raw_or_pattern"
    MAPPING = "mapping"


SECTION_TYPES: Dict[str, SectionType] = {
    "info": SectionType.RAW,
    "params": SectionType.RAW_OR_PATTERN,
    "default": SectionType.MAPPING,
    "mapping": SectionType.MAPPING,
}


class Source(BaseModel):
    """Where a value is read in the source document."""
    model_config = ConfigDict(frozen=True)

    querier: Querier = Field(Querier.JSDOT, description="Backend used to run the path")
    path: str = Field(..., description="Path expression in the querier language")


class Destination(BaseModel):
    """Parsed destination descriptor (`field @lang ^^datatype §visibility`)."""
    model_config = ConfigDict(frozen=True)

    field: str = Field(..., description="Property term or other resource field")
    property_id: int | str | None = Field(None, description="Resolved property id")
    datatype: List[str] = Field(default_factory=list, description="Canonical datatype names")
    language: str | None = Field(None, description="Language tag of the values")
    visibility: Literal["public", "private"] | None = Field(None, description="Value visibility")
    dest: str | None = Field(None, description="Descriptor text as written in the mapping")

    @property
    def is_public(self) -> bool | None:
        if self.visibility is None:
            return None
        return self.visibility != "private"


class Modifier(BaseModel):
    """Value transform of an entry.

    Either a literal (`raw` is always emitted, `val` is emitted only when the
    source has a value), or a compiled pattern: `prepend` and `append` are
    literal runs, `pattern` holds the placeholders. `replace` lists the
    spaceless `{{path}}` placeholders and `filters` the spaced `{{ expr }}`
    ones, with `filters_has_replace` flagging expressions that contain a
    placeholder.
    """
    model_config = ConfigDict(frozen=True)

    raw: str | None = None
    val: str | None = None
    prepend: str | None = None
    pattern: str | None = None
    append: str | None = None
    replace: List[str] = Field(default_factory=list)
    filters: List[str] = Field(default_factory=list)
    filters_has_replace: List[bool] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_literal_exclusive(self) -> Modifier:
        literal = self.raw is not None or self.val is not None
        templated = any(part is not None for part in (self.prepend, self.pattern, self.append))
        if literal and templated:
            raise ValueError("raw/val cannot be combined with prepend, pattern or append")
        if self.raw is not None and self.val is not None:
            raise ValueError("raw and val are mutually exclusive")
        if self.filters_has_replace and len(self.filters_has_replace) != len(self.filters):
            raise ValueError("filters_has_replace must flag every filter expression")
        return self

    @property
    def is_empty(self) -> bool:
        return all(
            part is None
            for part in (self.raw, self.val, self.prepend, self.pattern, self.append)
        )


class MappingEntry(BaseModel):
    """One source-to-destination rule."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source: Source | None = Field(None, alias="from")
    destination: Destination | None = Field(None, alias="to")
    modifier: Modifier = Field(default_factory=Modifier, alias="mod")
    error: str | None = Field(None, description="Reason why the entry cannot be used")

    @property
    def is_valid(self) -> bool:
        return self.error is None and self.destination is not None


class AutofillerBlock(BaseModel):
    """Sub-mapping scoped to one external lookup service."""
    model_config = ConfigDict(frozen=True)

    service: str
    sub: str | None = None
    variant: str | None = None
    label: str | None = None
    mapping: List[MappingEntry] = Field(default_factory=list)


class ConfigInfo(BaseModel):
    """Raw key/value pairs of the info section."""
    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    label: str | None = None
    source_format: str | None = Field(None, alias="from")
    target: str | None = Field(None, alias="to")
    querier: str | None = None
    mapper: str | None = None
    example: str | None = None


ParamValue = Union[Modifier, bool, str, None]

# Field name -> produced values, in entry order.
DestinationRecord = Dict[str, List[str]]


class NormalizedConfig(BaseModel):
    """Dialect-independent form of a mapping, read-only once built."""
    model_config = ConfigDict(frozen=True)

    info: ConfigInfo = Field(default_factory=ConfigInfo)
    params: Dict[str, ParamValue] = Field(default_factory=dict)
    default: List[MappingEntry] = Field(default_factory=list)
    mapping: List[MappingEntry] = Field(default_factory=list)
    tables: Dict[str, Dict[str, str]] = Field(default_factory=dict)
    autofillers: Dict[str, AutofillerBlock] = Field(default_factory=dict)
    has_error: bool = False
    errors: List[str] = Field(default_factory=list)

    @property
    def querier(self) -> Querier:
        try:
            return Querier(self.info.querier or Querier.JSDOT.value)
        except ValueError:
            return Querier.JSDOT

    @property
    def is_empty(self) -> bool:
        return not (self.params or self.default or self.mapping)

    def get_section(self, section: str) -> Any:
        if section == "maps":
            section = "mapping"
        if section == "info":
            return self.info.model_dump(by_alias=True)
        if section in ("params", "default", "mapping", "tables", "autofillers"):
            return getattr(self, section)
        return None

    def get_entry(self, path: str) -> MappingEntry | None:
        """Return the first entry reading the given source path."""
        for entry in self.mapping:
            if entry.source is not None and entry.source.path == path:
                return entry
        return None

    def get_section_setting(self, section: str, name: str, default: Any = None) -> Any:
        """Get a setting of a key/value section, or the first entry of a mapping section
        reading `name`."""
        values = self.get_section(section)
        if isinstance(values, dict):
            value = values.get(name, default)
            return default if value is None else value
        if isinstance(values, list):
            for entry in values:
                if entry.source is not None and entry.source.path == name:
                    return entry
        return default
