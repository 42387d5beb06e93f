"""Parsing of mapping texts into `NormalizedConfig`.

Two dialects are supported, selected by the first character of the text: a
xml mapping starts with `<`, anything else is read line by line:

    [info]
    label = Marc to Dublin Core
    querier = xpath

    [default]
    dcterms:license = "Public domain"

    [mapping]
    /record/title = dcterms:title @fra ^^literal
    /record/date = dcterms:date ~ {{ value|slice(0,4) }}
"""

from __future__ import annotations

import logging
import re
from typing import Any

from lxml import etree

from .destination import DestinationResolver, split_pattern, tokenize_datatypes
from .errors import ConfigSyntaxError, FieldResolutionError, InclusionDepthExceeded
from .models import (
    SECTION_TYPES,
    AutofillerBlock,
    ConfigInfo,
    Destination,
    MappingEntry,
    Modifier,
    NormalizedConfig,
    ParamValue,
    Querier,
    Source,
)
from .pattern import compile_pattern
from .store import MappingStore
from .utils import is_quoted, string_to_list

logger = logging.getLogger(__name__)

DEFAULT_MAX_INCLUDE_DEPTH = 20

_SECTION = re.compile(r"^\[\s*(?P<name>[^\[\]]*?)\s*\]$")
_AUTOFILLER = re.compile(
    r"^\[\s*(?P<service>[^\[\]:#\s]+)(?::(?P<sub>[^\[\]#\s]+))?\s*(?:#(?P<variant>[^\[\]]+?))?\s*\]"
    r"(?:\s*=\s*(?P<label>.*))?$"
)
_INCLUDE = re.compile(r"""<include\s+mapping\s*=\s*(["'])(.*?)\1\s*/>""")
_XML_DECLARATION = re.compile(r"<\?xml[^>]*\?>")
_MAPPING_TAG = re.compile(r"</?mapping(?:\s[^>]*)?>")
_RAW_LITERALS = {"true": True, "false": False, "null": None}


def _last_separator(head: str) -> int:
    """Position of the last `=` outside quotes, or -1."""
    position = -1
    quote = None
    for index, char in enumerate(head):
        if quote:
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char == "=":
            position = index
    return position


def split_line(line: str) -> tuple[str, str, bool] | None:
    """Split a line into its source and destination parts.

    A line without `=` before its pattern is a destination only, like a
    spreadsheet header. A line starting with `~` has no source path and is
    split at its first `=`.

    Returns:
        The source, the destination and whether the line was a destination
        only, or None when the line cannot be split
    """
    line = line.strip()
    head, _ = split_pattern(line)
    only_destination = not line.startswith("~") and _last_separator(head) < 0
    if only_destination:
        line = "~ = " + line

    position = line.find("=") if line.startswith("~") else _last_separator(split_pattern(line)[0])
    if position < 0:
        return None
    return line[:position].strip(), line[position + 1:].strip(), only_destination


def param_value(text: str | None) -> ParamValue:
    """Convert the right part of a param: a quoted raw value, a `~ pattern`, or
    a raw value where `true`, `false` and `null` are literals."""
    if text is None:
        return None
    text = text.strip()
    if is_quoted(text):
        return text[1:-1].strip()
    if text.startswith("~"):
        return compile_pattern(text[1:].strip())
    return _RAW_LITERALS.get(text.lower(), text)


def compose(base: NormalizedConfig, child: NormalizedConfig) -> NormalizedConfig:
    """Merge a child mapping over its base.

    Key/value sections are merged, the child winning. Entries are
    concatenated, base first, and exact duplicates are removed.
    """
    info = {
        **base.info.model_dump(by_alias=True, exclude_none=True),
        **child.info.model_dump(by_alias=True, exclude_none=True),
    }
    return NormalizedConfig(
        info=ConfigInfo.model_validate(info),
        params={**base.params, **child.params},
        default=_unique_entries([*base.default, *child.default]),
        mapping=_unique_entries([*base.mapping, *child.mapping]),
        tables={**base.tables, **child.tables},
        autofillers={**base.autofillers, **child.autofillers},
        has_error=base.has_error or child.has_error,
        errors=[*base.errors, *child.errors],
    )


def _unique_entries(entries: list[MappingEntry]) -> list[MappingEntry]:
    seen: set[str] = set()
    result = []
    for entry in entries:
        key = entry.model_dump_json(by_alias=True)
        if key in seen:
            continue
        seen.add(key)
        result.append(entry)
    return result


class _Collector:
    """Mutable state of one parse, frozen into a `NormalizedConfig` at the end."""

    def __init__(self, name: str | None) -> None:
        self.name = name
        self.info: dict[str, Any] = {}
        self.params: dict[str, ParamValue] = {}
        self.default: list[MappingEntry] = []
        self.mapping: list[MappingEntry] = []
        self.tables: dict[str, dict[str, str]] = {}
        self.autofillers: dict[str, AutofillerBlock] = {}
        self.errors: list[str] = []
        self.has_error = False

    def error(self, message: str, fatal: bool = True) -> MappingEntry:
        logger.warning('Mapping "%s": %s', self.name or "", message)
        self.errors.append(message)
        if fatal:
            self.has_error = True
        return MappingEntry(error=message)

    def build(self) -> NormalizedConfig:
        info = dict(self.info)
        if not info.get("label") and self.name:
            info["label"] = self.name
        return NormalizedConfig(
            info=ConfigInfo.model_validate(info),
            params=self.params,
            default=self.default,
            mapping=self.mapping,
            tables=self.tables,
            autofillers=self.autofillers,
            has_error=self.has_error,
            errors=self.errors,
        )


class MappingParser:
    """Builds normalized mappings from line or xml texts.

    Args:
        resolver: Resolver of the destination descriptors
        store: Store used to read included and base mappings
        max_include_depth: Maximum nesting of includes and base mappers
    """

    def __init__(
        self,
        resolver: DestinationResolver | None = None,
        store: MappingStore | None = None,
        max_include_depth: int = DEFAULT_MAX_INCLUDE_DEPTH,
    ) -> None:
        self.resolver = resolver or DestinationResolver()
        self.store = store or MappingStore()
        self.max_include_depth = max_include_depth

    def parse(self, text: str | None, name: str | None = None, prefix: str | None = None) -> NormalizedConfig:
        """Parse a mapping and compose it with its base mapper, if any.

        Args:
            text: Content of the mapping
            name: Name used as default label and in logs
            prefix: Store prefix of the mapping, used to read its includes

        Raises:
            InclusionDepthExceeded: If includes or base mappers nest too deeply
        """
        return self._parse(text, name, prefix, depth=0)

    def _parse(self, text: str | None, name: str | None, prefix: str | None, depth: int) -> NormalizedConfig:
        text = (text or "").strip()
        if not text:
            return NormalizedConfig(info=ConfigInfo(label=name))

        if text.startswith("<"):
            text = self.expand_includes(text, prefix, depth)
            config = self.parse_xml(text, name)
        else:
            config = self.parse_lines(text, name)

        if not config.info.mapper:
            return config
        return self._compose_base(config, name, depth)

    def _compose_base(self, config: NormalizedConfig, name: str | None, depth: int) -> NormalizedConfig:
        mapper = config.info.mapper
        if depth >= self.max_include_depth:
            raise InclusionDepthExceeded(
                f'Mapping "{name or ""}": too many base mappers, or a recursive base mapper ("{mapper}").'
            )
        content = self.store.read(f"base:{mapper}") or self.store.read(mapper)
        if content is None:
            message = f'The base mapper "{mapper}" is not found.'
            logger.warning('Mapping "%s": %s', name or "", message)
            return config.model_copy(update={"has_error": True, "errors": [*config.errors, message]})
        logger.debug('Mapping "%s": base mapper "%s" loaded', name or "", mapper)
        base = self._parse(content, mapper, self.store.prefix_of(mapper) or "base", depth + 1)
        return compose(base, config)

    def expand_includes(self, content: str, prefix: str | None = None, depth: int = 0) -> str:
        """Replace each `<include mapping="ref"/>` by the maps of the referenced mapping.

        Raises:
            InclusionDepthExceeded: If includes nest more than the max depth
        """
        if "<include" not in content:
            return content
        if depth > self.max_include_depth:
            raise InclusionDepthExceeded("Too many included mappings or recursive mapping.")

        def substitute(match: re.Match) -> str:
            reference = match.group(2).strip()
            sub_content = self.store.read(reference, default_prefix=prefix) if reference else None
            if sub_content is None:
                logger.error("Included mapping %r not found", reference)
                return ""
            sub_prefix = self.store.prefix_of(reference) or prefix
            sub_content = self.expand_includes(sub_content, sub_prefix, depth + 1)
            return _MAPPING_TAG.sub("", _XML_DECLARATION.sub("", sub_content))

        return _INCLUDE.sub(substitute, content)

    # Line dialect.

    def parse_lines(self, text: str, name: str | None = None) -> NormalizedConfig:
        collector = _Collector(name)

        # Sections are gathered first, since the querier of the info section
        # applies to the entries written before it.
        sections: dict[str, list[str]] = {}
        blocks: dict[str, tuple[AutofillerBlock, list[str]]] = {}
        current: list[str] | None = None
        for line in string_to_list(text):
            if line.startswith(";"):
                continue
            if line.startswith("["):
                current = self._open_section(line, sections, blocks, collector)
                continue
            if current is None:
                logger.debug('Mapping "%s": line outside of a section skipped: %s', name or "", line)
                continue
            current.append(line)

        for key, value in self._key_values(sections.get("info", []), collector).items():
            collector.info[key] = None if value is None else (value[1:-1].strip() if is_quoted(value) else value)
        querier = self._querier(collector)

        for key, value in self._key_values(sections.get("params", []), collector).items():
            collector.params[key] = param_value(value)

        for line in sections.get("default", []):
            collector.default.extend(self.parse_line(line, querier, collector, default=True))
        for line in sections.get("mapping", []):
            collector.mapping.extend(self.parse_line(line, querier, collector))

        for key, (block, lines) in blocks.items():
            entries = []
            for line in lines:
                entries.extend(self.parse_line(line, querier, collector))
            collector.autofillers[key] = block.model_copy(update={"mapping": entries})

        return collector.build()

    def _open_section(
        self,
        line: str,
        sections: dict[str, list[str]],
        blocks: dict[str, tuple[AutofillerBlock, list[str]]],
        collector: _Collector,
    ) -> list[str] | None:
        match = _SECTION.match(line)
        section = match.group("name") if match else None
        if section == "maps":
            section = "mapping"
        if section in SECTION_TYPES:
            return sections.setdefault(section, [])

        autofiller = _AUTOFILLER.match(line)
        if autofiller and (autofiller.group("sub") or autofiller.group("variant") or autofiller.group("label")):
            service = autofiller.group("service")
            sub = autofiller.group("sub")
            variant = (autofiller.group("variant") or "").strip() or None
            label = (autofiller.group("label") or "").strip() or None
            key = service + (f":{sub}" if sub else "") + (f" #{variant}" if variant else "")
            if key not in blocks:
                block = AutofillerBlock(service=service, sub=sub, variant=variant, label=label)
                blocks[key] = (block, [])
            return blocks[key][1]

        if not section:
            collector.error(str(ConfigSyntaxError("A section should have a name.")))
        else:
            collector.error(str(ConfigSyntaxError(f'The section "{section}" is not managed.')))
        return None

    def _key_values(self, lines: list[str], collector: _Collector) -> dict[str, str | None]:
        result: dict[str, str | None] = {}
        for line in lines:
            parts = split_line(line)
            if parts is None or parts[2] or not parts[0] or parts[0] == "~":
                collector.error(str(ConfigSyntaxError(f'The line "{line}" is not a key/value pair.')))
                continue
            key, value, _ = parts
            result[key] = value or None
        return result

    def _querier(self, collector: _Collector) -> Querier:
        name = collector.info.get("querier")
        if not name:
            return Querier.JSDOT
        try:
            return Querier(str(name).strip().lower())
        except ValueError:
            collector.error(str(ConfigSyntaxError(f'The querier "{name}" is not managed.')))
            return Querier.JSDOT

    def parse_line(
        self,
        line: str,
        querier: Querier = Querier.JSDOT,
        collector: _Collector | None = None,
        default: bool = False,
    ) -> list[MappingEntry]:
        """Parse one line of a mapping section into its entries.

        A line targeting several fields (`a|b`) gives one entry per field. A
        malformed line gives one entry with an error.
        """
        collector = collector or _Collector(None)
        parts = split_line(line)
        if parts is None:
            return [collector.error(f'The map "{line}" has no source or destination.')]
        source_path, to, only_destination = parts
        if not source_path:
            return [collector.error(f'The map "{line}" has no source.')]
        if not to:
            return [collector.error(f'The map "{line}" has no destination.')]

        # A quoted right part is a raw value for the field on the left.
        is_raw = is_quoted(to)
        descriptor_text = f"{source_path} ~ {to}" if is_raw else to

        # An unknown field drops only its own entry.
        unknown_fields: list[FieldResolutionError] = []
        descriptors = self.resolver.resolve_all(descriptor_text, unknown_fields)
        failures = [collector.error(str(e), fatal=False) for e in unknown_fields]
        if not descriptors and not failures:
            return [collector.error(f'The map "{line}" has an invalid destination "{to}".')]

        source = None
        if not (default or is_raw or only_destination or source_path == "~"):
            source = Source(querier=querier, path=source_path)
        return [
            MappingEntry(
                source=source,
                destination=descriptor.destination,
                modifier=compile_pattern(descriptor.pattern),
            )
            for descriptor in descriptors
        ] + failures

    # Xml dialect.

    def parse_xml(self, text: str, name: str | None = None) -> NormalizedConfig:
        collector = _Collector(name)
        try:
            root = etree.fromstring(text.encode("utf-8"), parser=etree.XMLParser(remove_comments=True))
        except etree.XMLSyntaxError as e:
            collector.error(str(ConfigSyntaxError(f"The xml string is not a valid xml: {e}")))
            return collector.build()

        info = root.find("info")
        if info is not None:
            for element in info.iterchildren(tag=etree.Element):
                collector.info[etree.QName(element).localname] = (element.text or "").strip() or None
        self._querier(collector)

        params = root.find("params")
        if params is not None:
            for element in params.iterchildren(tag=etree.Element):
                collector.params[etree.QName(element).localname] = param_value(element.text or "")

        for index, element in enumerate(root.findall("map"), start=1):
            is_default = element.find("from") is None
            entry = self.parse_xml_map(element, collector, index)
            (collector.default if is_default else collector.mapping).append(entry)

        for table in root.findall("table"):
            code = (table.get("code") or "").strip()
            terms = table.find("list")
            if not code or terms is None:
                continue
            for term in terms.findall("term"):
                term_code = term.get("code") or ""
                if term_code:
                    collector.tables.setdefault(code, {})[term_code] = term.text or ""

        return collector.build()

    def parse_xml_map(self, element: etree._Element, collector: _Collector | None = None, index: int = 0) -> MappingEntry:
        """Convert one `<map>` element into an entry."""
        collector = collector or _Collector(None)

        source = None
        from_element = element.find("from")
        if from_element is not None:
            paths = [
                (querier, from_element.get(querier.value))
                for querier in Querier
                if from_element.get(querier.value)
            ]
            if not paths:
                return collector.error(f'The map "{index}" has no path.')
            if len(paths) > 1:
                return collector.error(f'The map "{index}" has more than one path.')
            source = Source(querier=paths[0][0], path=paths[0][1])

        to = element.find("to")
        field = to.get("field", "").strip() if to is not None else ""
        if not field:
            return collector.error(f'The map "{index}" has no destination.')

        modifier = self._xml_modifier(element.find("mod"))
        try:
            destination = self.resolver.build(
                field,
                tokenize_datatypes(to.get("datatype", "")),
                language=to.get("language") or None,
                visibility=to.get("visibility") or None,
            )
        except FieldResolutionError as e:
            return collector.error(str(e), fatal=False)
        destination = destination.model_copy(update={"dest": self._xml_dest(destination, modifier)})
        return MappingEntry(source=source, destination=destination, modifier=modifier)

    @staticmethod
    def _xml_modifier(mod: etree._Element | None) -> Modifier:
        if mod is None:
            return Modifier()
        if mod.get("raw"):
            return Modifier(raw=mod.get("raw"))
        if mod.get("val"):
            return Modifier(val=mod.get("val"))

        compiled = compile_pattern(mod.get("pattern")) if mod.get("pattern") is not None else Modifier()
        if compiled.raw is not None or compiled.val is not None:
            return compiled
        prepend = (mod.get("prepend") or "") + (compiled.prepend or "")
        append = (compiled.append or "") + (mod.get("append") or "")
        return compiled.model_copy(update={"prepend": prepend or None, "append": append or None})

    @staticmethod
    def _xml_dest(destination: Destination, modifier: Modifier) -> str:
        if modifier.raw is not None or modifier.val is not None:
            pattern = modifier.raw if modifier.raw is not None else modifier.val
        else:
            pattern = (modifier.prepend or "") + (modifier.pattern or "") + (modifier.append or "")
        return (
            destination.field
            + "".join(f" ^^{datatype}" for datatype in destination.datatype)
            + (f" @{destination.language}" if destination.language else "")
            + (f" §{destination.visibility}" if destination.visibility else "")
            + (f" ~ {pattern}" if pattern else "")
        )
