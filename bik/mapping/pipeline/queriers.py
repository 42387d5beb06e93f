"""Query backends extracting values from a source document.

Every backend is bound to one document for the time of one conversion and
answers `extract(path, context=None)` with a list: an unmatched or malformed
path gives an empty list, a scalar result a list of one value, and multiple
matches keep their order.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping

import jmespath
from jmespath.exceptions import JMESPathError
from jsonpath_ng.exceptions import JSONPathError
from jsonpath_ng.ext import parse as jsonpath_parse
from lxml import etree

from ..errors import QueryBackendError
from ..models import Querier
from ..utils import stringify

logger = logging.getLogger(__name__)

FIELDS_PREFIX = "fields[]."

_XML_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)


def is_node(value: Any) -> bool:
    return isinstance(value, etree._Element)


def node_to_string(value: Any) -> str:
    """Return the text content of a node, or the string of a scalar."""
    if is_node(value):
        return str(value.xpath("string()"))
    return stringify(value)


def node_to_xml(value: Any) -> str:
    """Return the canonical xml of a node, or the string of a scalar."""
    if is_node(value) and not isinstance(value, (etree._Comment, etree._ProcessingInstruction)):
        return etree.tostring(value, method="c14n").decode("utf-8")
    return node_to_string(value)


def to_xml_root(document: Any) -> etree._Element:
    """Get the root element of a xml document, parsing it when needed."""
    if isinstance(document, etree._ElementTree):
        return document.getroot()
    if is_node(document):
        return document
    if isinstance(document, str):
        document = document.encode("utf-8")
    if isinstance(document, bytes):
        try:
            return etree.fromstring(document.strip(), parser=_XML_PARSER)
        except etree.XMLSyntaxError as e:
            raise QueryBackendError(f"Invalid xml document: {e}") from e
    raise QueryBackendError(f"XPath requires a xml document, not {type(document).__name__}")


def flatten(document: Any) -> dict[str, Any]:
    """
    Create a flat map from a nested document, with keys joined by ".".
    Literal "." and "\\" in keys are escaped and list items are indexed:
    {"video": {"data.format": "jpg", "creator": ["a", "b"]}} gives
    {"video.data\\.format": "jpg", "video.creator.0": "a", "video.creator.1": "b"}.
    """
    flat: dict[str, Any] = {}

    def walk(value: Any, prefix: str) -> None:
        if isinstance(value, Mapping):
            items = value.items()
        elif isinstance(value, (list, tuple)):
            items = enumerate(value)
        else:
            flat[prefix] = value
            return
        for key, sub_value in items:
            escaped = str(key).replace("\\", "\\\\").replace(".", "\\.")
            walk(sub_value, f"{prefix}.{escaped}" if prefix else escaped)

    if isinstance(document, (Mapping, list, tuple)):
        walk(document, "")
    return flat


class QueryBackend(ABC):
    """A path-expression backend bound to one source document."""

    querier: Querier

    def __init__(self, document: Any) -> None:
        self.document = document
        # Compiled expressions by path, kept for the session of the backend.
        self._expressions: dict[str, Any] = {}

    def _compiled(self, path: str, compile_path: Callable[[str], Any]) -> Any:
        expression = self._expressions.get(path)
        if expression is None:
            expression = self._expressions[path] = compile_path(path)
        return expression

    def extract(self, path: str, context: Any = None) -> list[Any]:
        """Extract all the values matching a path.

        Args:
            path: Path expression in the language of the backend
            context: Optional context node (xpath) or sub-document for relative queries

        Returns:
            Matching values, possibly empty
        """
        if not path:
            return []
        try:
            result = self._run(path, context)
        except QueryBackendError as e:
            logger.debug("%s query %r skipped: %s", self.querier.value, path, e)
            return []
        return self._as_list(result)

    def first_string(self, path: str, context: Any = None) -> str:
        """Extract the first value matching a path, as a string."""
        for value in self.extract(path, context):
            if value is None or isinstance(value, (dict, list)):
                continue
            return node_to_string(value)
        return ""

    @abstractmethod
    def _run(self, path: str, context: Any) -> Any:
        """Run the query and return the raw result."""
        pass

    @staticmethod
    def _as_list(result: Any) -> list[Any]:
        if result is None or result == "":
            return []
        if isinstance(result, list):
            return [value for value in result if value is not None]
        return [result]


class JsdotBackend(QueryBackend):
    """Dot-path lookup on a flattened document.

    A path starting with `fields[].` reads one column of a list of records,
    configured with the params `fields`, `fields.key` and `fields.value`.
    """

    querier = Querier.JSDOT

    def __init__(self, document: Any, params: Mapping[str, Any] | None = None) -> None:
        super().__init__(document)
        params = params or {}
        self.flat = flatten(document)
        self.fields = self._extract_fields(
            params.get("fields"), params.get("fields.key"), params.get("fields.value")
        )

    def _run(self, path: str, context: Any) -> Any:
        if path in self.flat:
            return self.flat[path]
        if path.startswith(FIELDS_PREFIX):
            return self.fields.get(path[len(FIELDS_PREFIX):], [])
        # A list of scalars is flattened with an index for each value.
        values = []
        index = 0
        while f"{path}.{index}" in self.flat:
            values.append(self.flat[f"{path}.{index}"])
            index += 1
        return values

    def _extract_fields(self, fields_key: Any, field_key: Any, field_value: Any) -> dict[str, list[Any]]:
        if not fields_key or not isinstance(fields_key, str):
            return {}
        prefix = fields_key + "."
        fields: dict[str, dict[str, Any]] = {}
        for flat_key, flat_value in self.flat.items():
            if not flat_key.startswith(prefix):
                continue
            parts = flat_key[len(prefix):].split(".", 1)
            if len(parts) == 2:
                fields.setdefault(parts[0], {})[parts[1]] = flat_value
        if not fields:
            return {}

        result: dict[str, list[Any]] = {}
        # Records like {"key": "title", "label": "Title", "value": "..."}.
        if field_key:
            for record in fields.values():
                if field_key in record and field_value in record:
                    result.setdefault(stringify(record[field_key]), []).append(record[field_value])
            return result
        # Records like {"value": "..."}.
        if field_value:
            for record in fields.values():
                if field_value in record:
                    result.setdefault(field_value, []).append(record[field_value])
            return result
        return {name: list(record.values()) for name, record in fields.items()}


class JmesPathBackend(QueryBackend):
    querier = Querier.JMESPATH

    def _run(self, path: str, context: Any) -> Any:
        try:
            expression = self._compiled(path, jmespath.compile)
            return expression.search(self.document if context is None else context)
        except JMESPathError as e:
            raise QueryBackendError(str(e)) from e


class JsonPathBackend(QueryBackend):
    querier = Querier.JSONPATH

    def _run(self, path: str, context: Any) -> Any:
        try:
            expression = self._compiled(path, jsonpath_parse)
        except JSONPathError as e:
            raise QueryBackendError(str(e)) from e
        return [match.value for match in expression.find(self.document if context is None else context)]


class XPathBackend(QueryBackend):
    """XPath 1.0 on a xml document.

    Matched elements are returned as nodes, so relative queries can run from
    them. Without context node, relative paths start from the root element.
    """

    querier = Querier.XPATH

    def __init__(self, document: Any) -> None:
        super().__init__(document)
        self.root = to_xml_root(document)
        self.namespaces: dict[str, str] = {}
        for element in self.root.iter(tag=etree.Element):
            for prefix, uri in element.nsmap.items():
                if prefix:
                    self.namespaces.setdefault(prefix, uri)

    def _run(self, path: str, context: Any) -> Any:
        node = context if is_node(context) else self.root
        try:
            result = node.xpath(path, namespaces=self.namespaces)
        except etree.XPathError as e:
            raise QueryBackendError(str(e)) from e
        if isinstance(result, bool):
            return "1" if result else None
        if isinstance(result, float):
            return stringify(result) if result == result else None
        if isinstance(result, list):
            return [value if is_node(value) else str(value) for value in result]
        return str(result)


class QuerySession:
    """Backends for one conversion of one document, created on first use.

    The flat map of jsdot and the parsed tree of xpath live only as long as
    the session.
    """

    def __init__(self, document: Any, params: Mapping[str, Any] | None = None) -> None:
        self.document = document
        self.params = params or {}
        self._backends: dict[Querier, QueryBackend] = {}

    def get(self, querier: Querier) -> QueryBackend:
        """Get the backend for a querier.

        Raises:
            QueryBackendError: If the document cannot be queried with this querier
        """
        backend = self._backends.get(querier)
        if backend is None:
            backend = create_backend(querier, self.document, self.params)
            self._backends[querier] = backend
        return backend


def create_backend(querier: Querier, document: Any, params: Mapping[str, Any] | None = None) -> QueryBackend:
    if querier == Querier.JSDOT:
        return JsdotBackend(document, params)
    if querier == Querier.JMESPATH:
        return JmesPathBackend(document)
    if querier == Querier.JSONPATH:
        return JsonPathBackend(document)
    if querier == Querier.XPATH:
        return XPathBackend(document)
    raise QueryBackendError(f"Unknown querier: {querier}")
