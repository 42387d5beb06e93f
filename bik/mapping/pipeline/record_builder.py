"""Record construction: runs the entries of a mapping over one source document."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from ..errors import QueryBackendError
from ..models import DestinationRecord, MappingEntry, Querier
from .context import MappingContext
from .queriers import QuerySession, is_node
from .value_resolution import ValueResolver

logger = logging.getLogger(__name__)

_JSON_QUERIERS = (Querier.JSDOT, Querier.JMESPATH, Querier.JSONPATH)


class RecordBuilder:
    """Builds destination records from mapping entries."""

    def __init__(self, value_resolver: ValueResolver | None = None) -> None:
        self.value_resolver = value_resolver or ValueResolver()

    def build(
        self,
        default: Iterable[MappingEntry],
        mapping: Iterable[MappingEntry],
        session: QuerySession,
        context: MappingContext,
    ) -> DestinationRecord:
        """Convert the default entries, then the mapping entries, appending the
        values of each entry to its destination field."""
        record: DestinationRecord = {}
        for entry in default:
            self._append(record, entry, self.default_values(entry, context))
        for entry in mapping:
            self._append(record, entry, self.entry_values(entry, session, context))
        return record

    def default_values(self, entry: MappingEntry, context: MappingContext) -> list[str]:
        """Values of an entry without source, built from the variables only."""
        if not entry.is_valid:
            return []
        converted = self.value_resolver.evaluate(entry.modifier, None, context)
        return [] if converted is None else [converted]

    def entry_values(
        self,
        entry: MappingEntry,
        session: QuerySession,
        context: MappingContext,
    ) -> list[str]:
        """Values of an entry, one for each value extracted from the document."""
        if not entry.is_valid:
            return []
        if entry.modifier.raw is not None or entry.source is None:
            return self.default_values(entry, context)

        querier = entry.source.querier
        try:
            query = session.get(querier)
        except QueryBackendError as e:
            logger.debug("Entry %r skipped: %s", entry.source.path, e)
            return []

        output_xml = (
            querier == Querier.XPATH
            and bool(entry.destination.datatype)
            and entry.destination.datatype[0] == "xml"
        )

        result: list[str] = []
        for value in query.extract(entry.source.path):
            if not self._is_usable(value, querier):
                continue
            converted = self.value_resolver.evaluate(
                entry.modifier, value, context, query, output_xml=output_xml
            )
            if converted is None or converted == "":
                continue
            result.append(converted)
        return list(dict.fromkeys(result))

    @staticmethod
    def _is_usable(value: Any, querier: Querier) -> bool:
        if value is None:
            return False
        if querier in _JSON_QUERIERS:
            return isinstance(value, (str, int, float, bool))
        return is_node(value) or isinstance(value, str)

    @staticmethod
    def _append(record: DestinationRecord, entry: MappingEntry, values: list[str]) -> None:
        if not values:
            return
        record.setdefault(entry.destination.field, []).extend(values)
