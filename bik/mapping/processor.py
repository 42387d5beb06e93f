"""Mapping processor: loads mappings and converts source documents with them."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from ..backend.interface import VocabularyBackend
from ..backend.static import StaticBackend
from ..config.settings import Settings
from .cache import MappingCache
from .destination import DestinationResolver
from .errors import MappingNotFound
from .models import DestinationRecord, MappingEntry, Modifier, NormalizedConfig
from .parser import MappingParser
from .pattern import compile_pattern
from .pipeline import MappingContext, QuerySession, RecordBuilder, ValueResolver
from .store import MappingStore
from .utils import stringify

logger = logging.getLogger(__name__)


class MappingProcessor:
    """Converts source documents into destination records.

    The processor is built once for an import run: the parsed mappings are
    kept in the cache and every conversion gets its own context and query
    session, so one processor can convert any number of documents.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        vocabulary: VocabularyBackend | None = None,
        store: MappingStore | None = None,
        cache: MappingCache | None = None,
        field_map: Mapping[str, str] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.vocabulary = vocabulary or StaticBackend.from_file(self.settings.vocabulary_path)
        self.store = store or MappingStore(self.settings.mapping_dirs())
        self.cache = cache
        self.resolver = DestinationResolver(
            self.vocabulary,
            check_field=self.settings.check_field,
            field_map=dict(field_map or {}),
        )
        self.parser = MappingParser(
            self.resolver,
            self.store,
            max_include_depth=self.settings.max_include_depth,
        )
        self.value_resolver = ValueResolver()
        self.record_builder = RecordBuilder(self.value_resolver)

    def parse(self, text: str, name: str | None = None, prefix: str | None = None) -> NormalizedConfig:
        """Parse a mapping text, through the cache when there is one."""
        if self.cache is None:
            return self.parser.parse(text, name, prefix)
        return self.cache.get_or_parse(
            text,
            lambda content: self.parser.parse(content, name, prefix),
            name=name,
            prefix=prefix,
            check_field=self.resolver.check_field,
        )

    def load(self, reference: str) -> NormalizedConfig:
        """Read a mapping from the store and parse it.

        Args:
            reference: `mapping:<id>`, `<prefix>:<file>`, or a file path

        Raises:
            MappingNotFound: If the reference cannot be read
            InclusionDepthExceeded: If includes or base mappers nest too deeply
        """
        content = self.store.read(reference)
        if content is None:
            raise MappingNotFound(f'Mapping "{reference}" not found.')
        config = self.parse(content, reference, self.store.prefix_of(reference))
        if config.has_error:
            logger.warning('Mapping "%s" has errors: %s', reference, "; ".join(config.errors))
        return config

    def resolve_params(
        self,
        config: NormalizedConfig,
        variables: Mapping[str, Any] | None = None,
        document: Any = None,
    ) -> dict[str, Any]:
        """Evaluate the params of a mapping in order.

        Each resolved param is available as a variable to the next ones. A
        templated param may query the document when one is given.
        """
        context = MappingContext(variables, config.tables)
        session = QuerySession(document) if document is not None else None
        resolved: dict[str, Any] = {}
        for name, param in config.params.items():
            if isinstance(param, Modifier):
                query = session.get(config.querier) if session is not None else None
                value = self.value_resolver.evaluate(param, None, context, query)
            else:
                value = param
            resolved[name] = value
            context.set_variable(name, value)
        return resolved

    def convert(
        self,
        config: NormalizedConfig,
        document: Any,
        variables: Mapping[str, Any] | None = None,
    ) -> DestinationRecord:
        """Convert a source document into a destination record.

        Args:
            config: Normalized mapping
            document: Nested dicts and lists, or a xml string, tree or element
            variables: Variables of the caller, overriding the params

        Returns:
            Values by destination field, in entry order
        """
        variables = dict(variables or {})
        params = self.resolve_params(config, variables)
        context = MappingContext({**params, **variables}, config.tables)
        session = QuerySession(document, params)
        return self.record_builder.build(config.default, config.mapping, session, context)

    def convert_string(
        self,
        value: Any,
        modifier: Modifier | str | None,
        variables: Mapping[str, Any] | None = None,
        tables: Mapping[str, Mapping[str, str]] | None = None,
    ) -> str | None:
        """Convert a single value with a modifier or a pattern, without document."""
        if not isinstance(modifier, Modifier):
            modifier = compile_pattern(modifier)
        return self.value_resolver.evaluate(modifier, value, MappingContext(variables, tables))

    def convert_to_string(
        self,
        config: NormalizedConfig,
        section: str,
        name: str,
        document: Any = None,
        variables: Mapping[str, Any] | None = None,
    ) -> str | None:
        """Get one setting of a mapping as a string, converting it when it is a
        pattern or an entry."""
        setting = config.get_section_setting(section, name)
        if setting is None:
            return None
        context = MappingContext(variables, config.tables)
        if isinstance(setting, MappingEntry):
            session = QuerySession(document, config.params)
            values = self.record_builder.entry_values(setting, session, context)
            return values[0] if values else None
        if isinstance(setting, Modifier):
            query = QuerySession(document).get(config.querier) if document is not None else None
            return self.value_resolver.evaluate(setting, None, context, query)
        return stringify(setting)
