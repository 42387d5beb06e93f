"""Template evaluation: turns a compiled modifier and a source value into a string."""

from __future__ import annotations

from typing import Any

from ..models import RESERVED_TOKENS, Modifier
from ..pattern import static_text
from ..utils import stringify
from .context import MappingContext
from .filters import FILTERS, FilterPipeline, FilterRegistry
from .queriers import QueryBackend, is_node, node_to_string, node_to_xml

XML_PATTERN = "{{ xml }}"

# Quotes of substituted values would break the arguments of the filters.
_QUOTES = {'"': "__DQUOTE__", "'": "__SQUOTE__"}


def _escape_quotes(text: str) -> str:
    for quote, escaped in _QUOTES.items():
        text = text.replace(quote, escaped)
    return text


def _unescape_quotes(text: str) -> str:
    for quote, escaped in _QUOTES.items():
        text = text.replace(escaped, quote)
    return text


class ValueResolver:
    """Resolves a modifier against one extracted value, the variables and the document."""

    def __init__(self, registry: FilterRegistry = FILTERS) -> None:
        self.registry = registry

    def evaluate(
        self,
        modifier: Modifier,
        value: Any,
        context: MappingContext,
        query: QueryBackend | None = None,
        output_xml: bool = False,
    ) -> str | None:
        """Convert a value with a modifier.

        Args:
            modifier: Compiled modifier of the entry
            value: Extracted value (scalar, xml node, or None when there is no source)
            context: Variables and tables of the conversion, `value` is rebound
            query: Backend used to resolve the `{{path}}` replacements
            output_xml: Output a xml node as canonical xml instead of its text

        Returns:
            The converted string, or None when there is nothing to output
        """
        if modifier.raw is not None:
            return modifier.raw

        if isinstance(value, list):
            value = value[0] if value else None
        has_value = value is not None and (is_node(value) or stringify(value) != "")

        if modifier.val is not None:
            return modifier.val if has_value else None

        context.bind_value(value)

        if not modifier.pattern:
            if not has_value:
                return None
            body = node_to_xml(value) if output_xml else node_to_string(value)
        elif modifier.pattern == XML_PATTERN and output_xml:
            if not has_value:
                return None
            body = node_to_xml(value)
        else:
            body = self._render(modifier, value, context, query)

        if body is None or body == "":
            return None
        return (modifier.prepend or "") + body + (modifier.append or "")

    def _render(
        self,
        modifier: Modifier,
        value: Any,
        context: MappingContext,
        query: QueryBackend | None,
    ) -> str | None:
        replace = self._replacements(modifier, value, query)

        # Variables alone in braces are substituted directly, without filter,
        # once the filter expressions that use them as arguments are done.
        variables = context.scalar_variables()
        references = {f"{{{{ {name} }}}}": variable for name, variable in variables.items()}
        for token in replace:
            if token in references:
                replace[token] = references[token]
        filters = [
            (expression, has_replace)
            for expression, has_replace in zip(
                modifier.filters, modifier.filters_has_replace or [False] * len(modifier.filters)
            )
            if expression not in references
        ]

        if filters:
            replace = {token: _escape_quotes(text) for token, text in replace.items()}

        text = modifier.pattern or ""
        for token, replacement in replace.items():
            text = text.replace(token, replacement)

        if filters:
            pipeline = FilterPipeline(variables, context.tables, self.registry)
            results: dict[str, str] = {}
            for expression, has_replace in filters:
                if has_replace:
                    for token, replacement in replace.items():
                        expression = expression.replace(token, replacement)
                results[expression] = pipeline.evaluate(expression[3:-3])
            for expression, result in results.items():
                text = text.replace(expression, result)
            text = _unescape_quotes(text)

        for token, variable in references.items():
            text = text.replace(token, variable)

        return text if self._has_replacement(modifier, text) else None

    @staticmethod
    def _replacements(modifier: Modifier, value: Any, query: QueryBackend | None) -> dict[str, str]:
        """Query the document for each `{{path}}` of the pattern."""
        replace: dict[str, str] = {}
        for token in modifier.replace:
            if token in RESERVED_TOKENS or query is None:
                replace[token] = ""
                continue
            replace[token] = query.first_string(token[2:-2], value if is_node(value) else None)
        return replace

    @staticmethod
    def _has_replacement(modifier: Modifier, text: str) -> bool:
        """Check that something was substituted, so the static text of a
        pattern is never returned alone."""
        if not text:
            return False
        static = static_text(modifier)
        if not static.strip():
            return True
        return text != static
