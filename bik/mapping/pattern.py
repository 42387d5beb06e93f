"""Compilation of modifier patterns.

Two kinds of placeholders can be combined in a pattern:

- `{{path}}`, without spaces inside the braces, is a replacement: the path is
  queried on the source document and the raw string is substituted.
- `{{ value|trim|upper }}`, with spaces, is a filter expression: the first
  token is a variable (or a function) and the next ones are filters.

A filter expression may contain replacements, like
`{{ implode(' - ', '{{/record/a}}', '{{/record/b}}') }}`.
"""

from __future__ import annotations

import re

from .models import RESERVED_TOKENS, Modifier
from .utils import is_quoted

REPLACEMENT = re.compile(r"\{\{( value | label | list |\S+?|\S.*?\S)\}\}")
FILTER_EXPRESSION = re.compile(r"\{\{ ((?:(?!\{\{ | \}\}).)+) \}\}", re.DOTALL)
VARIABLE_REFERENCE = re.compile(r"\{\{ \w+ \}\}")


def _mask(index: int) -> str:
    return f"__To_Be_Replaced__{index}__"


def _reference_mask(index: int) -> str:
    return f"__Variable__{index}__"


def compile_pattern(pattern: str | None) -> Modifier:
    """Compile a pattern into a `Modifier`.

    A quoted pattern is a raw value. A pattern without any placeholder is a
    value used only when the source has a value. Otherwise, the literal text
    before the first `{{` and after the last `}}` are kept as prepend and
    append.
    """
    if pattern is None or not pattern.strip():
        return Modifier()
    pattern = pattern.strip()

    if is_quoted(pattern):
        return Modifier(raw=pattern[1:-1].strip())

    if pattern in RESERVED_TOKENS:
        return Modifier(pattern=pattern, replace=[pattern])

    start = pattern.find("{{")
    end = pattern.rfind("}}")
    if start < 0 or end < start:
        return Modifier(val=pattern)

    prepend = pattern[:start]
    append = pattern[end + 2:]
    body = pattern[start:end + 2]

    replace = list(dict.fromkeys(match.group(0) for match in REPLACEMENT.finditer(body)))
    masks = {replacement: _mask(index) for index, replacement in enumerate(replace)}
    masked = body
    for replacement, mask in masks.items():
        masked = masked.replace(replacement, mask)

    # Variable references may be arguments of a filter expression, so they
    # are masked too while the expressions are extracted.
    references = list(dict.fromkeys(match.group(0) for match in VARIABLE_REFERENCE.finditer(masked)))
    reference_masks = {reference: _reference_mask(index) for index, reference in enumerate(references)}
    for reference, mask in reference_masks.items():
        masked = masked.replace(reference, mask)

    found: list[tuple[int, str]] = [
        (match.start(), match.group(0)) for match in FILTER_EXPRESSION.finditer(masked)
    ]
    outside = FILTER_EXPRESSION.sub("", masked)
    for reference, mask in reference_masks.items():
        if mask in outside:
            found.append((masked.find(mask), mask))
    found.sort()

    filters: list[str] = []
    has_replace: list[bool] = []
    for _, expression in found:
        for reference, mask in reference_masks.items():
            expression = expression.replace(mask, reference)
        if expression in RESERVED_TOKENS:
            continue
        original = expression
        for replacement, mask in masks.items():
            original = original.replace(mask, replacement)
        if original in filters:
            continue
        filters.append(original)
        has_replace.append(original != expression)

    return Modifier(
        prepend=prepend or None,
        pattern=body,
        append=append or None,
        replace=replace,
        filters=filters,
        filters_has_replace=has_replace,
    )


def static_text(modifier: Modifier) -> str:
    """Return the pattern without any of its placeholders."""
    text = modifier.pattern or ""
    for token in (*modifier.filters, *modifier.replace, *RESERVED_TOKENS):
        text = text.replace(token, "")
    return text
