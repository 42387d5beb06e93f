"""Resolution of destination descriptors.

A descriptor is a field followed, in any order, by at most three options and
an optional pattern:

    dcterms:title @fra ^^literal;customvocab:"Colors" §private ~ {{ value|trim }}

Several fields may be joined with `|` to copy the same value to each of them,
but only when there is no pattern.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable

from ..backend.interface import VocabularyBackend
from ..backend.static import StaticBackend
from .errors import FieldResolutionError
from .models import Destination
from .utils import clean_field_name, clean_unicode, unquote

logger = logging.getLogger(__name__)

_FIELD = re.compile(r"[a-zA-Z][^@§^~|]*")
_LANGUAGE = re.compile(r"(?:[a-zA-Z0-9]+-)*[a-zA-Z]+")
_DATATYPE = re.compile(r"""customvocab:(?:"[^"\n\r]+"|'[^'\n\r]+'|[^"'\n\r]+)|[a-zA-Z_][\w:-]*""")
# Datatypes in an xml attribute are separated by spaces, so labels with spaces
# must be quoted there.
_DATATYPE_TOKENS = re.compile(r"""customvocab:(?:"[^\n\r"]+"|'[^\n\r']+')|[a-zA-Z_][\w:-]*""")
_MARKERS = ("^^", "@", "§")
_MAX_OPTIONS = 3


@dataclass(frozen=True)
class DestinationDescriptor:
    """A resolved destination and the raw text of its pattern, if any."""

    destination: Destination
    pattern: str | None = None


def split_pattern(text: str) -> tuple[str, str | None]:
    """Split a descriptor at the first `~` outside quotes."""
    quote = None
    for index, char in enumerate(text):
        if quote:
            if char == quote:
                quote = None
        elif char in ("'", '"'):
            quote = char
        elif char == "~":
            return text[:index], text[index + 1:].strip()
    return text, None


def tokenize_datatypes(text: str) -> list[str]:
    """Extract datatype names from a space separated list (xml attribute)."""
    return _DATATYPE_TOKENS.findall(text or "")


def _split_options(head: str) -> tuple[str, list[tuple[str, str]]] | None:
    """Split the head of a descriptor into the field and its (marker, text) options."""
    positions: list[tuple[int, str]] = []
    quote = None
    index = 0
    while index < len(head):
        char = head[index]
        if quote:
            if char == quote:
                quote = None
        elif char in ("'", '"') and positions:
            quote = char
        else:
            for marker in _MARKERS:
                if head.startswith(marker, index):
                    positions.append((index, marker))
                    index += len(marker) - 1
                    break
            else:
                if char == "^":
                    return None
        index += 1

    if not positions:
        return head.strip(), []

    field = head[:positions[0][0]].strip()
    options = []
    for number, (start, marker) in enumerate(positions):
        end = positions[number + 1][0] if number + 1 < len(positions) else len(head)
        options.append((marker, head[start + len(marker):end].strip()))
    return field, options


class DatatypeRegistry:
    """Canonicalizes datatype names: full names, unique short names and custom vocabs."""

    def __init__(
        self,
        names: Iterable[str],
        custom_vocab_resolver: Callable[[str], int | str | None] | None = None,
    ) -> None:
        self.names = list(dict.fromkeys(names))
        self.custom_vocab_resolver = custom_vocab_resolver
        suffixes: dict[str, list[str]] = {}
        for name in self.names:
            if ":" not in name:
                continue
            suffix = name.rsplit(":", 1)[1]
            if suffix and not suffix.isdigit():
                suffixes.setdefault(suffix, []).append(name)
        self._short = {
            suffix: names_[0]
            for suffix, names_ in suffixes.items()
            if len(names_) == 1 and suffix not in self.names
        }

    def canonical(self, name: str) -> str | None:
        name = name.strip()
        if name.startswith("customvocab:"):
            label = unquote(name[len("customvocab:"):].strip()).strip()
            if not label:
                return None
            if label.isdigit():
                return f"customvocab:{label}"
            custom_vocab_id = self.custom_vocab_resolver(label) if self.custom_vocab_resolver else None
            if custom_vocab_id is None:
                logger.debug("Custom vocab %r is not known, kept by label", label)
                return f"customvocab:{label}"
            return f"customvocab:{custom_vocab_id}"
        if name in self.names:
            return name
        return self._short.get(name)

    def canonicalize(self, names: Iterable[str]) -> list[str]:
        """Canonicalize and deduplicate a list of datatypes, skipping unknown ones."""
        result = []
        for name in names:
            canonical = self.canonical(name)
            if canonical is None:
                logger.warning("Unknown datatype %r skipped", name)
                continue
            result.append(canonical)
        return list(dict.fromkeys(result))


class FieldMatcher:
    """Finds the property term matching a field written by a user.

    The override table is checked first, then term names, labels ("Dublin
    Core:Title"), local names and local labels, each case sensitively then
    insensitively.
    """

    def __init__(
        self,
        vocabulary: VocabularyBackend,
        field_map: dict[str, str] | None = None,
        check_names_alone: bool = True,
    ) -> None:
        self.vocabulary = vocabulary
        self.field_map = {clean_field_name(k): v for k, v in (field_map or {}).items()}
        self.check_names_alone = check_names_alone
        self._lists: list[dict[str, str]] | None = None

    @property
    def lists(self) -> list[dict[str, str]]:
        if self._lists is None:
            self._lists = self._build_lists()
        return self._lists

    def _build_lists(self) -> list[dict[str, str]]:
        terms = self.vocabulary.list_terms()
        # "dc:" is a common shortcut for "dcterms:".
        names = dict(terms)
        for term, label in terms.items():
            if term.startswith("dcterms:"):
                names.setdefault("dc:" + term[len("dcterms:"):], label)

        def index(values: dict[str, str], lower: bool = False) -> dict[str, str]:
            result: dict[str, str] = {}
            for key, term in values.items():
                result.setdefault(key.lower() if lower else key, term)
            return result

        by_name = {name: self._canonical_term(name) for name in names}
        by_label = {clean_field_name(label): self._canonical_term(name) for name, label in names.items()}

        lists = [
            index(self.field_map),
            index(self.field_map, lower=True),
            index(by_name),
            index(by_name, lower=True),
            index(by_label),
            index(by_label, lower=True),
        ]
        if self.check_names_alone:
            local_names = {name.rsplit(":", 1)[-1]: term for name, term in by_name.items()}
            local_labels = {label.rsplit(":", 1)[-1]: term for label, term in by_label.items()}
            lists += [
                index(local_names),
                index(local_names, lower=True),
                index(local_labels),
                index(local_labels, lower=True),
            ]
        return lists

    @staticmethod
    def _canonical_term(name: str) -> str:
        return "dcterms:" + name[3:] if name.startswith("dc:") else name

    def match(self, field: str) -> str | None:
        field = clean_field_name(field)
        lower_field = field.lower()
        for position, values in enumerate(self.lists):
            found = values.get(lower_field if position % 2 else field)
            if found:
                return found
        return None


class DestinationResolver:
    """Parses destination descriptors into `Destination` models."""

    def __init__(
        self,
        vocabulary: VocabularyBackend | None = None,
        check_field: bool = False,
        field_map: dict[str, str] | None = None,
    ) -> None:
        self.vocabulary = vocabulary or StaticBackend()
        self.check_field = check_field
        self.datatypes = DatatypeRegistry(
            self.vocabulary.datatype_names(),
            self.vocabulary.get_custom_vocab_id,
        )
        self.matcher = FieldMatcher(self.vocabulary, field_map)

    def resolve(self, text: str) -> DestinationDescriptor | None:
        """Resolve a single descriptor.

        Args:
            text: Descriptor, like `dcterms:title @fra ^^literal ~ {{ value }}`

        Returns:
            The descriptor, or None when the field is empty or the grammar fails

        Raises:
            FieldResolutionError: If field checking is enabled and the field is unknown
        """
        text = text.strip()
        head, pattern = split_pattern(text)
        parts = _split_options(clean_unicode(head))
        if parts is None:
            return None
        field, options = parts
        if not field or not _FIELD.fullmatch(field) or len(options) > _MAX_OPTIONS:
            return None

        language = None
        datatype: list[str] = []
        visibility = None
        for marker, value in options:
            if marker == "@":
                if value and not _LANGUAGE.fullmatch(value):
                    return None
                language = value or None
            elif marker == "^^":
                tokens = [token.strip() for token in value.split(";") if token.strip()] if value else []
                if any(not _DATATYPE.fullmatch(token) for token in tokens):
                    return None
                datatype = tokens
            else:
                if value not in ("", "public", "private"):
                    return None
                visibility = value or None

        destination = self.build(field, datatype, language, visibility, dest=text)
        return DestinationDescriptor(destination=destination, pattern=pattern or None)

    def resolve_all(
        self,
        text: str,
        errors: list[FieldResolutionError] | None = None,
    ) -> list[DestinationDescriptor]:
        """Resolve a descriptor that may copy the value to several fields (`a|b`).

        Each field is resolved on its own and unresolvable parts are skipped.
        When `errors` is given, the unknown fields are collected there and the
        other fields are kept; otherwise the first one raises.

        Raises:
            FieldResolutionError: If field checking is enabled, a field is
                unknown and no error list is given
        """
        head, pattern = split_pattern(text)
        if pattern is not None or "|" not in head:
            parts = [text]
        else:
            parts = [part.strip() for part in head.split("|") if part.strip()]

        result = []
        for part in parts:
            try:
                descriptor = self.resolve(part)
            except FieldResolutionError as e:
                if errors is None:
                    raise
                errors.append(e)
                continue
            if descriptor:
                result.append(descriptor)
        return result

    def build(
        self,
        field: str,
        datatype: Iterable[str] = (),
        language: str | None = None,
        visibility: str | None = None,
        dest: str | None = None,
    ) -> Destination:
        """Build a destination from its parts, resolving the field and the datatypes.

        Raises:
            FieldResolutionError: If field checking is enabled and the field is unknown
        """
        term = self.resolve_field(clean_field_name(field))
        return Destination(
            field=term,
            property_id=self.vocabulary.get_property_id(FieldMatcher._canonical_term(term)),
            datatype=self.datatypes.canonicalize(datatype),
            language=language or None,
            visibility=visibility if visibility in ("public", "private") else None,
            dest=dest,
        )

    def resolve_field(self, field: str) -> str:
        if not self.check_field:
            return field
        term = self.matcher.match(field)
        if term is None:
            raise FieldResolutionError(f'The field "{field}" matches no known property.')
        return term
