"""Filter pipeline of the template expressions.

A filter expression is a chain `value|trim|slice(0, 4)` evaluated from left
to right, each filter receiving the output of the previous one. The first
token is generally a variable: any name that is not a registered filter is
looked up in the variables, or keeps the current value when unknown.

The filters are a closed registry of functions `(value, args) -> value`; a
value is a string or a list of strings. A filter that cannot compute its
output raises `FilterEvaluationError` and the value is kept unchanged.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping
from urllib.parse import quote

import pandas as pd

from ..errors import FilterEvaluationError
from ..utils import is_numeric, stringify, substr, unquote
from .iso import ISO_TABLES, iso_label
from .queriers import is_node, node_to_string

logger = logging.getLogger(__name__)

Value = Any
FilterFunction = Callable[[Value, "FilterArgs"], Value]

_CALL = re.compile(r"^\s*([a-zA-Z0-9_]+)\s*\((.*)\)\s*$", re.DOTALL)
_TOKENS = r"""(?:\{\{ \w+ \}\}|"[^"]*?"|'[^']*?'|[+-]?(?:\d*\.)?\d+|[a-zA-Z_][\w:.-]*)"""
_DEFAULT_TRIM = " \t\n\r\0\x0B"


@dataclass
class FilterArgs:
    """Arguments of a filter call, tokenized on demand.

    Quoted strings are unquoted, numbers are kept as written and names are
    replaced by the variable of the same name, when any. A reference like
    `{{ year }}` is always a variable, empty when unknown.
    """

    text: str = ""
    variables: Mapping[str, str] = field(default_factory=dict)
    tables: Mapping[str, Mapping[str, str]] = field(default_factory=dict)

    def tokens(self) -> list[str]:
        return re.findall(r"\s*(" + _TOKENS + r")\s*,?\s*", self.text)

    def resolve(self, token: str) -> str:
        if token.startswith("{{"):
            return self.variables.get(token[2:-2].strip(), "")
        if token in self.variables:
            return self.variables[token]
        if token[:1] in ("'", '"'):
            return unquote(token)
        return token

    def as_list(self) -> list[str]:
        return [self.resolve(token) for token in self.tokens()]

    def as_keys(self, keys: list[str]) -> dict[str, str]:
        values = self.as_list()[:len(keys)]
        values += [""] * (len(keys) - len(values))
        return dict(zip(keys, values))

    def as_mapping(self) -> dict[str, str]:
        """Tokenize pairs, like `{'a': 'b', "c": "d"}`."""
        tokens = self.tokens()
        result = {}
        for index in range(0, len(tokens) - 1, 2):
            key = tokens[index]
            result[key if is_numeric(key) else unquote(key)] = self.resolve(tokens[index + 1])
        return result

    def __len__(self) -> int:
        return len(self.tokens())


class FilterRegistry:
    """Named filters available in the expressions."""

    def __init__(self) -> None:
        self._filters: dict[str, FilterFunction] = {}

    def register(self, *names: str) -> Callable[[FilterFunction], FilterFunction]:
        def decorator(function: FilterFunction) -> FilterFunction:
            for name in names:
                self._filters[name] = function
            return function
        return decorator

    def get(self, name: str) -> FilterFunction | None:
        return self._filters.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._filters

    def names(self) -> list[str]:
        return sorted(self._filters)


FILTERS = FilterRegistry()


def _first_string(value: Value) -> str:
    if isinstance(value, list):
        value = value[0] if value else ""
    return node_to_string(value) if is_node(value) else stringify(value)


def _int(text: Any) -> int:
    """Integer value of the leading number of a string, 0 when none."""
    match = re.match(r"\s*([+-]?\d+)", str(text))
    return int(match.group(1)) if match else 0


def split_chain(expression: str) -> list[str]:
    """Split a filter chain on `|`, except inside quotes, parentheses and braces."""
    parts: list[str] = []
    current: list[str] = []
    quote_char = None
    depth = 0
    for char in expression:
        if quote_char:
            if char == quote_char:
                quote_char = None
        elif char in ("'", '"'):
            quote_char = char
        elif char in "({":
            depth += 1
        elif char in ")}":
            depth = max(depth - 1, 0)
        elif char == "|" and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


class FilterPipeline:
    """Evaluates filter expressions with the variables and tables of a conversion."""

    def __init__(
        self,
        variables: Mapping[str, str] | None = None,
        tables: Mapping[str, Mapping[str, str]] | None = None,
        registry: FilterRegistry = FILTERS,
    ) -> None:
        self.variables = dict(variables or {})
        self.tables = tables or {}
        self.registry = registry

    def evaluate(self, expression: str) -> str:
        """Evaluate a chain like `value|trim|upper` and return a string."""
        value: Value = ""
        for filter_text in split_chain(expression):
            value = self.apply(value, filter_text)
        return _first_string(value)

    def apply(self, value: Value, filter_text: str) -> Value:
        """Apply one filter, or read a variable when the name is not a filter."""
        match = _CALL.match(filter_text)
        if match:
            name, args_text = match.group(1), match.group(2).strip()
        else:
            name, args_text = filter_text.strip(), ""

        function = self.registry.get(name)
        if function is None:
            return self.variables.get(filter_text.strip(), value)

        if is_node(value):
            value = node_to_string(value)
        args = FilterArgs(args_text, self.variables, self.tables)
        try:
            result = function(value, args)
        except FilterEvaluationError as e:
            logger.debug("Filter %r kept the value %r: %s", filter_text, value, e)
            return value
        if isinstance(result, list):
            return [_first_string(item) for item in result]
        return stringify(result)


# Core filters.

@FILTERS.register("abs")
def abs_(value: Value, args: FilterArgs) -> Value:
    w = _first_string(value)
    if not is_numeric(w):
        return w
    return stringify(abs(float(w))) if "." in w or "e" in w.lower() else str(abs(int(w)))


@FILTERS.register("capitalize")
def capitalize(value: Value, args: FilterArgs) -> Value:
    w = _first_string(value)
    return w[:1].upper() + w[1:]


_PHP_DATE = {
    "d": lambda ts: f"{ts.day:02d}",
    "j": lambda ts: str(ts.day),
    "D": lambda ts: ts.strftime("%a"),
    "l": lambda ts: ts.strftime("%A"),
    "N": lambda ts: str(ts.isoweekday()),
    "m": lambda ts: f"{ts.month:02d}",
    "n": lambda ts: str(ts.month),
    "M": lambda ts: ts.strftime("%b"),
    "F": lambda ts: ts.strftime("%B"),
    "Y": lambda ts: f"{ts.year:04d}",
    "y": lambda ts: f"{ts.year % 100:02d}",
    "H": lambda ts: f"{ts.hour:02d}",
    "G": lambda ts: str(ts.hour),
    "i": lambda ts: f"{ts.minute:02d}",
    "s": lambda ts: f"{ts.second:02d}",
    "c": lambda ts: ts.isoformat(),
    "U": lambda ts: str(int(ts.timestamp())),
}


def format_date(date_format: str, timestamp: pd.Timestamp) -> str:
    """Format a timestamp with the letters of the php function date()."""
    output = []
    escaped = False
    for char in date_format:
        if escaped:
            output.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char in _PHP_DATE:
            output.append(_PHP_DATE[char](timestamp))
        else:
            output.append(char)
    return "".join(output)


@FILTERS.register("date")
def date(value: Value, args: FilterArgs) -> Value:
    w = _first_string(value)
    arguments = args.as_list()
    date_format = arguments[0] if arguments else ""
    try:
        timestamp = pd.to_datetime(w)
    except (ValueError, TypeError, OverflowError) as e:
        raise FilterEvaluationError(f"Unparsable date: {w!r}") from e
    if pd.isna(timestamp):
        raise FilterEvaluationError(f"Unparsable date: {w!r}")
    if not date_format:
        return str(int(timestamp.timestamp()))
    return format_date(date_format, timestamp)


@FILTERS.register("e", "escape")
def escape(value: Value, args: FilterArgs) -> Value:
    return html.escape(_first_string(value), quote=False).replace('"', "&quot;")


@FILTERS.register("first")
def first(value: Value, args: FilterArgs) -> Value:
    if isinstance(value, list):
        return _first_string(value)
    return _first_string(value)[:1]


_CONVERSION = re.compile(r"%(%|[-+ 0#]*\d*(?:\.\d+)?([sdifFeEgGxXoc]))")


@FILTERS.register("format")
def format_(value: Value, args: FilterArgs) -> Value:
    w = _first_string(value)
    arguments = args.as_list()
    if not arguments:
        return w
    remaining = list(arguments)

    def convert(match: re.Match) -> str:
        if match.group(1) == "%":
            return "%"
        if not remaining:
            raise FilterEvaluationError("Too few arguments")
        argument = remaining.pop(0)
        kind = match.group(2)
        try:
            if kind in "dioxXc":
                converted: Any = int(float(argument)) if is_numeric(argument) else 0
            elif kind in "fFeEgG":
                converted = float(argument) if is_numeric(argument) else 0.0
            else:
                converted = argument
            return ("%" + match.group(1).replace("i", "d")) % converted
        except (ValueError, TypeError, OverflowError) as e:
            raise FilterEvaluationError(str(e)) from e

    return _CONVERSION.sub(convert, w)


@FILTERS.register("implode")
def implode(value: Value, args: FilterArgs) -> Value:
    arguments = args.as_list()
    if not arguments:
        return ""
    return arguments[0].join(arguments[1:])


@FILTERS.register("implodev")
def implodev(value: Value, args: FilterArgs) -> Value:
    arguments = args.as_list()
    if not arguments:
        return ""
    return arguments[0].join(argument for argument in arguments[1:] if argument != "")


@FILTERS.register("last")
def last(value: Value, args: FilterArgs) -> Value:
    if isinstance(value, list):
        return _first_string(value[-1:])
    return _first_string(value)[-1:]


@FILTERS.register("length")
def length(value: Value, args: FilterArgs) -> Value:
    if isinstance(value, list):
        return str(len(value))
    return str(len(_first_string(value)))


@FILTERS.register("lower")
def lower(value: Value, args: FilterArgs) -> Value:
    return _first_string(value).lower()


@FILTERS.register("replace")
def replace(value: Value, args: FilterArgs) -> Value:
    w = _first_string(value)
    for search, replacement in args.as_mapping().items():
        if search:
            w = w.replace(search, replacement)
    return w


@FILTERS.register("slice")
def slice_(value: Value, args: FilterArgs) -> Value:
    arguments = args.as_list()
    start = _int(arguments[0]) if arguments else 0
    size = _int(arguments[1]) if len(arguments) > 1 else 1
    if isinstance(value, list):
        begin = start if start >= 0 else max(len(value) + start, 0)
        end = begin + size if size >= 0 else len(value) + size
        return value[begin:end]
    return substr(_first_string(value), start, size)


@FILTERS.register("split")
def split(value: Value, args: FilterArgs) -> Value:
    w = _first_string(value)
    arguments = args.as_list()
    delimiter = arguments[0] if arguments else ""
    limit = _int(arguments[1]) if len(arguments) > 1 else None
    if not delimiter:
        size = limit if limit and limit > 0 else 1
        return [w[index:index + size] for index in range(0, len(w), size)] or [""]
    if limit is None:
        return w.split(delimiter)
    if limit > 0:
        return w.split(delimiter, limit - 1)
    if limit < 0:
        return w.split(delimiter)[:limit]
    return [w]


@FILTERS.register("striptags")
def striptags(value: Value, args: FilterArgs) -> Value:
    return re.sub(r"<!--.*?-->|<[^>]*>", "", _first_string(value), flags=re.DOTALL)


@FILTERS.register("table")
def table(value: Value, args: FilterArgs) -> Value:
    w = _first_string(value)
    text = args.text.strip()
    if text.startswith("{"):
        inline = FilterArgs(text[1:-1].strip(), args.variables, args.tables).as_mapping()
        return inline.get(w, w)

    arguments = args.as_list()
    name = arguments[0] if arguments else ""
    terms = args.tables.get(name)
    if terms is None:
        if name in ISO_TABLES:
            return iso_label(name, w) or w
        logger.debug("Table %r is not defined", name)
        return w
    code_from_label = len(arguments) > 1 and arguments[1] == "code"
    strict = len(arguments) > 2 and arguments[2] not in ("", "0", "false")
    if code_from_label:
        for code, label in terms.items():
            if label == w or (not strict and label.lower() == w.lower()):
                return code
        return w
    if w in terms:
        return terms[w]
    if not strict:
        for code, label in terms.items():
            if code.lower() == w.lower():
                return label
    return w


@FILTERS.register("title")
def title(value: Value, args: FilterArgs) -> Value:
    return re.sub(r"(^|\s)(\S)", lambda m: m.group(1) + m.group(2).upper(), _first_string(value))


@FILTERS.register("trim")
def trim(value: Value, args: FilterArgs) -> Value:
    w = _first_string(value)
    arguments = args.as_list()
    characters = arguments[0] if arguments and arguments[0] else _DEFAULT_TRIM
    side = arguments[1] if len(arguments) > 1 else ""
    if side == "left":
        return w.lstrip(characters)
    if side == "right":
        return w.rstrip(characters)
    return w.strip(characters)


@FILTERS.register("upper")
def upper(value: Value, args: FilterArgs) -> Value:
    return _first_string(value).upper()


@FILTERS.register("url_encode")
def url_encode(value: Value, args: FilterArgs) -> Value:
    return quote(_first_string(value), safe="-_.~")


# Filters for common library formats (unimarc, isbd).

@FILTERS.register("dateIso")
def date_iso(value: Value, args: FilterArgs) -> Value:
    # "d1605110512" => "1605-11-05T12". A leading space is used in unimarc.
    w = _first_string(value)
    if not w or "u" in w or w[0] not in "0123456789-+cd ":
        return w
    sign = ""
    if w[0] in "-+cd ":
        sign = "-" if w[0] in "-c" else ""
        w = w[1:]
    result = (
        f"{sign}{w[0:4]}-{w[4:6]}-{w[6:8]}"
        f"T{w[8:10]}:{w[10:12]}:{w[12:14]}"
    )
    return result.rstrip("-:T |#")


@FILTERS.register("dateRevert")
def date_revert(value: Value, args: FilterArgs) -> Value:
    # Spreadsheet "dd/mm/yy" or "dd/mm/yyyy" into "yyyy-mm-dd".
    w = _first_string(value).strip()
    separator = re.search(r"\D", w)
    if separator:
        parts = [part for part in w.split(separator.group(0)) if part] + ["", "", ""]
        day, month, year = _int(parts[0]), _int(parts[1]), parts[2]
        year = _int("20" + year if len(year) == 2 else year)
        return f"{year:04d}-{month:02d}-{day:02d}"
    year = "20" + w[4:6] if len(w) == 6 else w[4:8]
    return f"{year}-{w[2:4]}-{w[0:2]}"


@FILTERS.register("dateSql")
def date_sql(value: Value, args: FilterArgs) -> Value:
    # Unimarc 005: "19850901141236.0" => "1985-09-01 14:12:36".
    w = _first_string(value).strip()
    return f"{w[0:4]}-{w[4:6]}-{w[6:8]} {w[8:10]}:{w[10:12]}:{w[12:14]}"


def _part(prefix: str, text: str, suffix: str = "") -> str:
    return f"{prefix}{text}{suffix}" if text else ""


@FILTERS.register("isbdName")
def isbd_name(value: Value, args: FilterArgs) -> Value:
    """Name of a person from the unimarc subfields a, b, c, d, f, g, k, o, p and 5."""
    a = args.as_keys(["a", "b", "c", "d", "f", "g", "k", "o", "p", "5"])
    if a["f"]:
        dates = " (" + a["f"] + _part(" ; ", a["c"]) + _part(" ; ", a["k"]) + ")"
    elif a["c"]:
        dates = " (" + a["c"] + _part(" ; ", a["k"]) + ")"
    else:
        dates = _part(" (", a["k"], ")")
    return (
        a["a"]
        + _part(", ", a["b"])
        + _part(" (", a["g"], ")")
        + _part(", ", a["d"])
        + dates
        + _part(" {", a["o"], "}")
        + _part(", ", a["p"])
        + _part(", ", a["5"])
    )


@FILTERS.register("isbdNameColl")
def isbd_name_coll(value: Value, args: FilterArgs) -> Value:
    """Name of an organization from the unimarc subfields a, b, c, d, e, f, g, h, o, p, r and 5."""
    a = args.as_keys(["a", "b", "c", "d", "e", "f", "g", "h", "o", "p", "r", "5"])
    if a["g"]:
        rejected = " (" + a["g"] + _part(" ; ", a["h"]) + ")"
    else:
        rejected = _part(" (", a["h"], ")")
    if a["f"]:
        dates = " (" + a["f"] + _part(" ; ", a["c"]) + ")"
    else:
        dates = _part(" (", a["c"], ")")
    return (
        a["a"]
        + _part(", ", a["b"])
        + rejected
        + _part(", ", a["d"])
        + _part(", ", a["e"])
        + dates
        + _part(" {", a["o"], "}")
        + _part(", ", a["p"])
        + _part(", ", a["r"])
        + _part(", ", a["5"])
    )


@FILTERS.register("isbdMark")
def isbd_mark(value: Value, args: FilterArgs) -> Value:
    a = args.as_keys(["a", "b", "c"])
    return a["a"] + _part(", ", a["b"]) + _part(" (", a["c"], ")")


_NOID_TABLE = "0123456789bcdfghjkmnpqrstvwxz"


def noid_check(text: str) -> str:
    """Check character of a noid, without naan, as used by the BnF."""
    total = sum(
        (_NOID_TABLE.index(char) if char in _NOID_TABLE else 0) * position
        for position, char in enumerate(text, start=1)
    )
    return _NOID_TABLE[total % len(_NOID_TABLE)]


@FILTERS.register("unimarcIndex")
def unimarc_index(value: Value, args: FilterArgs) -> Value:
    arguments = args.as_list()
    index = arguments[0] if arguments else ""
    if not index:
        return value
    code = _first_string(value) if len(arguments) == 1 else arguments[1]
    if index == "unimarc/a":
        return f"Unimarc/A : {code}"
    if index == "rameau":
        return f"https://data.bnf.fr/ark:/12148/cb{code}{noid_check('cb' + code)}"
    return f"{index} : {code}"


_HEMISPHERES = {"+": "N", "-": "S", "W": "W", "E": "E", "N": "N", "S": "S"}


@FILTERS.register("unimarcCoordinates")
def unimarc_coordinates(value: Value, args: FilterArgs) -> Value:
    # "w0241207" => "W 24°12’7”".
    w = _first_string(value)
    hemisphere = _HEMISPHERES.get(w[:1].upper(), "?")
    return f"{hemisphere} {_int(w[1:4])}°{_int(w[4:6])}’{_int(w[6:8])}”"


@FILTERS.register("unimarcCoordinatesHexa")
def unimarc_coordinates_hexa(value: Value, args: FilterArgs) -> Value:
    w = _first_string(value)
    return f"{w[0:2]}°{w[2:4]}’{w[4:6]}”"


@FILTERS.register("unimarcTimeHexa")
def unimarc_time_hexa(value: Value, args: FilterArgs) -> Value:
    # "150027" => "15h0m27s".
    w = _first_string(value)
    hours, minutes, seconds = _int(w[0:2].strip()), _int(w[2:4].strip()), _int(w[4:6].strip())
    return (
        (f"{hours}h" if hours else "")
        + (f"{minutes}m" if minutes else ("0m" if hours and seconds else ""))
        + (f"{seconds}s" if seconds else "")
    )
