import re
from typing import Any

_WHITESPACE = re.compile(r"\s+", re.UNICODE)
_COLON = re.compile(r"\s*:\s*")


def clean_unicode(string: Any) -> str:
    """Collapse any run of unicode whitespace into one space and trim."""
    return _WHITESPACE.sub(" ", str(string)).strip()


def clean_field_name(string: Any) -> str:
    """
    Normalize a field name as written by a user, so "Dublin Core : Title"
    and "dcterms :title" compare with the stored names.
    """
    return _COLON.sub(":", clean_unicode(string))


def string_to_list(text: str) -> list[str]:
    """Split a text into trimmed, non-empty lines."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def is_quoted(text: str) -> bool:
    return len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"')


def unquote(text: str) -> str:
    return text[1:-1] if is_quoted(text) else text


def is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    try:
        float(str(value).strip())
    except ValueError:
        return False
    return bool(str(value).strip())


def stringify(value: Any) -> str:
    """
    Convert an extracted scalar to the string used in templates.
    Integral floats lose their decimal part, booleans are written as json.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def substr(text: str, start: int, length: int | None = None) -> str:
    """
    Extract a part of a string like a multibyte "substr": a negative start
    counts from the end, a negative length omits characters from the end.
    """
    size = len(text)
    if start < 0:
        start = max(size + start, 0)
    if start > size:
        return ""
    if length is None:
        return text[start:]
    if length < 0:
        end = size + length
        return text[start:end] if end > start else ""
    return text[start:start + length]
