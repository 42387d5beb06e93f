"""Shared variables and lookup tables for one conversion."""

from __future__ import annotations

from typing import Any, Mapping

from ..utils import stringify
from .queriers import is_node, node_to_string


class MappingContext:
    """Holds the variables and tables used while converting one document.

    A context is created for each conversion and is never shared, because
    `value` is rebound to every extracted value.
    """

    def __init__(
        self,
        variables: Mapping[str, Any] | None = None,
        tables: Mapping[str, Mapping[str, str]] | None = None,
    ) -> None:
        self.variables: dict[str, Any] = dict(variables or {})
        self.tables: dict[str, Mapping[str, str]] = dict(tables or {})

    def bind_value(self, value: Any) -> None:
        """Set the current source value, a scalar, a xml node or None."""
        self.variables["value"] = value

    def set_variable(self, name: str, value: Any) -> None:
        self.variables[name] = value

    def scalar_variables(self) -> dict[str, str]:
        """Return the variables usable in a template, as strings.

        Lists, dicts and None are skipped.
        """
        result: dict[str, str] = {}
        for name, value in self.variables.items():
            if is_node(value):
                result[name] = node_to_string(value)
            elif isinstance(value, (str, int, float, bool)):
                result[name] = stringify(value)
        return result
