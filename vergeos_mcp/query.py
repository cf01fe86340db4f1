"""Query string construction for the VergeOS REST API.

VergeOS list endpoints accept three query parameters built here:

- ``filter``: predicates joined with `` and ``, e.g.
  ``name eq 'web01' and machine#status#running eq true``
- ``fields``: comma-separated projection, e.g.
  ``$key,name,machine#status#node#name as node_name``
- ``sort``: ``+field`` or ``-field``

Nothing in this module performs I/O.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from .exceptions import ValidationError

__all__ = [
    "FieldSpec",
    "Op",
    "Predicate",
    "build_field_projection",
    "build_filter",
    "build_sort",
    "escape_literal",
    "format_value",
]


class Op(str, enum.Enum):
    """Filter comparison operators."""

    EQ = "eq"
    NE = "ne"
    CT = "ct"  # contains
    BW = "bw"  # begins with
    EW = "ew"  # ends with
    GT = "gt"
    GE = "ge"
    LT = "lt"
    LE = "le"


def escape_literal(value: str) -> str:
    """Quote a string literal for use in a filter expression.

    Backslashes and single quotes are escaped so a caller-supplied name
    can never terminate the literal early.

    >>> escape_literal("O'Brien")
    "'O\\\\'Brien'"
    """
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def format_value(value: Any) -> str:
    """Render a Python value as a filter literal.

    Strings are quoted, booleans and numbers are bare, ``None`` is ``null``.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, enum.Enum):
        value = value.value
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return escape_literal(value)
    raise ValidationError(f"Unsupported filter value type: {type(value).__name__}")


@dataclass(frozen=True)
class Predicate:
    """One atomic ``field <op> value`` clause."""

    field: str
    op: Op
    value: Any

    def __post_init__(self) -> None:
        if not self.field or any(c.isspace() for c in self.field):
            raise ValidationError(f"Invalid filter field: {self.field!r}")
        object.__setattr__(self, "op", Op(self.op))

    def render(self) -> str:
        return f"{self.field} {self.op.value} {format_value(self.value)}"

    @classmethod
    def eq(cls, field: str, value: Any) -> "Predicate":
        return cls(field, Op.EQ, value)

    @classmethod
    def contains(cls, field: str, value: str) -> "Predicate":
        return cls(field, Op.CT, value)


def build_filter(predicates: Iterable[Predicate]) -> str:
    """Join predicates into one ``and`` filter expression, in order."""
    return " and ".join(p.render() for p in predicates)


@dataclass(frozen=True)
class FieldSpec:
    """A projected field: wire path plus optional output name.

    ``FieldSpec("machine#status#node#name", "node_name")`` renders as
    ``machine#status#node#name as node_name``.
    """

    wire: str
    name: str | None = None

    @property
    def output_name(self) -> str:
        return self.name or self.wire

    def render(self) -> str:
        if self.name and self.name != self.wire:
            return f"{self.wire} as {self.name}"
        return self.wire


def build_field_projection(fields: Sequence[FieldSpec | str]) -> str:
    """Render a field projection for the ``fields`` query parameter."""
    rendered = []
    for spec in fields:
        rendered.append(spec if isinstance(spec, str) else spec.render())
    return ",".join(rendered)


def build_sort(field: str, descending: bool = False) -> str:
    """Render a sort directive for the ``sort`` query parameter."""
    return f"{'-' if descending else '+'}{field}"
