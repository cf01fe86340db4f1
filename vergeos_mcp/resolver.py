"""Resolution of caller references (key, name, record) to numeric keys.

Resolution rules:

- ``int`` is a key and passes through unchanged, no query; a string is
  always a name, even when it is all digits (``"2024"``);
- a fetched record passes its own ``key`` through, no query;
- with scoping predicates (``machine eq 12``), a key or record is
  confirmed with ``$key eq <key>`` plus the scope, so a key belonging to
  another parent is not found;
- an exact name queries ``name eq '<name>'``;
- a wildcard name (``*``/``?``) queries ``name ct '<literal>'`` with the
  longest literal run of the pattern, then narrows the candidates with
  a case-insensitive glob, because ``ct`` over-matches (``Web*`` would
  otherwise also return ``OldWeb``).
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence, Union

from .conversions import glob_match, has_wildcards, longest_literal
from .exceptions import NotFoundError, ValidationError
from .logging_config import get_logger
from .mapper import Resource, normalize_rows
from .query import FieldSpec, Predicate, build_field_projection, build_filter
from .transport import VergeTransport

logger = get_logger(__name__)

ResourceReference = Union[int, str, Resource]


def name_predicates(name: str, field: str = "name") -> list[Predicate]:
    """Server-side predicates for a name or name pattern."""
    if not has_wildcards(name):
        return [Predicate.eq(field, name)]
    literal = longest_literal(name)
    return [Predicate.contains(field, literal)] if literal else []


def narrow_by_name(
    rows: Iterable[dict[str, Any]], name: str, key: str = "name"
) -> list[dict[str, Any]]:
    """Client-side filter matching the server prefilter for ``name``."""
    if has_wildcards(name):
        return [r for r in rows if glob_match(str(r.get(key) or ""), name)]
    return [r for r in rows if r.get(key) == name]


class ReferenceResolver:
    """Turns :data:`ResourceReference` values into keys for one transport."""

    def __init__(self, transport: VergeTransport) -> None:
        self.transport = transport

    async def lookup_rows(
        self,
        model: type[Resource],
        name: str,
        filters: Sequence[Predicate] = (),
    ) -> list[dict[str, Any]]:
        """Query ``$key``/name rows whose name matches ``name`` (exact or glob)."""
        predicates = [
            *model.base_filters,
            *filters,
            *name_predicates(name, model.name_field),
        ]
        params: dict[str, Any] = {
            "fields": build_field_projection(
                [FieldSpec("$key"), FieldSpec(model.name_field, "name")]
            )
        }
        if predicates:
            params["filter"] = build_filter(predicates)

        payload = await self.transport.request("GET", model.endpoint, params=params)
        return narrow_by_name(normalize_rows(payload), name)

    async def lookup_key(
        self,
        model: type[Resource],
        key: int,
        filters: Sequence[Predicate],
    ) -> list[int]:
        """``[key]`` when a record with that key also satisfies ``filters``."""
        params = {
            "fields": build_field_projection([FieldSpec("$key")]),
            "filter": build_filter([*filters, Predicate.eq("$key", key)]),
        }
        payload = await self.transport.request("GET", model.endpoint, params=params)
        return [int(r["$key"]) for r in normalize_rows(payload)]

    async def resolve(
        self,
        reference: ResourceReference | None,
        model: type[Resource],
        filters: Sequence[Predicate] = (),
        required: bool = False,
    ) -> list[int]:
        """Resolve a reference to zero or more keys.

        Args:
            reference: Key, name/pattern, or previously fetched record.
            model: Resource type to search.
            filters: Extra scoping predicates (e.g. ``machine eq 12``).
            required: Raise :class:`NotFoundError` instead of returning ``[]``.

        Raises:
            NotFoundError: Nothing matched and ``required`` is set.
            ValidationError: The reference is of an unsupported type or is
                a record of a different resource type.
        """
        if reference is None or reference == "":
            raise ValidationError(f"A {model.label} name or key is required")

        if isinstance(reference, Resource):
            if not isinstance(reference, model):
                raise ValidationError(
                    f"Expected a {model.label}, got a {reference.label}"
                )
            reference = reference.key

        if isinstance(reference, bool):
            raise ValidationError(f"Invalid {model.label} reference: {reference!r}")

        if isinstance(reference, int):
            if not filters:
                return [reference]
            keys = await self.lookup_key(model, reference, filters)
        elif isinstance(reference, str):
            rows = await self.lookup_rows(model, reference, filters)
            keys = [int(r["$key"]) for r in rows]
        else:
            raise ValidationError(f"Invalid {model.label} reference: {reference!r}")

        logger.debug(
            "Resolved reference",
            extra={"resource": model.endpoint, "reference": reference, "matches": len(keys)},
        )

        if not keys and required:
            raise NotFoundError(model.label, reference)
        return keys

    async def resolve_one(
        self,
        reference: ResourceReference | None,
        model: type[Resource],
        filters: Sequence[Predicate] = (),
    ) -> int:
        """Resolve a reference that must identify exactly one record.

        Raises:
            NotFoundError: Nothing matched.
            ValidationError: The reference matched more than one record.
        """
        keys = await self.resolve(reference, model, filters, required=True)
        if len(keys) > 1:
            raise ValidationError(
                f"'{reference}' matches {len(keys)} {model.label} records; "
                "use a more specific name or a key"
            )
        return keys[0]
