"""Mapping between wire JSON and typed resource records.

A resource type is a pydantic model that also declares, as class
variables, where it lives (``endpoint``), which fields to project
(``projection``) and how caller values are written back
(``write_fields``). :class:`ResourceMapper` turns both directions of that
declaration into code:

- ``from_wire`` validates server rows into models, accepting a single
  object, a list, or nothing;
- ``to_wire`` renames and converts caller values into a request body,
  dropping unset values so updates only carry what changed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Any, Callable, ClassVar, Generic, Iterable, Mapping, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .conversions import epoch_to_datetime
from .exceptions import APIResponseError, ValidationError
from .query import FieldSpec, Predicate, build_field_projection


def _coerce_epoch(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        if not value.strip():
            return None
        if value.strip().lstrip("-").isdigit():
            return epoch_to_datetime(int(value))
        return datetime.fromisoformat(value)
    return epoch_to_datetime(value)


# Epoch seconds on the wire, local datetime (or None for 0/absent) in Python.
EpochDatetime = Annotated[datetime | None, BeforeValidator(_coerce_epoch)]


@dataclass(frozen=True)
class WriteField:
    """How one caller-facing value is written to the wire."""

    wire: str
    convert: Callable[[Any], Any] | None = None

    def encode(self, value: Any) -> Any:
        return self.convert(value) if self.convert else value


class Resource(BaseModel):
    """Base class for typed VergeOS records.

    Subclasses set the class variables below; every record carries its
    ``$key`` as ``key``.
    """

    endpoint: ClassVar[str] = ""
    # Noun used in the ``<noun>_actions`` endpoint and envelope, if any.
    noun: ClassVar[str | None] = None
    label: ClassVar[str] = "Resource"
    projection: ClassVar[tuple[FieldSpec, ...]] = ()
    write_fields: ClassVar[dict[str, WriteField]] = {}
    # Predicates always applied when listing (e.g. hide snapshot VMs).
    base_filters: ClassVar[tuple[Predicate, ...]] = ()
    # Wire field that name references are matched against.
    name_field: ClassVar[str] = "name"
    # Property names merged into ``to_display()``.
    display_fields: ClassVar[tuple[str, ...]] = ()

    key: int = Field(alias="$key")
    name: str | None = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def fields_param(cls) -> str:
        return build_field_projection(cls.projection)

    @classmethod
    def name_output(cls) -> str:
        """Row key under which ``name_field`` appears in projected rows."""
        for spec in cls.projection:
            if spec.wire == cls.name_field:
                return spec.output_name
        return cls.name_field

    def to_display(self) -> dict[str, Any]:
        """Plain dict of the record plus its display values."""
        data = self.model_dump(mode="json")
        for attr in self.display_fields:
            value = getattr(self, attr)
            data[attr] = value.isoformat() if isinstance(value, datetime) else value
        return data

    def __str__(self) -> str:
        return f"{self.label} '{self.name}' (key {self.key})"


R = TypeVar("R", bound=Resource)


def normalize_rows(payload: Any) -> list[dict[str, Any]]:
    """Normalize a response into a list of row dicts.

    The API returns a bare object for some queries and an array for
    others; ``None`` means no rows.
    """
    if payload is None:
        return []
    if isinstance(payload, list):
        return [row for row in payload if isinstance(row, dict)]
    if isinstance(payload, dict):
        return [payload]
    raise APIResponseError(f"Unexpected response shape: {type(payload).__name__}")


class ResourceMapper(Generic[R]):
    """Wire <-> model translation for one resource type."""

    def __init__(self, model: type[R]) -> None:
        self.model = model

    def from_wire(self, payload: Any) -> list[R]:
        rows = normalize_rows(payload)
        try:
            return [self.model.model_validate(row) for row in rows]
        except PydanticValidationError as e:
            raise APIResponseError(
                f"Unexpected {self.model.label} data from server: {e}"
            ) from e

    def one_from_wire(self, payload: Any) -> R | None:
        records = self.from_wire(payload)
        return records[0] if records else None

    def to_wire(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Build a request body from caller values.

        Raises:
            ValidationError: If a value names a field that cannot be written.
        """
        body: dict[str, Any] = {}
        for name, value in values.items():
            if value is None:
                continue
            spec = self.model.write_fields.get(name)
            if spec is None:
                raise ValidationError(
                    f"{self.model.label} has no writable field '{name}'", field=name
                )
            try:
                body[spec.wire] = spec.encode(value)
            except (TypeError, ValueError) as e:
                raise ValidationError(
                    f"Invalid value for '{name}': {e}", field=name
                ) from e
        return body

    def wire_names(self, names: Iterable[str]) -> list[str]:
        return [self.model.write_fields[n].wire for n in names if n in self.model.write_fields]
