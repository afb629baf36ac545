"""
containers/record.py - Value and Record

Value is a closed tagged variant: every value carries its ValueKind, so a
record schema can check a write with a single comparison instead of
inspecting the payload's shape.

A Record maps field names to Values. With a RecordSchema attached, writes
must match the declared kind and undeclared fields are rejected; without
one, any field may be written.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator, Mapping, Optional

from ibisdm.exceptions import FieldTypeMismatchError, TypeViolationError
from ibisdm.semantics.types import Proposition


class ValueKind(str, Enum):
    INDIVIDUAL = "individual"
    PROPOSITION = "proposition"
    SET = "set"
    RECORD = "record"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class Value:
    kind: ValueKind
    payload: Any

    # ── Constructors ──────────────────────────────────────────────────────────

    @classmethod
    def individual(cls, name: str) -> "Value":
        return cls(ValueKind.INDIVIDUAL, str(name))

    @classmethod
    def proposition(cls, prop: Proposition) -> "Value":
        if not isinstance(prop, Proposition):
            raise TypeViolationError(prop, f"Not a proposition: {prop!r}")
        return cls(ValueKind.PROPOSITION, prop)

    @classmethod
    def set_of(cls, values: Iterable["Value"]) -> "Value":
        return cls(ValueKind.SET, frozenset(values))

    @classmethod
    def record(cls, record: "Record") -> "Value":
        # snapshot, so later writes to the source record do not leak in
        return cls(ValueKind.RECORD, record.copy())

    @classmethod
    def boolean(cls, flag: bool) -> "Value":
        return cls(ValueKind.BOOLEAN, bool(flag))

    def __str__(self) -> str:
        if self.kind == ValueKind.SET:
            return "{" + ", ".join(sorted(str(v) for v in self.payload)) + "}"
        if self.kind == ValueKind.BOOLEAN:
            return "true" if self.payload else "false"
        return str(self.payload)


@dataclass(frozen=True)
class RecordSchema:
    """Field name → expected ValueKind."""
    fields: Mapping[str, ValueKind]

    @classmethod
    def of(cls, **fields: ValueKind) -> "RecordSchema":
        return cls(fields=dict(fields))

    def expected(self, field: str) -> Optional[ValueKind]:
        return self.fields.get(field)

    def __contains__(self, field: object) -> bool:
        return field in self.fields


class Record:
    def __init__(
        self,
        fields: Optional[Mapping[str, Value]] = None,
        schema: Optional[RecordSchema] = None,
    ) -> None:
        self.schema = schema
        self._fields: dict[str, Value] = {}
        for name, value in (fields or {}).items():
            self.set(name, value)

    def set(self, field: str, value: Value) -> None:
        """Write a field. Raises FieldTypeMismatchError on a schema conflict;
        the record is unchanged in that case."""
        if self.schema is not None:
            expected = self.schema.expected(field)
            if expected is None:
                raise FieldTypeMismatchError(
                    field, "no such field", value.kind.value,
                    message=f"Field '{field}' is not declared in the record schema.",
                )
            if value.kind != expected:
                raise FieldTypeMismatchError(field, expected.value, value.kind.value)
        self._fields[field] = value

    def get(self, field: str, default: Optional[Value] = None) -> Optional[Value]:
        return self._fields.get(field, default)

    def delete(self, field: str) -> None:
        self._fields.pop(field, None)

    def copy(self) -> "Record":
        clone = Record(schema=self.schema)
        clone._fields = dict(self._fields)
        return clone

    def as_dict(self) -> dict[str, Value]:
        return dict(self._fields)

    def pformat(self, indent: int = 0) -> str:
        """Multi-line rendering; nested records are indented."""
        pad = "  " * indent
        lines: list[str] = []
        for name in sorted(self._fields):
            value = self._fields[name]
            if value.kind == ValueKind.RECORD:
                lines.append(f"{pad}{name}:")
                lines.append(value.payload.pformat(indent + 1))
            else:
                lines.append(f"{pad}{name}: {value}")
        return "\n".join(lines)

    def __getitem__(self, field: str) -> Value:
        return self._fields[field]

    def __contains__(self, field: object) -> bool:
        return field in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self._fields == other._fields

    # records are mutable; Value.record() snapshots them before hashing
    def __hash__(self) -> int:
        return hash(frozenset(self._fields.items()))

    def __repr__(self) -> str:
        return f"Record({self._fields!r})"
