"""Per-device telemetry records built from one `nvidia-smi` run.

A :class:`Field` never stores a reference to the record it belongs to. Every
accessor that may need sibling fields (derived values, computed maxima) takes
the owning :class:`DeviceRecord` as an argument instead; the record passes
itself when looked up through its convenience methods.
"""
from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from .collector.parsers import to_number
from .errors import ParseError, UnknownField
from .fields import FieldId, FieldSpec, ValueType
from .protocol import format_metadata, parse_metadata

DEFAULT_MAXIMUM = 100


class CellState(Enum):
    PENDING = "pending"
    RESOLVING = "resolving"
    RESOLVED = "resolved"


class OnceCell:
    """Computes a value on first ``get`` and returns the stored result afterwards."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.state = CellState.PENDING
        self._result: Any = None

    def get(self, compute: Callable[[], Any]) -> Any:
        if self.state is CellState.RESOLVED:
            return self._result
        if self.state is CellState.RESOLVING:
            raise ParseError(f"circular field dependency while resolving '{self.name}'")
        self.state = CellState.RESOLVING
        try:
            result = compute()
        except BaseException:
            self.state = CellState.PENDING
            raise
        self._result = result
        self.state = CellState.RESOLVED
        return result


class Field:
    """One telemetry value of one device."""

    def __init__(self, spec: FieldSpec, value: Any = None, unit: str = "") -> None:
        self.spec = spec
        self._value = value
        self._unit = unit
        self._generated = OnceCell(spec.identifier)
        self._maximum = OnceCell(f"{spec.identifier} (maximum)")

    def __repr__(self) -> str:
        state = "derived" if self.is_derived else repr(self._value)
        return f"Field({self.identifier}={state})"

    @property
    def identifier(self) -> FieldId:
        return FieldId(self.spec.identifier)

    @property
    def value_type(self) -> ValueType:
        return self.spec.value_type

    @property
    def is_derived(self) -> bool:
        return self.spec.is_derived

    @property
    def is_generated(self) -> bool:
        return self._generated.state is CellState.RESOLVED

    def _generate(self, record: "DeviceRecord") -> Tuple[str, Any]:
        return self._generated.get(lambda: self.spec.generator(record))

    def value(self, record: "DeviceRecord") -> Any:
        if self.is_derived:
            return self._generate(record)[1]
        return self._value

    def unit(self, record: "DeviceRecord") -> str:
        if self.is_derived:
            return parse_metadata(self._generate(record)[0])[2]
        return self._unit

    def maximum(self, record: "DeviceRecord") -> float:
        if self.is_derived:
            return parse_metadata(self._generate(record)[0])[1]
        return self._maximum.get(lambda: self._resolve_maximum(record))

    def _resolve_maximum(self, record: "DeviceRecord") -> float:
        rule = self.spec.max_rule
        if rule is not None:
            result = rule(record) if callable(rule) else rule
            maximum = to_number(result)
            if maximum is not None:
                return maximum
        current = to_number(self._value)
        return DEFAULT_MAXIMUM if current is None else max(current, DEFAULT_MAXIMUM)

    def metadata_line(self, record: "DeviceRecord") -> str:
        if self.is_derived:
            return self._generate(record)[0]
        return format_metadata(self.identifier, self.maximum(record), self._unit)


class DeviceRecord(Mapping):
    """Read-only mapping of field identifier → :class:`Field` for one GPU."""

    def __init__(self, index: int, fields: Dict[FieldId, Field]) -> None:
        self.index = index
        self._fields = dict(fields)

    def __getitem__(self, identifier: str) -> Field:
        return self._fields[identifier]

    def __iter__(self) -> Iterator[FieldId]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"DeviceRecord(device{self.index}, {len(self)} fields)"

    def field(self, identifier: str) -> Field:
        try:
            return self._fields[identifier]
        except KeyError:
            raise UnknownField(identifier) from None

    def value(self, identifier: str) -> Any:
        return self.field(identifier).value(self)

    def unit(self, identifier: str) -> str:
        return self.field(identifier).unit(self)

    def maximum(self, identifier: str) -> float:
        return self.field(identifier).maximum(self)

    def metadata_line(self, identifier: str) -> str:
        return self.field(identifier).metadata_line(self)

    # used from max rules and generators: a missing sibling is bad collector output
    def sibling_value(self, identifier: str) -> Any:
        if identifier not in self._fields:
            raise ParseError(f"device{self.index}: field '{identifier}' is missing")
        return self._fields[identifier].value(self)

    def sibling_number(self, identifier: str) -> Optional[float]:
        return to_number(self.sibling_value(identifier))

    def resolve_maxima(self) -> None:
        """Resolve every queried field's maximum, pulling siblings in on demand."""
        for field in self._fields.values():
            if not field.is_derived:
                field.maximum(self)


Snapshot = Tuple[DeviceRecord, ...]
