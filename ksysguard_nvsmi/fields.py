"""Field registry: which `nvidia-smi --query-gpu` fields are exposed and how.

Each field is described by a :class:`FieldSpec`. With no options, the unit is
taken from the CSV header (or the value itself), only the default cleanup is
applied and the maximum is ``max(value, 100)``.

- ``transform`` is called with the trimmed raw text; its result becomes the value.
- ``max_rule`` is either a constant or a callable receiving the device record.
- ``unit`` replaces the detected unit.
- ``value_type`` replaces the default ``integer`` sensor type.
- ``generator`` marks the field as derived: it is not queried from
  `nvidia-smi` but computed from the device record on first access and must
  return ``(metadata_line, value)``. ``requires`` lists the queried fields it
  reads; the field is only offered for devices that report all of them.
"""
from __future__ import annotations

import re
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from .errors import ParseError, UnknownField
from .protocol import format_metadata

_FIELD_ID_RE = re.compile(r"^[A-Za-z0-9_]+(?:\.[A-Za-z0-9_]+)*$")


class FieldId(str):
    """Dotted field identifier such as ``clocks.current.sm``."""

    def __new__(cls, value: str) -> "FieldId":
        if isinstance(value, FieldId):
            return value
        if not isinstance(value, str) or not _FIELD_ID_RE.match(value):
            raise ValueError(f"invalid field identifier: {value!r}")
        return super().__new__(cls, value)

    @property
    def segments(self) -> tuple[str, ...]:
        return tuple(self.split("."))


class ValueType(str, Enum):
    INTEGER = "integer"
    FLOAT = "float"
    LISTVIEW = "listview"


class FieldSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    identifier: str
    transform: Optional[Callable[[str], Any]] = None
    max_rule: Optional[Union[float, Callable[..., Any]]] = None
    unit: Optional[str] = None
    value_type: ValueType = ValueType.INTEGER
    generator: Optional[Callable[..., tuple[str, Any]]] = None
    requires: tuple[str, ...] = ()

    @field_validator("identifier")
    @classmethod
    def _check_identifier(cls, v: str) -> FieldId:
        return FieldId(v)

    @model_validator(mode="after")
    def _queried_or_derived(self) -> "FieldSpec":
        if self.generator is not None and (
            self.transform is not None or self.max_rule is not None or self.unit is not None
        ):
            raise ValueError(
                f"{self.identifier}: a derived field cannot declare transform, max_rule or unit"
            )
        if self.generator is None and self.requires:
            raise ValueError(f"{self.identifier}: only derived fields declare requires")
        return self

    @property
    def is_derived(self) -> bool:
        return self.generator is not None


# -----------------------------
# Transforms
# -----------------------------

def map_bool(value: str) -> int:
    """Throttle reasons are reported as 'Active' / 'Not Active'."""
    if value == "Active":
        return 1
    if value == "Not Active":
        return 0
    raise ParseError(f"unexpected boolean input: '{value}'")


def strip_pstate(value: str) -> str:
    # P0 (max performance) … P12 (min)
    return re.sub(r"^P(\d+)$", r"\1", value)


# -----------------------------
# Max rules & generators
# -----------------------------

def sibling(identifier: str) -> Callable[[Any], Any]:
    """Max rule: the current value of another field of the same device."""
    def rule(record):
        return record.sibling_value(identifier)
    rule.__name__ = f"sibling[{identifier}]"
    return rule


THROTTLE_REASONS = (
    "applications_clocks_setting",
    "gpu_idle",
    "hw_slowdown",
    "sw_power_cap",
    "sync_boost",
    "unknown",
)


def _memory_used_percent(record) -> tuple[str, Any]:
    used = record.sibling_number("memory.used")
    total = record.sibling_number("memory.total")
    if used is None or not total:
        value: Any = "[N/A]"
    else:
        value = round(100.0 * used / total, 1)
    return format_metadata("memory.used_percent", 100, "%"), value


def _active_throttle_reasons(record) -> tuple[str, Any]:
    active = sum(
        int(record.sibling_value(f"clocks_throttle_reasons.{reason}"))
        for reason in THROTTLE_REASONS
    )
    return format_metadata("clocks_throttle_reasons.active", len(THROTTLE_REASONS)), active


# -----------------------------
# Registry
# -----------------------------

class FieldRegistry:
    """Immutable lookup table of :class:`FieldSpec` keyed by identifier."""

    def __init__(self, specs: Iterable[FieldSpec]) -> None:
        table: dict[FieldId, FieldSpec] = {}
        for spec in specs:
            if spec.identifier in table:
                raise ValueError(f"duplicate field identifier: {spec.identifier}")
            table[FieldId(spec.identifier)] = spec
        self._specs = MappingProxyType(table)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    def resolve(self, identifier: str) -> FieldSpec:
        try:
            return self._specs[identifier]
        except KeyError:
            raise UnknownField(identifier) from None

    def all_identifiers(self) -> tuple[FieldId, ...]:
        return tuple(sorted(self._specs))

    def queried_identifiers(self) -> tuple[FieldId, ...]:
        """Identifiers to pass to `--query-gpu`, derived fields excluded."""
        return tuple(i for i in self.all_identifiers() if not self._specs[i].is_derived)

    def specs(self) -> tuple[FieldSpec, ...]:
        return tuple(self._specs[i] for i in self.all_identifiers())


_BOOL_FIELD = dict(transform=map_bool, max_rule=1)

DEFAULT_FIELDS = [
    FieldSpec(identifier="clocks.current.graphics", max_rule=sibling("clocks.max.graphics")),
    FieldSpec(identifier="clocks.current.memory", max_rule=sibling("clocks.max.memory")),
    FieldSpec(identifier="clocks.current.sm", max_rule=sibling("clocks.max.sm")),
    FieldSpec(identifier="clocks.current.video"),
    FieldSpec(identifier="clocks.max.graphics"),
    FieldSpec(identifier="clocks.max.memory"),
    FieldSpec(identifier="clocks.max.sm"),
    *(
        FieldSpec(identifier=f"clocks_throttle_reasons.{reason}", **_BOOL_FIELD)
        for reason in THROTTLE_REASONS
    ),
    FieldSpec(
        identifier="clocks_throttle_reasons.active",
        generator=_active_throttle_reasons,
        requires=tuple(f"clocks_throttle_reasons.{reason}" for reason in THROTTLE_REASONS),
    ),
    FieldSpec(identifier="fan.speed"),
    FieldSpec(identifier="memory.used", max_rule=sibling("memory.total")),
    FieldSpec(identifier="memory.total"),
    FieldSpec(
        identifier="memory.used_percent",
        value_type=ValueType.FLOAT,
        generator=_memory_used_percent,
        requires=("memory.used", "memory.total"),
    ),
    FieldSpec(identifier="pcie.link.gen.current", max_rule=sibling("pcie.link.gen.max")),
    FieldSpec(identifier="pcie.link.gen.max"),
    FieldSpec(identifier="pcie.link.width.current", max_rule=sibling("pcie.link.width.max")),
    FieldSpec(identifier="pcie.link.width.max"),
    FieldSpec(
        identifier="power.draw",
        max_rule=sibling("power.limit"),
        value_type=ValueType.FLOAT,
    ),
    FieldSpec(identifier="power.limit"),
    FieldSpec(identifier="pstate", transform=strip_pstate, max_rule=12),
    FieldSpec(identifier="temperature.gpu", unit="°C"),
    FieldSpec(identifier="utilization.gpu"),
]

REGISTRY = FieldRegistry(DEFAULT_FIELDS)
