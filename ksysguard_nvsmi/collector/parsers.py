from __future__ import annotations

import math
import re
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from ..errors import ParseError
from ..fields import FieldId

# header name, followed by optional unit in [], e.g. "memory.used [MiB]"
_HEADER_RE = re.compile(r"^(?P<name>[^\[\]]+?)(?:\s*\[(?P<unit>[^\[\]]*)\])?$")
# numeric prefix, followed by a unit, e.g. "1024 MiB" or "65.30 W"
_VALUE_UNIT_RE = re.compile(r"^(?P<number>[-+]?\d+(?:\.\d+)?)\s+(?P<unit>\S+)$")

DELIMITER = ","


class Column(NamedTuple):
    identifier: FieldId
    unit: str


# -----------------------------
# Helpers
# -----------------------------

def trim(value: Optional[str]) -> str:
    return value.strip() if value else ""


def to_number(value: Any) -> Optional[float]:
    """Finite numeric value of ``value``, or None for things like '[N/A]' or 'inf'."""
    if isinstance(value, (bool, int, float)):
        number = float(value)
    else:
        try:
            number = float(trim(value))
        except (TypeError, ValueError):
            return None
    return number if math.isfinite(number) else None


def split_unit(value: str) -> Tuple[str, str]:
    """Split '1024 MiB' into ('1024', 'MiB'). Non-numeric text is kept whole."""
    match = _VALUE_UNIT_RE.match(value)
    if match is None:
        return value, ""
    return match.group("number"), match.group("unit")


# -----------------------------
# Public API
# -----------------------------

def parse_header(line: str) -> List[Column]:
    """Parse the CSV header row of `nvidia-smi --format=csv`."""
    columns: List[Column] = []
    for cell in line.split(DELIMITER):
        cell = trim(cell)
        match = _HEADER_RE.match(cell)
        if match is None:
            raise ParseError(f"unparsable header: '{cell}'")
        try:
            identifier = FieldId(trim(match.group("name")))
        except ValueError:
            raise ParseError(f"unparsable header: '{cell}'") from None
        if any(col.identifier == identifier for col in columns):
            raise ParseError(f"duplicate header column: '{identifier}'")
        columns.append(Column(identifier, trim(match.group("unit"))))
    return columns


def parse_row(line: str, columns: List[Column]) -> Dict[FieldId, str]:
    cells = line.split(DELIMITER)
    if len(cells) != len(columns):
        raise ParseError(
            f"expected {len(columns)} columns, got {len(cells)}: '{line}'"
        )
    return {col.identifier: trim(cell) for col, cell in zip(columns, cells)}


def parse_csv(text: str) -> Tuple[List[Column], List[Dict[FieldId, str]]]:
    """Split `nvidia-smi` CSV output into header columns and one dict per GPU.

    Blank lines are skipped; output without a header row is a ParseError.
    """
    lines = [ln for ln in text.splitlines() if ln.strip()]
    if not lines:
        raise ParseError("nvidia-smi returned no output")
    columns = parse_header(lines[0])
    return columns, [parse_row(ln, columns) for ln in lines[1:]]
