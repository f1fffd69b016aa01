"""Text formats of the KSysGuard sensor protocol (``ksysguardd 1.2.0``).

See https://techbase.kde.org/Development/Tutorials/Sensors for the protocol.
Identifiers are dotted internally (``memory.used``) and slash-separated on the
wire (``device0/memory/used``); the rewriting lives here and nowhere else.
"""
from __future__ import annotations

from typing import Any

BANNER = "ksysguardd 1.2.0"
PROMPT = "ksysguardd> "
# ksysguardd frames error messages with ESC on both sides
ERROR_DELIMITER = "\x1b"
DEVICE_PREFIX = "device"


def to_path(identifier: str) -> str:
    return identifier.replace(".", "/")


def from_path(path: str) -> str:
    return path.replace("/", ".")


def sensor_name(device_index: int, identifier: str) -> str:
    """Fully qualified sensor name, e.g. ``device1/temperature/gpu``."""
    return f"{DEVICE_PREFIX}{device_index}/{to_path(identifier)}"


def format_maximum(maximum: Any) -> str:
    # ksysguard expects an integer range
    return str(int(float(maximum)))


def format_metadata(label: str, maximum: Any, unit: str = "") -> str:
    """``<label>\\t0\\t<max>\\t<unit>``; the lower bound is always 0.

    A non-empty unit is preceded by a space so the front-end can append it
    to the value as is.
    """
    unit_text = f" {unit}" if unit else ""
    return f"{label}\t0\t{format_maximum(maximum)}\t{unit_text}"


def parse_metadata(line: str) -> tuple[str, float, str]:
    """Inverse of :func:`format_metadata` → ``(label, maximum, unit)``."""
    label, _lower, maximum, unit = line.split("\t", 3)
    return label, float(maximum), unit.strip()


def format_error(message: Any) -> str:
    text = " ".join(str(message).split())
    return f"{ERROR_DELIMITER}error: {text}{ERROR_DELIMITER}"
