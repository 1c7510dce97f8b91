"""
Explicit shape handling for provider payload values.

Every value pulled out of a decoded provider document is one of a small
set of shapes. Extraction code classifies with `kind_of()` and converts
with the `as_*` helpers instead of relying on implicit coercion, so a
field that changes type upstream degrades to None rather than raising.
"""

import math
import re
from enum import Enum
from typing import Any, Mapping, Optional, Sequence


class RawKind(str, Enum):
    ABSENT = "absent"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    MAPPING = "mapping"
    SEQUENCE = "sequence"


_INT_RE = re.compile(r"^\s*[-+]?\d+\s*$")


def kind_of(value: Any) -> RawKind:
    """Classify a decoded JSON value. bool is checked before int on purpose."""
    if value is None:
        return RawKind.ABSENT
    if isinstance(value, bool):
        return RawKind.BOOLEAN
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return RawKind.ABSENT
        return RawKind.NUMBER
    if isinstance(value, str):
        return RawKind.STRING
    if isinstance(value, Mapping):
        return RawKind.MAPPING
    if isinstance(value, Sequence):
        return RawKind.SEQUENCE
    return RawKind.ABSENT


def is_container(value: Any) -> bool:
    return kind_of(value) in (RawKind.MAPPING, RawKind.SEQUENCE)


def as_int(value: Any) -> Optional[int]:
    """Integer from a number or an all-digit string; None otherwise."""
    kind = kind_of(value)
    if kind == RawKind.NUMBER:
        if isinstance(value, float) and not value.is_integer():
            return None
        return int(value)
    if kind == RawKind.STRING and _INT_RE.match(value):
        return int(value)
    return None


def as_float(value: Any) -> Optional[float]:
    """Float from a number or a numeric string; None otherwise."""
    kind = kind_of(value)
    if kind == RawKind.NUMBER:
        return float(value)
    if kind == RawKind.STRING:
        try:
            result = float(value.strip())
        except ValueError:
            return None
        return None if math.isnan(result) else result
    return None


def as_str(value: Any) -> Optional[str]:
    """Non-empty stripped string; numbers are rendered, everything else is None."""
    kind = kind_of(value)
    if kind == RawKind.STRING:
        stripped = value.strip()
        return stripped or None
    if kind == RawKind.NUMBER:
        return str(as_int(value) if as_int(value) is not None else value)
    return None


def as_bool(value: Any) -> Optional[bool]:
    kind = kind_of(value)
    if kind == RawKind.BOOLEAN:
        return value
    if kind == RawKind.NUMBER:
        return value != 0
    if kind == RawKind.STRING:
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
    return None


def as_mapping(value: Any) -> Optional[Mapping]:
    return value if kind_of(value) == RawKind.MAPPING else None


def as_sequence(value: Any) -> Optional[Sequence]:
    return value if kind_of(value) == RawKind.SEQUENCE else None


def get_path(value: Any, *keys: str) -> Any:
    """Walk nested mappings by key; None as soon as a step is not a mapping."""
    current = value
    for key in keys:
        mapping = as_mapping(current)
        if mapping is None:
            return None
        current = mapping.get(key)
    return current


def first_present(mapping: Any, *keys: str) -> Any:
    """Value of the first key (in priority order) whose value is not None."""
    node = as_mapping(mapping)
    if node is None:
        return None
    for key in keys:
        value = node.get(key)
        if value is not None:
            return value
    return None
