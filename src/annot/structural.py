# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Structural value model: admissible values, equivalence and dealiasing.

A structural value is an immutable value whose equality is defined purely by
its content. Only structural values may be attached to declarations, because
duplicate detection and singleton queries compare them by content.
"""

import dataclasses
import logging
import struct
from enum import Enum
from typing import Annotated, Any, NewType, TypeAliasType, get_origin

from annot.errors import NonStructuralAnnotationError
from annot.model import SourceLocation

logger = logging.getLogger(__name__)

_SCALAR_TYPES: tuple[type, ...] = (
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
)


def to_structural(value: Any, location: SourceLocation | None = None) -> Any:
    """Return ``value`` as a storable structural snapshot.

    Args:
        value: Candidate annotation value, already read from its source.
        location: Provenance used in diagnostics.

    Returns:
        The value itself; every admissible value is immutable, so the read
        that produced it is the snapshot.

    Raises:
        NonStructuralAnnotationError: If the value or any nested member is not
            structural.
    """
    reason = _non_structural_reason(value, path="value")
    if reason is not None:
        logger.debug(f"Rejected non-structural value (reason={reason})")
        raise NonStructuralAnnotationError(
            f"Annotation value is not structural: {reason}", location=location
        )
    return value


def is_structural(value: Any) -> bool:
    """Return whether ``value`` qualifies for attachment."""
    return _non_structural_reason(value, path="value") is None


def _non_structural_reason(value: Any, path: str) -> str | None:
    if isinstance(value, Enum):
        return None
    value_type = type(value)
    if value_type in _SCALAR_TYPES:
        return None
    if isinstance(value, (tuple, frozenset)):
        for index, item in enumerate(value):
            reason = _non_structural_reason(item, path=f"{path}[{index}]")
            if reason is not None:
                return reason
        return None
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        params = value_type.__dataclass_params__  # type: ignore[attr-defined]
        if not params.frozen:
            return f"{path} is a mutable dataclass {type_name(value_type)}"
        if not params.eq:
            return f"{path} is a dataclass {type_name(value_type)} without field equality"
        for field in dataclasses.fields(value):
            reason = _non_structural_reason(
                getattr(value, field.name), path=f"{path}.{field.name}"
            )
            if reason is not None:
                return reason
        return None
    return f"{path} has non-structural type {type_name(value_type)}"


def equivalent(left: Any, right: Any) -> bool:
    """Compare two structural values under template-argument equivalence.

    Values of different types are never equivalent. Floating point values are
    compared by bit pattern, so a NaN matches an identical NaN while ``0.0``
    and ``-0.0`` differ. Containers and frozen dataclasses compare member-wise.

    Args:
        left: First structural value.
        right: Second structural value.

    Returns:
        True when both values denote the same constant.
    """
    if type(left) is not type(right):
        return False
    if isinstance(left, Enum):
        return left is right
    if isinstance(left, float):
        return _float_bits(left) == _float_bits(right)
    if isinstance(left, complex):
        return _float_bits(left.real) == _float_bits(right.real) and _float_bits(
            left.imag
        ) == _float_bits(right.imag)
    if isinstance(left, tuple):
        return len(left) == len(right) and all(
            equivalent(a, b) for a, b in zip(left, right)
        )
    if isinstance(left, frozenset):
        return len(left) == len(right) and all(
            any(equivalent(a, b) for b in right) for a in left
        )
    if dataclasses.is_dataclass(left) and not isinstance(left, type):
        return all(
            equivalent(getattr(left, field.name), getattr(right, field.name))
            for field in dataclasses.fields(left)
        )
    return bool(left == right)


def _float_bits(value: float) -> bytes:
    return struct.pack("<d", value)


def dealias(tp: Any) -> Any:
    """Collapse alias spellings of a type to the type they name.

    ``type X = int`` aliases and ``Annotated[int, ...]`` both collapse to
    ``int``. ``NewType`` declarations name distinct types and are kept.
    """
    while True:
        if isinstance(tp, TypeAliasType):
            tp = tp.__value__
            continue
        if get_origin(tp) is Annotated:
            tp = tp.__origin__
            continue
        return tp


def runtime_class(tp: Any) -> Any:
    """Return the class that values recorded under ``tp`` are instances of."""
    tp = dealias(tp)
    while isinstance(tp, NewType):
        tp = dealias(tp.__supertype__)
    return tp


def type_name(tp: Any) -> str:
    """Render a type for diagnostics and output."""
    if isinstance(tp, type):
        if tp.__module__ == "builtins":
            return tp.__qualname__
        return f"{tp.__module__}.{tp.__qualname__}"
    name = getattr(tp, "__name__", None)
    if isinstance(name, str):
        return name
    return repr(tp)
