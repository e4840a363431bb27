# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Error taxonomy for annotation association, validation and queries."""

import logging

from annot.model import AnnotationRecord, SourceLocation

logger = logging.getLogger(__name__)


class AnnotationError(RuntimeError):
    """Represent a build-time annotation failure.

    Attributes:
        location: Source location of the offending annotation, when known.
    """

    def __init__(self, message: str, location: SourceLocation | None = None) -> None:
        self.location = location
        if location is not None:
            message = f"{location}: {message}"
        super().__init__(message)


class NonStructuralAnnotationError(AnnotationError):
    """Represent a value that cannot be compared by content."""


class NoApplicableConstructError(AnnotationError):
    """Represent an annotation with no declaration to appertain to."""


class IllegalAppertainanceError(AnnotationError):
    """Represent an annotation written on a type specifier."""


class MixedAttributeGroupError(AnnotationError):
    """Represent annotations mixed into a vendor-prefixed attribute group."""


class UnknownDeclarationError(AnnotationError):
    """Represent a stale, foreign or unresolvable declaration identity."""


class AnnotationTypeMismatchError(AnnotationError):
    """Represent a recorded value whose type differs from the declared one."""


class ReentrantAnnotationError(AnnotationError):
    """Represent programmatic insertion while another value is evaluated."""


class ConstantEvaluationError(AnnotationError):
    """Represent an annotation expression that cannot be evaluated statically."""


class AmbiguousAnnotationError(AnnotationError):
    """Represent a typed singleton query with unequal candidates.

    Attributes:
        records: Every record that matched the queried type.
    """

    def __init__(self, message: str, records: tuple[AnnotationRecord, ...]) -> None:
        self.records = records
        locations = ", ".join(str(record.location) for record in records)
        super().__init__(
            f"{message} (candidates at {locations})",
            location=records[0].location if records else None,
        )

    @property
    def locations(self) -> tuple[SourceLocation, ...]:
        """Return the source locations of all conflicting records."""
        return tuple(record.location for record in self.records)
