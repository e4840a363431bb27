# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Appertainment rules deciding where annotations may be written."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from annot.errors import (
    IllegalAppertainanceError,
    MixedAttributeGroupError,
    NoApplicableConstructError,
)
from annot.model import ANNOTATABLE_KINDS, DeclarationKind, SourceLocation

logger = logging.getLogger(__name__)


class Position(str, Enum):
    """Enumerate syntactic positions an attribute group can occur in."""

    DECLARATION = "declaration"
    TYPE_SPECIFIER = "type_specifier"
    STATEMENT = "statement"


@dataclass(frozen=True)
class AttributeItem:
    """Represent one item of an attribute group.

    Attributes:
        location: Location of the item.
        expression: Unevaluated annotation value; unused for plain attributes.
        name: Name of a plain attribute; ``None`` for annotations.
    """

    location: SourceLocation
    expression: Any = None
    name: str | None = None

    @property
    def is_annotation(self) -> bool:
        """Return whether the item carries an annotation value."""
        return self.name is None


@dataclass(frozen=True)
class AttributeGroup:
    """Represent one attribute group, such as a single ``@meta(...)`` decorator.

    Attributes:
        items: Items in left-to-right order.
        location: Location of the group.
        using: Vendor prefix applied to every item, if any.
    """

    items: tuple[AttributeItem, ...]
    location: SourceLocation
    using: str | None = None


@dataclass(frozen=True)
class Placement:
    """Describe where a sequence of attribute groups was written.

    Attributes:
        construct: Declaration kind the groups would appertain to, if any.
        position: Syntactic position of the groups.
        groups: Groups in textual order.
        location: Location of the construct or statement.
    """

    construct: DeclarationKind | None
    position: Position
    groups: tuple[AttributeGroup, ...]
    location: SourceLocation


class PlacementValidator:
    """Accept or reject attribute groups before any value is evaluated."""

    def __init__(self, annotatable: frozenset[DeclarationKind] = ANNOTATABLE_KINDS) -> None:
        self._annotatable = annotatable

    def validate(self, placement: Placement) -> tuple[AttributeItem, ...]:
        """Validate a placement.

        Args:
            placement: Attribute groups and their syntactic position.

        Returns:
            Annotation items in application order: groups in textual order,
            items left to right.

        Raises:
            MixedAttributeGroupError: If a vendor-prefixed group holds annotations.
            IllegalAppertainanceError: If annotations sit on a type specifier.
            NoApplicableConstructError: If annotations have no annotatable construct.
        """
        annotations: list[AttributeItem] = []
        for group in placement.groups:
            group_annotations = [item for item in group.items if item.is_annotation]
            if group.using is not None and group_annotations:
                raise MixedAttributeGroupError(
                    f"Annotations cannot appear in an attribute group prefixed with using={group.using!r}",
                    location=group_annotations[0].location,
                )
            annotations.extend(group_annotations)
        if not annotations:
            return ()
        first = annotations[0].location
        if placement.position is Position.TYPE_SPECIFIER:
            raise IllegalAppertainanceError(
                "Annotations cannot appertain to a type specifier", location=first
            )
        if placement.position is Position.STATEMENT or placement.construct is None:
            raise NoApplicableConstructError(
                "Annotation does not appertain to any declaration", location=first
            )
        if placement.construct not in self._annotatable:
            raise NoApplicableConstructError(
                f"Declarations of kind {placement.construct.value} cannot be annotated",
                location=first,
            )
        return tuple(annotations)
