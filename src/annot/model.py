# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Domain models for declarations and annotation records."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class DeclarationKind(str, Enum):
    """Enumerate the declarative constructs tracked by the arena."""

    NAMESPACE = "namespace"
    TYPE = "type"
    TYPE_ALIAS = "type_alias"
    FUNCTION = "function"
    VARIABLE = "variable"
    MEMBER_VARIABLE = "member_variable"
    ENUMERATOR = "enumerator"


ANNOTATABLE_KINDS: frozenset[DeclarationKind] = frozenset(DeclarationKind)


@dataclass(frozen=True, order=True)
class SourceLocation:
    """Represent a position in a source file.

    Attributes:
        file_path: Project-relative source file path, or a tool label.
        line: Line number (1-based).
        column: Column offset (0-based).
    """

    file_path: str
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        return f"{self.file_path}:{self.line}:{self.column}"


@dataclass(frozen=True, order=True)
class DeclarationId:
    """Identify one logical declared entity across its redeclarations.

    Attributes:
        table: Token of the declaration table that allocated this id.
        index: Slot of the entity in that table.
    """

    table: int
    index: int

    def __str__(self) -> str:
        return f"decl#{self.table}.{self.index}"


@dataclass(frozen=True)
class AnnotationRecord:
    """Represent one annotation attached to a declaration.

    Attributes:
        owner: Identity of the annotated declaration.
        value_type: Type the value was recorded under.
        value: Structural value.
        location: Provenance of the annotation.
        ordinal: Position in the owner's sequence (0-based).
    """

    owner: DeclarationId
    value_type: Any
    value: Any
    location: SourceLocation
    ordinal: int


def is_annotation(candidate: object) -> bool:
    """Return whether ``candidate`` is a handle to an annotation record."""
    return isinstance(candidate, AnnotationRecord)
