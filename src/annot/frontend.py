# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Frontend interfaces and DTOs for elaborating annotated sources."""

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from annot.errors import AnnotationError
from annot.ignore import IgnoreMatcher
from annot.model import DeclarationId, DeclarationKind, SourceLocation


@dataclass(frozen=True)
class ElaboratedDeclaration:
    """Represent one declaration site processed by a frontend.

    Attributes:
        identity: Identity shared by all redeclarations of the entity.
        kind: Declarative construct kind.
        module: Dotted module name.
        qualname: Qualified name inside the module; empty for the module.
        location: Location of this declaration site.
        annotation_count: Annotations recorded from this site.
    """

    identity: DeclarationId
    kind: DeclarationKind
    module: str
    qualname: str
    location: SourceLocation
    annotation_count: int


@dataclass(frozen=True)
class Diagnostic:
    """Represent a build-time failure reported for one file or declaration."""

    file_path: str
    message: str
    line: int = 0
    column: int = 0
    error: str = "SourceError"

    @classmethod
    def from_error(cls, error: AnnotationError, file_path: str) -> "Diagnostic":
        """Build a diagnostic from an annotation error."""
        location = error.location or SourceLocation(file_path=file_path)
        return cls(
            file_path=location.file_path,
            message=str(error),
            line=location.line,
            column=location.column,
            error=type(error).__name__,
        )


@dataclass(frozen=True)
class FrontendOptions:
    """Configure the source spellings a frontend recognises.

    Attributes:
        marker: Name of the attribute group constructor.
        attribute: Name of the plain attribute constructor.
        namespace_marker: Module-level name whose value annotates the module.
        annotated: Names of the ``Annotated`` type constructor.
        enum_bases: Base class names that make a class body hold enumerators.
    """

    marker: str = "meta"
    attribute: str = "attr"
    namespace_marker: str = "__meta__"
    annotated: frozenset[str] = frozenset({"Annotated"})
    enum_bases: frozenset[str] = frozenset(
        {"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"}
    )


class Frontend(Protocol):
    """Language-agnostic source frontend contract."""

    def analyze(
        self, root_path: Path, ignore: IgnoreMatcher | None = None
    ) -> tuple[list[ElaboratedDeclaration], list[Diagnostic]]:
        """Elaborate a project root and return declarations and diagnostics."""
