# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Public import surface for declaration annotations."""

from annot.compilation import Compilation
from annot.errors import (
    AmbiguousAnnotationError,
    AnnotationError,
    AnnotationTypeMismatchError,
    ConstantEvaluationError,
    IllegalAppertainanceError,
    MixedAttributeGroupError,
    NoApplicableConstructError,
    NonStructuralAnnotationError,
    ReentrantAnnotationError,
    UnknownDeclarationError,
)
from annot.identity import Declaration, DeclarationTable
from annot.markers import attr, meta
from annot.model import (
    AnnotationRecord,
    DeclarationId,
    DeclarationKind,
    SourceLocation,
    is_annotation,
)
from annot.placement import (
    AttributeGroup,
    AttributeItem,
    Placement,
    PlacementValidator,
    Position,
)
from annot.query import QueryEngine
from annot.store import AnnotationStore
from annot.structural import dealias, equivalent, is_structural, to_structural

__all__ = [
    "AmbiguousAnnotationError",
    "AnnotationError",
    "AnnotationRecord",
    "AnnotationStore",
    "AnnotationTypeMismatchError",
    "AttributeGroup",
    "AttributeItem",
    "Compilation",
    "ConstantEvaluationError",
    "Declaration",
    "DeclarationId",
    "DeclarationKind",
    "DeclarationTable",
    "IllegalAppertainanceError",
    "MixedAttributeGroupError",
    "NoApplicableConstructError",
    "NonStructuralAnnotationError",
    "Placement",
    "PlacementValidator",
    "Position",
    "QueryEngine",
    "ReentrantAnnotationError",
    "SourceLocation",
    "UnknownDeclarationError",
    "attr",
    "dealias",
    "equivalent",
    "is_annotation",
    "is_structural",
    "meta",
    "to_structural",
]
