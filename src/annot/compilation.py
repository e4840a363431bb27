# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Compilation facade tying identities, storage, queries and validation."""

import logging
from typing import Any

from annot.identity import Declaration, DeclarationTable
from annot.model import AnnotationRecord, DeclarationId, DeclarationKind, SourceLocation
from annot.placement import AttributeItem, Placement, PlacementValidator
from annot.query import QueryEngine
from annot.store import AnnotationStore

logger = logging.getLogger(__name__)


class Compilation:
    """Hold the annotation state of one compilation unit.

    Attributes:
        declarations: Arena of declared entities.
        store: Append-only annotation store.
        queries: Read API over the store.
        validator: Placement rules.
    """

    def __init__(self, validator: PlacementValidator | None = None) -> None:
        self.declarations = DeclarationTable()
        self.store = AnnotationStore(self.declarations)
        self.queries = QueryEngine(self.store)
        self.validator = validator or PlacementValidator()

    def declare(
        self,
        kind: DeclarationKind,
        module: str,
        qualname: str,
        location: SourceLocation,
    ) -> DeclarationId:
        """Declare or redeclare an entity; see ``DeclarationTable.declare``."""
        return self.declarations.declare(kind, module, qualname, location)

    def resolve(self, module: str, name: str = "") -> DeclarationId:
        """Resolve a name to its declaration identity."""
        return self.declarations.resolve(module, name)

    def declaration(self, identity: DeclarationId) -> Declaration:
        """Return the declaration behind an identity."""
        return self.declarations.get(identity)

    def validate(self, placement: Placement) -> tuple[AttributeItem, ...]:
        """Validate where attribute groups were written."""
        return self.validator.validate(placement)

    def record(
        self,
        identity: DeclarationId,
        value_type: Any,
        value: Any,
        location: SourceLocation,
    ) -> AnnotationRecord:
        """Append a validated annotation."""
        return self.store.record(identity, value_type, value, location)

    def annotate(
        self,
        identity: DeclarationId,
        value: Any,
        location: SourceLocation,
        value_type: Any = None,
    ) -> AnnotationRecord:
        """Attach a value from tool code."""
        return self.store.annotate(identity, value, location, value_type=value_type)

    def all_annotations(self, identity: DeclarationId) -> tuple[AnnotationRecord, ...]:
        return self.queries.all_annotations(identity)

    def annotations_of_type(
        self, identity: DeclarationId, value_type: Any
    ) -> tuple[AnnotationRecord, ...]:
        return self.queries.annotations_of_type(identity, value_type)

    def single_annotation_of_type(self, identity: DeclarationId, value_type: Any) -> Any:
        return self.queries.single_annotation_of_type(identity, value_type)

    def has_annotation_of_type(self, identity: DeclarationId, value_type: Any) -> bool:
        return self.queries.has_annotation_of_type(identity, value_type)
