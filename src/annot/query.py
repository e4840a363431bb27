# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Read-only queries over the annotation store."""

import logging
from typing import Any, TypeVar, overload

from annot.errors import AmbiguousAnnotationError
from annot.model import AnnotationRecord, DeclarationId
from annot.store import AnnotationStore
from annot.structural import dealias, equivalent, type_name

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QueryEngine:
    """Answer annotation queries for declaration identities.

    Every query reads a fresh snapshot of the store; nothing is cached and
    nothing is written, so results do not depend on query order.
    """

    def __init__(self, store: AnnotationStore) -> None:
        self._store = store

    def all_annotations(self, identity: DeclarationId) -> tuple[AnnotationRecord, ...]:
        """Return every annotation of a declaration in accumulation order.

        Args:
            identity: Declaration to inspect.

        Returns:
            Ordered records; empty when the declaration has none.

        Raises:
            UnknownDeclarationError: If the identity is not live.
        """
        return self._store.records(identity)

    def annotations_of_type(
        self, identity: DeclarationId, value_type: Any
    ) -> tuple[AnnotationRecord, ...]:
        """Return annotations recorded under exactly ``value_type``.

        No conversion, subclass matching or dealiasing is applied.

        Args:
            identity: Declaration to inspect.
            value_type: Type to match.

        Returns:
            Matching records in accumulation order.
        """
        return tuple(
            record
            for record in self._store.records(identity)
            if record.value_type == value_type
        )

    @overload
    def single_annotation_of_type(
        self, identity: DeclarationId, value_type: type[T]
    ) -> T | None: ...

    @overload
    def single_annotation_of_type(
        self, identity: DeclarationId, value_type: Any
    ) -> Any: ...

    def single_annotation_of_type(self, identity: DeclarationId, value_type: Any) -> Any:
        """Return the one value of ``value_type`` annotated on a declaration.

        Types are compared after dealiasing both sides. Several matches are
        accepted only when all values are equivalent.

        Args:
            identity: Declaration to inspect.
            value_type: Type to match.

        Returns:
            The value, or ``None`` when no annotation matches.

        Raises:
            AmbiguousAnnotationError: If matches hold unequal values.
            UnknownDeclarationError: If the identity is not live.
        """
        matches = self._typed_matches(identity, value_type)
        if not matches:
            return None
        first = matches[0].value
        if all(equivalent(first, record.value) for record in matches[1:]):
            return first
        logger.debug(
            f"Ambiguous typed annotation query (identity={identity} type={type_name(value_type)} matches={len(matches)})"
        )
        raise AmbiguousAnnotationError(
            f"Declaration has {len(matches)} unequal annotations of type {type_name(value_type)}",
            records=matches,
        )

    def has_annotation_of_type(self, identity: DeclarationId, value_type: Any) -> bool:
        """Return whether any annotation matches ``value_type`` after dealiasing."""
        return bool(self._typed_matches(identity, value_type))

    def _typed_matches(
        self, identity: DeclarationId, value_type: Any
    ) -> tuple[AnnotationRecord, ...]:
        wanted = dealias(value_type)
        return tuple(
            record
            for record in self._store.records(identity)
            if dealias(record.value_type) == wanted
        )
