# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Append-only annotation store keyed by declaration identity."""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from annot.errors import AnnotationTypeMismatchError, ReentrantAnnotationError
from annot.identity import DeclarationTable
from annot.model import AnnotationRecord, DeclarationId, SourceLocation
from annot.structural import runtime_class, to_structural, type_name

logger = logging.getLogger(__name__)


class AnnotationStore:
    """Own every annotation record of one compilation.

    Records are appended in elaboration order and never mutated or removed.
    Writes are serialised, so concurrent elaboration of independent
    declarations cannot corrupt any identity's sequence.
    """

    def __init__(self, declarations: DeclarationTable) -> None:
        """Initialize an empty store.

        Args:
            declarations: Arena whose identities are accepted as keys.
        """
        self._declarations = declarations
        self._records: dict[DeclarationId, list[AnnotationRecord]] = {}
        self._elaborated: set[tuple[DeclarationId, SourceLocation]] = set()
        self._lock = threading.Lock()
        self._evaluation = threading.local()

    def record(
        self,
        identity: DeclarationId,
        value_type: Any,
        value: Any,
        location: SourceLocation,
    ) -> AnnotationRecord:
        """Append one validated annotation to a declaration.

        Args:
            identity: Annotated declaration.
            value_type: Type the value is recorded under; may be an alias.
            value: Structural value.
            location: Provenance of the annotation.

        Returns:
            Handle of the appended record.

        Raises:
            UnknownDeclarationError: If the identity is not live.
            AnnotationTypeMismatchError: If ``value`` is not exactly of ``value_type``.
        """
        declaration = self._declarations.get(identity)
        expected = runtime_class(value_type)
        if type(value) is not expected:
            raise AnnotationTypeMismatchError(
                f"Value of type {type_name(type(value))} cannot be recorded as {type_name(value_type)}",
                location=location,
            )
        with self._lock:
            sequence = self._records.setdefault(identity, [])
            record = AnnotationRecord(
                owner=identity,
                value_type=value_type,
                value=value,
                location=location,
                ordinal=len(sequence),
            )
            sequence.append(record)
        logger.debug(
            f"Recorded annotation (declaration={declaration.path} type={type_name(value_type)} ordinal={record.ordinal} location={location})"
        )
        return record

    def annotate(
        self,
        identity: DeclarationId,
        value: Any,
        location: SourceLocation,
        value_type: Any = None,
    ) -> AnnotationRecord:
        """Attach a value to a declaration from tool code.

        Follows the same accumulation rule as annotations written in source.

        Args:
            identity: Annotated declaration.
            value: Candidate value; checked for structural admissibility.
            location: Deterministic provenance reported in diagnostics.
            value_type: Optional type to record under; defaults to ``type(value)``.

        Returns:
            Handle of the appended record.

        Raises:
            ReentrantAnnotationError: If called while an annotation value is evaluated.
            NonStructuralAnnotationError: If the value is not structural.
            UnknownDeclarationError: If the identity is not live.
        """
        if self.is_evaluating():
            raise ReentrantAnnotationError(
                "Annotations cannot be added while another annotation value is being evaluated",
                location=location,
            )
        snapshot = to_structural(value, location=location)
        return self.record(
            identity,
            type(snapshot) if value_type is None else value_type,
            snapshot,
            location,
        )

    def elaborate(self, identity: DeclarationId, site: SourceLocation) -> bool:
        """Mark one declaration site as elaborated.

        Args:
            identity: Declared entity.
            site: Location of the declaration text.

        Returns:
            False when the same site was already elaborated, in which case its
            annotations must not be appended again.
        """
        self._declarations.get(identity)
        key = (identity, site)
        with self._lock:
            if key in self._elaborated:
                logger.debug(
                    f"Skipping already elaborated declaration (identity={identity} site={site})"
                )
                return False
            self._elaborated.add(key)
        return True

    def records(self, identity: DeclarationId) -> tuple[AnnotationRecord, ...]:
        """Return the ordered records of one declaration.

        Raises:
            UnknownDeclarationError: If the identity is not live.
        """
        self._declarations.get(identity)
        with self._lock:
            return tuple(self._records.get(identity, ()))

    @contextmanager
    def evaluating(self) -> Iterator[None]:
        """Mark the current thread as evaluating an annotation value."""
        depth = getattr(self._evaluation, "depth", 0)
        self._evaluation.depth = depth + 1
        try:
            yield
        finally:
            self._evaluation.depth = depth

    def is_evaluating(self) -> bool:
        """Return whether the current thread is evaluating an annotation value."""
        return getattr(self._evaluation, "depth", 0) > 0
