# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Source markers for writing annotations in Python code.

The markers are inert when the annotated program runs: decorators return
their target unchanged and nothing is registered. Annotations are read by
``annot.frontends.python`` from source.

Example::

    from typing import Annotated
    from annot.markers import attr, meta

    @meta(Option(name="verbose"), attr("deprecated"))
    def run() -> None: ...

    retries: Annotated[int, meta(3)] = 3
"""

from dataclasses import dataclass
from typing import Any, TypeVar

_Target = TypeVar("_Target")


@dataclass(frozen=True)
class Attr:
    """Represent a plain, non value-carrying attribute."""

    name: str


@dataclass(frozen=True)
class Meta:
    """Represent one attribute group written in source."""

    items: tuple[Any, ...]
    using: str | None = None

    def __call__(self, target: _Target) -> _Target:
        return target


def meta(*items: Any, using: str | None = None) -> Meta:
    """Build an attribute group; non-``attr`` items are annotation values."""
    return Meta(items=items, using=using)


def attr(name: str) -> Attr:
    """Build a plain attribute item."""
    return Attr(name=name)
