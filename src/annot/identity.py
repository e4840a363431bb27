# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Declaration identity arena with redeclaration and alias resolution."""

import dataclasses
import itertools
import logging
import threading
from dataclasses import dataclass

from annot.errors import UnknownDeclarationError
from annot.model import DeclarationId, DeclarationKind, SourceLocation

logger = logging.getLogger(__name__)

_TABLE_TOKENS = itertools.count(1)


@dataclass(frozen=True)
class Declaration:
    """Represent one logical declared entity.

    Attributes:
        identity: Stable identity shared by all redeclarations.
        kind: Declarative construct kind.
        module: Dotted module name owning the declaration.
        qualname: Qualified name inside the module; empty for the module itself.
        sites: Locations of every declaration seen, in elaboration order.
    """

    identity: DeclarationId
    kind: DeclarationKind
    module: str
    qualname: str
    sites: tuple[SourceLocation, ...]

    @property
    def location(self) -> SourceLocation:
        """Return the location of the first declaration."""
        return self.sites[0]

    @property
    def path(self) -> str:
        """Return the ``module:qualname`` spelling of this declaration."""
        return f"{self.module}:{self.qualname}" if self.qualname else self.module


@dataclass(frozen=True)
class _AliasTarget:
    module: str
    name: str


class DeclarationTable:
    """Allocate and resolve declaration identities for one compilation."""

    def __init__(self) -> None:
        self._token = next(_TABLE_TOKENS)
        self._entries: list[Declaration] = []
        self._by_key: dict[tuple[str, str, DeclarationKind], DeclarationId] = {}
        self._bindings: dict[tuple[str, str], DeclarationId | _AliasTarget] = {}
        self._lock = threading.Lock()

    @property
    def token(self) -> int:
        """Return the token stamped on every identity of this table."""
        return self._token

    def declare(
        self,
        kind: DeclarationKind,
        module: str,
        qualname: str,
        location: SourceLocation,
    ) -> DeclarationId:
        """Declare an entity, or redeclare an existing one.

        Args:
            kind: Declarative construct kind.
            module: Dotted module name.
            qualname: Qualified name inside the module; empty for the module.
            location: Location of this declaration.

        Returns:
            The existing identity for a redeclaration, otherwise a new one.
        """
        key = (module, qualname, kind)
        with self._lock:
            identity = self._by_key.get(key)
            if identity is None:
                identity = DeclarationId(table=self._token, index=len(self._entries))
                self._entries.append(
                    Declaration(
                        identity=identity,
                        kind=kind,
                        module=module,
                        qualname=qualname,
                        sites=(location,),
                    )
                )
                self._by_key[key] = identity
                logger.debug(
                    f"Declared entity (identity={identity} kind={kind.value} module={module} qualname={qualname})"
                )
            else:
                entry = self._entries[identity.index]
                if location not in entry.sites:
                    self._entries[identity.index] = dataclasses.replace(
                        entry, sites=entry.sites + (location,)
                    )
                    logger.debug(
                        f"Redeclared entity (identity={identity} location={location})"
                    )
            self._bindings[(module, qualname)] = identity
        return identity

    def alias(self, module: str, name: str, target_module: str, target_name: str) -> None:
        """Bind ``name`` in ``module`` to another declaration's name.

        Args:
            module: Module where the alias is written.
            name: Alias name.
            target_module: Module of the aliased declaration.
            target_name: Qualified name of the aliased declaration; empty for a module.
        """
        with self._lock:
            self._bindings[(module, name)] = _AliasTarget(
                module=target_module, name=target_name
            )

    def resolve(self, module: str, name: str) -> DeclarationId:
        """Resolve a name, following aliases and member access.

        Args:
            module: Module the name is looked up from.
            name: Dotted name such as ``Outer.method``; empty for the module.

        Returns:
            Identity of the declared entity.

        Raises:
            UnknownDeclarationError: If the name denotes no declaration.
        """
        identity = self._resolve(module, name, visited=set())
        if identity is None:
            raise UnknownDeclarationError(
                f"No declaration named {name or '<module>'!r} in module {module!r}"
            )
        return identity

    def resolve_path(self, path: str) -> DeclarationId:
        """Resolve a ``module:qualname`` path."""
        module, _, name = path.partition(":")
        return self.resolve(module, name)

    def _resolve(
        self, module: str, name: str, visited: set[tuple[str, str]]
    ) -> DeclarationId | None:
        key = (module, name)
        if key in visited:
            logger.warning(f"Alias cycle detected (module={module} name={name})")
            return None
        visited.add(key)
        binding = self._bindings.get(key)
        if isinstance(binding, DeclarationId):
            return binding
        if isinstance(binding, _AliasTarget):
            return self._resolve(binding.module, binding.name, visited)
        if "." not in name:
            submodule = self._bindings.get((f"{module}.{name}" if module else name, ""))
            return submodule if isinstance(submodule, DeclarationId) else None
        head, _, rest = name.rpartition(".")
        owner_id = self._resolve(module, head, visited)
        if owner_id is None:
            return None
        owner = self._entries[owner_id.index]
        member = f"{owner.qualname}.{rest}" if owner.qualname else rest
        if (owner.module, member) == key:
            return None
        return self._resolve(owner.module, member, visited)

    def get(self, identity: DeclarationId) -> Declaration:
        """Return the declaration behind ``identity``.

        Raises:
            UnknownDeclarationError: If the identity was not issued by this table.
        """
        if not self.is_live(identity):
            raise UnknownDeclarationError(
                f"Declaration identity {identity} is not live in this compilation"
            )
        return self._entries[identity.index]

    def is_live(self, identity: object) -> bool:
        """Return whether ``identity`` was issued by this table."""
        return (
            isinstance(identity, DeclarationId)
            and identity.table == self._token
            and 0 <= identity.index < len(self._entries)
        )

    def declarations(self) -> tuple[Declaration, ...]:
        """Return every declaration in allocation order."""
        with self._lock:
            return tuple(self._entries)
