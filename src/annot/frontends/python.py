# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Python source frontend: elaborate declarations and their annotations."""

import ast
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

from annot.compilation import Compilation
from annot.errors import AnnotationError, UnknownDeclarationError
from annot.evaluator import ConstantEvaluator, Scope
from annot.frontend import Diagnostic, ElaboratedDeclaration, FrontendOptions
from annot.ignore import IgnoreMatcher, iter_source_files
from annot.model import DeclarationKind, SourceLocation
from annot.placement import AttributeGroup, AttributeItem, Placement, Position
from annot.structural import to_structural

logger = logging.getLogger(__name__)

_ALIASABLE_KINDS: frozenset[DeclarationKind] = frozenset(
    {
        DeclarationKind.NAMESPACE,
        DeclarationKind.TYPE,
        DeclarationKind.TYPE_ALIAS,
        DeclarationKind.FUNCTION,
    }
)


@dataclass(frozen=True)
class _BodyContext:
    prefix: str
    scope: Scope
    container: str


class PythonFrontend:
    """Elaborate Python files into declarations and annotation records."""

    def __init__(
        self,
        compilation: Compilation,
        constructors: Mapping[str, Any] | None = None,
        options: FrontendOptions | None = None,
    ) -> None:
        """Initialize the frontend.

        Args:
            compilation: Compilation receiving declarations and annotations.
            constructors: Names annotation expressions may call or reference,
                such as structural dataclasses and enums.
            options: Recognised source spellings.
        """
        self._compilation = compilation
        self._evaluator = ConstantEvaluator(compilation.store, constructors)
        self._options = options or FrontendOptions()

    def analyze(
        self, root_path: Path, ignore: IgnoreMatcher | None = None
    ) -> tuple[list[ElaboratedDeclaration], list[Diagnostic]]:
        """Elaborate Python files beneath the provided root path.

        Args:
            root_path: Root directory to analyze.
            ignore: Optional matcher for files to skip.

        Returns:
            A tuple of elaborated declaration sites and diagnostics.
        """
        declarations: list[ElaboratedDeclaration] = []
        diagnostics: list[Diagnostic] = []

        for file_path in iter_source_files(root_path, suffix=".py", ignore=ignore):
            relative_path = file_path.relative_to(root_path).as_posix()
            try:
                source = file_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning(
                    f"Skipping file due to read failure (file_path={relative_path} error={exc})",
                )
                diagnostics.append(Diagnostic(file_path=relative_path, message=str(exc)))
                continue
            module, is_package = _module_name(relative_path, root_path.name)
            found, problems = self.analyze_source(
                source, module=module, file_path=relative_path, is_package=is_package
            )
            declarations.extend(found)
            diagnostics.extend(problems)

        return declarations, diagnostics

    def analyze_source(
        self,
        source: str,
        module: str,
        file_path: str,
        is_package: bool = False,
    ) -> tuple[list[ElaboratedDeclaration], list[Diagnostic]]:
        """Elaborate one module's source text.

        Args:
            source: Python source code.
            module: Dotted module name.
            file_path: Path reported in locations.
            is_package: Whether the source is a package ``__init__`` module.

        Returns:
            A tuple of elaborated declaration sites and diagnostics.
        """
        try:
            tree = ast.parse(source, filename=file_path)
        except (SyntaxError, ValueError) as exc:
            logger.warning(
                f"Skipping file due to parse failure (file_path={file_path} error={exc})",
            )
            return [], [
                Diagnostic(
                    file_path=file_path,
                    message=str(exc),
                    line=int(getattr(exc, "lineno", 0) or 0),
                    error=type(exc).__name__,
                )
            ]
        elaborator = _ModuleElaborator(
            compilation=self._compilation,
            evaluator=self._evaluator,
            options=self._options,
            module=module,
            file_path=file_path,
            is_package=is_package,
        )
        elaborator.run(tree)
        logger.info(
            f"Elaborated module (module={module} declarations={len(elaborator.declarations)} diagnostics={len(elaborator.diagnostics)})"
        )
        return elaborator.declarations, elaborator.diagnostics


class _ModuleElaborator:
    """Walk one module body in source order."""

    def __init__(
        self,
        compilation: Compilation,
        evaluator: ConstantEvaluator,
        options: FrontendOptions,
        module: str,
        file_path: str,
        is_package: bool,
    ) -> None:
        self._compilation = compilation
        self._evaluator = evaluator
        self._options = options
        self._module = module
        self._file_path = file_path
        self._is_package = is_package
        self.declarations: list[ElaboratedDeclaration] = []
        self.diagnostics: list[Diagnostic] = []

    def run(self, tree: ast.Module) -> None:
        self._elaborate(
            kind=DeclarationKind.NAMESPACE,
            qualname="",
            site=SourceLocation(file_path=self._file_path, line=0, column=0),
            groups=(),
            scope=Scope(),
        )
        self._walk(tree.body, _BodyContext(prefix="", scope=Scope(), container="module"))

    def _walk(self, body: list[ast.stmt], context: _BodyContext) -> None:
        for node in body:
            if isinstance(node, ast.ClassDef):
                self._visit_class(node, context)
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self._visit_function(node, context)
            elif isinstance(node, ast.AnnAssign):
                self._visit_ann_assign(node, context)
            elif isinstance(node, ast.Assign):
                self._visit_assign(node, context)
            elif isinstance(node, ast.TypeAlias):
                self._visit_type_alias(node, context)
            elif isinstance(node, (ast.Import, ast.ImportFrom)):
                self._visit_import(node, context)
            elif isinstance(node, ast.If):
                self._walk(node.body, context)
                self._walk(node.orelse, context)
            elif isinstance(node, (ast.Try, ast.TryStar)):
                self._walk(node.body, context)
                for handler in node.handlers:
                    self._walk(handler.body, context)
                self._walk(node.orelse, context)
                self._walk(node.finalbody, context)
            elif isinstance(node, (ast.With, ast.AsyncWith)):
                self._reject_statement(*[item.context_expr for item in node.items])
                self._walk(node.body, context)
            elif isinstance(node, (ast.For, ast.AsyncFor, ast.While)):
                self._walk(node.body, context)
                self._walk(node.orelse, context)
            elif isinstance(node, ast.Match):
                self._reject_statement(node.subject)
                for case in node.cases:
                    self._walk(case.body, context)
            elif isinstance(node, ast.Expr) and self._is_marker(node.value):
                self._reject_statement(node.value)

    def _visit_class(self, node: ast.ClassDef, context: _BodyContext) -> None:
        qualname = _qualify(context.prefix, node.name)
        self._elaborate(
            kind=DeclarationKind.TYPE,
            qualname=qualname,
            site=self._location(node),
            groups=self._decorator_groups(node.decorator_list),
            scope=context.scope,
            type_groups=self._marker_groups(*node.bases, *[kw.value for kw in node.keywords]),
        )
        self._reject_statement(*self._plain_decorators(node.decorator_list))
        context.scope.hide(node.name)
        container = "enum" if self._is_enum(node) else "class"
        self._walk(
            node.body,
            _BodyContext(prefix=qualname, scope=context.scope.child(), container=container),
        )

    def _visit_function(
        self, node: ast.FunctionDef | ast.AsyncFunctionDef, context: _BodyContext
    ) -> None:
        arguments = node.args
        parameters = [
            *arguments.posonlyargs,
            *arguments.args,
            *arguments.kwonlyargs,
            *([arguments.vararg] if arguments.vararg else []),
            *([arguments.kwarg] if arguments.kwarg else []),
        ]
        type_expressions = [p.annotation for p in parameters if p.annotation is not None]
        if node.returns is not None:
            type_expressions.append(node.returns)
        self._elaborate(
            kind=DeclarationKind.FUNCTION,
            qualname=_qualify(context.prefix, node.name),
            site=self._location(node),
            groups=self._decorator_groups(node.decorator_list),
            scope=context.scope,
            type_groups=self._marker_groups(*type_expressions),
        )
        self._reject_statement(*self._plain_decorators(node.decorator_list))
        self._reject_statement(*arguments.defaults, *arguments.kw_defaults)
        context.scope.hide(node.name)

    def _visit_ann_assign(self, node: ast.AnnAssign, context: _BodyContext) -> None:
        if not isinstance(node.target, ast.Name):
            self._reject_statement(node.annotation, node.value)
            return
        name = node.target.id
        groups, type_groups = self._split_annotated(node.annotation)
        self._elaborate(
            kind=self._variable_kind(name, context),
            qualname=_qualify(context.prefix, name),
            site=self._location(node),
            groups=groups,
            scope=context.scope,
            type_groups=type_groups,
            statement_groups=self._marker_groups(node.value),
        )
        self._bind(name, node.value, context)

    def _visit_assign(self, node: ast.Assign, context: _BodyContext) -> None:
        names = [target.id for target in node.targets if isinstance(target, ast.Name)]
        if (
            context.container == "module"
            and names == [self._options.namespace_marker]
            and len(node.targets) == 1
        ):
            self._elaborate(
                kind=DeclarationKind.NAMESPACE,
                qualname="",
                site=self._location(node),
                groups=self._namespace_groups(node.value),
                scope=context.scope,
            )
            items = node.value.elts if isinstance(node.value, ast.Tuple) else [node.value]
            self._reject_statement(*[item for item in items if not self._is_marker(item)])
            return
        if self._contains_marker(node.value):
            self._reject_statement(node.value)
            return
        if len(names) != len(node.targets):
            return
        for name in names:
            if self._try_alias(name, node.value, context):
                continue
            self._elaborate(
                kind=self._variable_kind(name, context),
                qualname=_qualify(context.prefix, name),
                site=self._location(node),
                groups=(),
                scope=context.scope,
            )
            self._bind(name, node.value, context)

    def _visit_type_alias(self, node: ast.TypeAlias, context: _BodyContext) -> None:
        name = node.name.id
        self._elaborate(
            kind=DeclarationKind.TYPE_ALIAS,
            qualname=_qualify(context.prefix, name),
            site=self._location(node),
            groups=(),
            scope=context.scope,
            type_groups=self._marker_groups(node.value),
        )
        context.scope.hide(name)

    def _visit_import(self, node: ast.Import | ast.ImportFrom, context: _BodyContext) -> None:
        if isinstance(node, ast.Import):
            for alias in node.names:
                if alias.asname:
                    bound, target = alias.asname, alias.name
                else:
                    bound = target = alias.name.split(".")[0]
                self._compilation.declarations.alias(
                    self._module, _qualify(context.prefix, bound), target, ""
                )
                context.scope.hide(bound)
            return
        base = self._import_base(node)
        for alias in node.names:
            if alias.name == "*":
                continue
            bound = alias.asname or alias.name
            self._compilation.declarations.alias(
                self._module, _qualify(context.prefix, bound), base, alias.name
            )
            context.scope.hide(bound)

    def _import_base(self, node: ast.ImportFrom) -> str:
        if node.level == 0:
            return node.module or ""
        parts = self._module.split(".") if self._module else []
        if not self._is_package:
            parts = parts[:-1]
        if node.level > 1:
            parts = parts[: len(parts) - (node.level - 1)]
        if node.module:
            parts.append(node.module)
        return ".".join(parts)

    def _try_alias(self, name: str, value: ast.expr, context: _BodyContext) -> bool:
        dotted = _dotted_name(value)
        if dotted is None:
            return False
        declarations = self._compilation.declarations
        candidates = [_qualify(context.prefix, dotted), dotted] if context.prefix else [dotted]
        for candidate in candidates:
            try:
                identity = declarations.resolve(self._module, candidate)
            except UnknownDeclarationError:
                continue
            target = declarations.get(identity)
            if target.kind not in _ALIASABLE_KINDS:
                return False
            declarations.alias(
                self._module, _qualify(context.prefix, name), target.module, target.qualname
            )
            context.scope.hide(name)
            logger.debug(
                f"Registered alias (module={self._module} name={name} target={target.path})"
            )
            return True
        return False

    def _elaborate(
        self,
        kind: DeclarationKind,
        qualname: str,
        site: SourceLocation,
        groups: tuple[AttributeGroup, ...],
        scope: Scope,
        type_groups: tuple[AttributeGroup, ...] = (),
        statement_groups: tuple[AttributeGroup, ...] = (),
    ) -> None:
        identity = self._compilation.declare(kind, self._module, qualname, site)
        if not self._compilation.store.elaborate(identity, site):
            return
        values: list[tuple[AttributeItem, Any]] = []
        try:
            self._compilation.validate(
                Placement(kind, Position.TYPE_SPECIFIER, type_groups, site)
            )
            self._compilation.validate(
                Placement(None, Position.STATEMENT, statement_groups, site)
            )
            items = self._compilation.validate(
                Placement(kind, Position.DECLARATION, groups, site)
            )
            for item in items:
                value = self._evaluator.evaluate(item.expression, scope, self._file_path)
                values.append((item, to_structural(value, location=item.location)))
        except AnnotationError as exc:
            self._report(exc)
            values = []
        for item, value in values:
            self._compilation.record(identity, type(value), value, item.location)
        self.declarations.append(
            ElaboratedDeclaration(
                identity=identity,
                kind=kind,
                module=self._module,
                qualname=qualname,
                location=site,
                annotation_count=len(values),
            )
        )

    def _reject_statement(self, *nodes: ast.expr | None) -> None:
        groups = self._marker_groups(*nodes)
        if not groups:
            return
        try:
            self._compilation.validate(
                Placement(None, Position.STATEMENT, groups, groups[0].location)
            )
        except AnnotationError as exc:
            self._report(exc)

    def _report(self, error: AnnotationError) -> None:
        logger.warning(
            f"Rejected declaration annotations (error={type(error).__name__} message={error})"
        )
        self.diagnostics.append(Diagnostic.from_error(error, self._file_path))

    def _bind(self, name: str, value: ast.expr | None, context: _BodyContext) -> None:
        if value is None:
            context.scope.hide(name)
            return
        try:
            context.scope.bind(
                name, self._evaluator.evaluate(value, context.scope, self._file_path)
            )
        except AnnotationError:
            context.scope.hide(name)

    def _variable_kind(self, name: str, context: _BodyContext) -> DeclarationKind:
        if context.container == "enum" and not name.startswith("_"):
            return DeclarationKind.ENUMERATOR
        if context.container in {"class", "enum"}:
            return DeclarationKind.MEMBER_VARIABLE
        return DeclarationKind.VARIABLE

    def _is_enum(self, node: ast.ClassDef) -> bool:
        for base in node.bases:
            dotted = _dotted_name(base)
            if dotted is not None and dotted.rsplit(".", 1)[-1] in self._options.enum_bases:
                return True
        return False

    def _is_marker(self, node: ast.AST | None) -> bool:
        return _is_call_to(node, self._options.marker)

    def _contains_marker(self, node: ast.AST | None) -> bool:
        return node is not None and any(self._is_marker(child) for child in ast.walk(node))

    def _decorator_groups(self, decorators: list[ast.expr]) -> tuple[AttributeGroup, ...]:
        return tuple(
            self._group(decorator) for decorator in decorators if self._is_marker(decorator)
        )

    def _plain_decorators(self, decorators: list[ast.expr]) -> list[ast.expr]:
        return [decorator for decorator in decorators if not self._is_marker(decorator)]

    def _namespace_groups(self, value: ast.expr) -> tuple[AttributeGroup, ...]:
        if isinstance(value, ast.Tuple):
            return tuple(self._group(item) for item in value.elts if self._is_marker(item))
        return (self._group(value),) if self._is_marker(value) else ()

    def _split_annotated(
        self, annotation: ast.expr
    ) -> tuple[tuple[AttributeGroup, ...], tuple[AttributeGroup, ...]]:
        """Split a declared type into declaration groups and type-specifier groups.

        Only ``meta`` calls listed directly in the metadata of an outermost
        ``Annotated[...]`` appertain to the declared entity; any other
        ``meta`` call inside the type is written on a type specifier.
        """
        if not (
            isinstance(annotation, ast.Subscript)
            and _terminal_name(annotation.value) in self._options.annotated
            and isinstance(annotation.slice, ast.Tuple)
        ):
            return (), self._marker_groups(annotation)
        declared, *metadata = annotation.slice.elts
        groups = tuple(self._group(item) for item in metadata if self._is_marker(item))
        others = [item for item in metadata if not self._is_marker(item)]
        return groups, self._marker_groups(declared, *others)

    def _marker_groups(self, *nodes: ast.expr | None) -> tuple[AttributeGroup, ...]:
        groups: list[AttributeGroup] = []
        for node in nodes:
            if node is None:
                continue
            groups.extend(
                self._group(child) for child in ast.walk(node) if self._is_marker(child)
            )
        return tuple(groups)

    def _group(self, node: ast.expr) -> AttributeGroup:
        call = cast(ast.Call, node)
        items: list[AttributeItem] = []
        for arg in call.args:
            location = self._location(arg)
            if _is_call_to(arg, self._options.attribute):
                items.append(AttributeItem(location=location, name=_attribute_name(arg)))
            else:
                items.append(AttributeItem(location=location, expression=arg))
        using: str | None = None
        for keyword in call.keywords:
            if keyword.arg == "using":
                if isinstance(keyword.value, ast.Constant) and isinstance(
                    keyword.value.value, str
                ):
                    using = keyword.value.value
                elif not (
                    isinstance(keyword.value, ast.Constant) and keyword.value.value is None
                ):
                    using = ast.unparse(keyword.value)
        return AttributeGroup(items=tuple(items), location=self._location(call), using=using)

    def _location(self, node: ast.AST) -> SourceLocation:
        return SourceLocation(
            file_path=self._file_path,
            line=int(getattr(node, "lineno", 0)),
            column=int(getattr(node, "col_offset", 0)),
        )


def _module_name(relative_path: str, root_name: str) -> tuple[str, bool]:
    parts = relative_path[: -len(".py")].split("/")
    is_package = parts[-1] == "__init__"
    if is_package:
        parts = parts[:-1]
    return (".".join(parts) or root_name), is_package


def _qualify(prefix: str, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name


def _terminal_name(node: ast.expr) -> str | None:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


def _dotted_name(node: ast.expr) -> str | None:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        base = _dotted_name(node.value)
        return f"{base}.{node.attr}" if base is not None else None
    return None


def _is_call_to(node: ast.AST | None, name: str) -> bool:
    return isinstance(node, ast.Call) and _terminal_name(node.func) == name


def _attribute_name(call: ast.Call) -> str:
    if call.args and isinstance(call.args[0], ast.Constant):
        return str(call.args[0].value)
    return ast.unparse(call)
