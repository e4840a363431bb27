# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
"""Static evaluation of annotation expressions from Python syntax trees."""

import ast
import logging
import operator
from collections.abc import Mapping
from typing import Any, Callable

from annot.errors import AnnotationError, ConstantEvaluationError
from annot.model import SourceLocation
from annot.store import AnnotationStore

logger = logging.getLogger(__name__)

BUILTIN_CONSTRUCTORS: dict[str, Any] = {
    "bool": bool,
    "bytes": bytes,
    "complex": complex,
    "float": float,
    "frozenset": frozenset,
    "int": int,
    "str": str,
    "tuple": tuple,
}

_BINARY_OPERATORS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.LShift: operator.lshift,
    ast.RShift: operator.rshift,
    ast.BitOr: operator.or_,
    ast.BitXor: operator.xor,
    ast.BitAnd: operator.and_,
}

_UNARY_OPERATORS: dict[type[ast.unaryop], Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Invert: operator.invert,
    ast.Not: operator.not_,
}

_COMPARISON_OPERATORS: dict[type[ast.cmpop], Callable[[Any, Any], Any]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda left, right: left in right,
    ast.NotIn: lambda left, right: left not in right,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}


class Scope:
    """Hold name bindings visible to annotation expressions.

    Bindings are the values names had when their assignment was elaborated;
    a later rebinding replaces the binding but never a value already read.
    """

    def __init__(self, parent: "Scope | None" = None) -> None:
        self._parent = parent
        self._values: dict[str, Any] = {}
        self._hidden: set[str] = set()

    def bind(self, name: str, value: Any) -> None:
        """Bind ``name`` to a constant value."""
        self._hidden.discard(name)
        self._values[name] = value

    def hide(self, name: str) -> None:
        """Mark ``name`` as bound to something that is not a constant."""
        self._values.pop(name, None)
        self._hidden.add(name)

    def lookup(self, name: str) -> tuple[bool, Any]:
        """Return ``(found, value)`` for ``name`` along the scope chain."""
        if name in self._values:
            return True, self._values[name]
        if name in self._hidden:
            return False, None
        if self._parent is not None:
            return self._parent.lookup(name)
        return False, None

    def child(self) -> "Scope":
        """Return a nested scope, as used for class bodies."""
        return Scope(parent=self)


class ConstantEvaluator:
    """Evaluate annotation expressions without running the analysed program."""

    def __init__(
        self,
        store: AnnotationStore,
        constructors: Mapping[str, Any] | None = None,
    ) -> None:
        """Initialize the evaluator.

        Args:
            store: Store whose evaluation guard wraps constructor calls.
            constructors: Extra names (structural classes, enums, modules,
                pure functions) that annotation expressions may reference.
        """
        self._store = store
        self._constructors = dict(constructors or {})

    def evaluate(self, node: ast.expr, scope: Scope, file_path: str) -> Any:
        """Evaluate ``node`` to a Python value.

        Args:
            node: Expression node.
            scope: Bindings visible at the expression.
            file_path: Source file used for error locations.

        Returns:
            The computed value. Structural admissibility is checked by the caller.

        Raises:
            ConstantEvaluationError: If the expression is not a compile-time constant.
        """
        return self._eval(node, scope, file_path)

    def _eval(self, node: ast.expr, scope: Scope, file_path: str) -> Any:
        if isinstance(node, ast.Constant):
            return node.value
        if isinstance(node, ast.Tuple):
            return tuple(self._eval(item, scope, file_path) for item in node.elts)
        if isinstance(node, ast.List):
            return [self._eval(item, scope, file_path) for item in node.elts]
        if isinstance(node, ast.Set):
            items = [self._eval(item, scope, file_path) for item in node.elts]
            return self._apply(node, file_path, set, items)
        if isinstance(node, ast.Dict):
            if any(key is None for key in node.keys):
                raise self._unsupported(node, file_path)
            pairs = [
                (self._eval(key, scope, file_path), self._eval(value, scope, file_path))
                for key, value in zip(node.keys, node.values)
                if key is not None
            ]
            return self._apply(node, file_path, dict, pairs)
        if isinstance(node, ast.Name):
            return self._eval_name(node, scope, file_path)
        if isinstance(node, ast.UnaryOp):
            unary = _UNARY_OPERATORS[type(node.op)]
            return self._apply(node, file_path, unary, self._eval(node.operand, scope, file_path))
        if isinstance(node, ast.BinOp):
            binary = _BINARY_OPERATORS.get(type(node.op))
            if binary is None:
                raise self._unsupported(node, file_path)
            left = self._eval(node.left, scope, file_path)
            right = self._eval(node.right, scope, file_path)
            return self._apply(node, file_path, binary, left, right)
        if isinstance(node, ast.BoolOp):
            result = self._eval(node.values[0], scope, file_path)
            for value in node.values[1:]:
                truth = self._apply(node, file_path, bool, result)
                if isinstance(node.op, ast.And) and not truth:
                    return result
                if isinstance(node.op, ast.Or) and truth:
                    return result
                result = self._eval(value, scope, file_path)
            return result
        if isinstance(node, ast.Compare):
            return self._eval_compare(node, scope, file_path)
        if isinstance(node, ast.IfExp):
            test = self._eval(node.test, scope, file_path)
            if self._apply(node, file_path, bool, test):
                return self._eval(node.body, scope, file_path)
            return self._eval(node.orelse, scope, file_path)
        if isinstance(node, ast.Attribute):
            return self._eval_attribute(node, scope, file_path)
        if isinstance(node, ast.Subscript):
            base = self._eval(node.value, scope, file_path)
            index = self._eval_index(node.slice, scope, file_path)
            return self._apply(node, file_path, operator.getitem, base, index)
        if isinstance(node, ast.Call):
            return self._eval_call(node, scope, file_path)
        raise self._unsupported(node, file_path)

    def _eval_name(self, node: ast.Name, scope: Scope, file_path: str) -> Any:
        found, value = scope.lookup(node.id)
        if found:
            return value
        if node.id in self._constructors:
            return self._constructors[node.id]
        if node.id in BUILTIN_CONSTRUCTORS:
            return BUILTIN_CONSTRUCTORS[node.id]
        raise ConstantEvaluationError(
            f"Name {node.id!r} is not a compile-time constant",
            location=_location(node, file_path),
        )

    def _eval_attribute(self, node: ast.Attribute, scope: Scope, file_path: str) -> Any:
        base = self._eval(node.value, scope, file_path)
        if node.attr.startswith("_"):
            raise ConstantEvaluationError(
                f"Private attribute {node.attr!r} cannot be read at compile time",
                location=_location(node, file_path),
            )
        return self._apply(node, file_path, getattr, base, node.attr)

    def _eval_index(self, node: ast.expr, scope: Scope, file_path: str) -> Any:
        if isinstance(node, ast.Slice):
            return slice(
                None if node.lower is None else self._eval(node.lower, scope, file_path),
                None if node.upper is None else self._eval(node.upper, scope, file_path),
                None if node.step is None else self._eval(node.step, scope, file_path),
            )
        return self._eval(node, scope, file_path)

    def _eval_compare(self, node: ast.Compare, scope: Scope, file_path: str) -> Any:
        left = self._eval(node.left, scope, file_path)
        for op, comparator in zip(node.ops, node.comparators):
            right = self._eval(comparator, scope, file_path)
            compare = _COMPARISON_OPERATORS[type(op)]
            outcome = self._apply(node, file_path, compare, left, right)
            if not self._apply(node, file_path, bool, outcome):
                return False
            left = right
        return True

    def _eval_call(self, node: ast.Call, scope: Scope, file_path: str) -> Any:
        function = self._eval(node.func, scope, file_path)
        if not callable(function):
            raise ConstantEvaluationError(
                f"Value of type {type(function).__name__} is not callable",
                location=_location(node, file_path),
            )
        args: list[Any] = []
        for arg in node.args:
            if isinstance(arg, ast.Starred):
                unpacked = self._eval(arg.value, scope, file_path)
                args.extend(self._apply(arg, file_path, list, unpacked))
            else:
                args.append(self._eval(arg, scope, file_path))
        kwargs: dict[str, Any] = {}
        for keyword in node.keywords:
            if keyword.arg is None:
                raise self._unsupported(keyword.value, file_path)
            kwargs[keyword.arg] = self._eval(keyword.value, scope, file_path)
        with self._store.evaluating():
            return self._apply(node, file_path, function, *args, **kwargs)

    def _apply(
        self,
        node: ast.expr,
        file_path: str,
        function: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        # User constructors and operator overloads may raise anything.
        try:
            return function(*args, **kwargs)
        except AnnotationError:
            raise
        except Exception as exc:
            raise ConstantEvaluationError(
                f"Evaluation failed: {type(exc).__name__}: {exc}",
                location=_location(node, file_path),
            ) from exc

    def _unsupported(self, node: ast.AST, file_path: str) -> ConstantEvaluationError:
        return ConstantEvaluationError(
            f"Unsupported expression in annotation: {type(node).__name__}",
            location=_location(node, file_path),
        )


def _location(node: ast.AST, file_path: str) -> SourceLocation:
    return SourceLocation(
        file_path=file_path,
        line=int(getattr(node, "lineno", 0)),
        column=int(getattr(node, "col_offset", 0)),
    )
