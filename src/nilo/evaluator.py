"""
Expression evaluation against application state.

Paths rooted at ``state`` resolve through the StateStore; any other root
must be a loop variable in the current scope. Resolution is strict and
left to right. Calls dispatch through the injected NativeRegistry.
"""

import logging
import operator
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from .errors import (
    EvaluationError,
    InterpolationError,
    MatchError,
    NotAListError,
    UnknownFunctionError,
    UnresolvedPathError,
)
from .models import (
    Absent,
    ArrayExpr,
    BinaryOp,
    Call,
    Expr,
    Len,
    Literal,
    MatchExpr,
    Member,
    ObjectExpr,
    Path,
    UnaryOp,
)
from .native import NativeRegistry
from .state import StateStore
from .style import Dimension

logger = logging.getLogger(__name__)

PLACEHOLDER = "{}"

Scope = Mapping[str, Any]

COMPARISONS: Dict[str, Callable[[Any, Any], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def format_value(value: Any) -> str:
    """Render an evaluated value as display text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, list):
        return ", ".join(format_value(v) for v in value)
    return str(value)


def interpolate(template: str, values: Sequence[Any]) -> str:
    """
    Substitute values for ``{}`` placeholders positionally.

    Raises:
        InterpolationError: If the placeholder count differs from len(values).
    """
    pieces = template.split(PLACEHOLDER)
    expected = len(pieces) - 1
    if expected != len(values):
        raise InterpolationError(template, expected, len(values))
    out = [pieces[0]]
    for value, piece in zip(values, pieces[1:]):
        out.append(format_value(value))
        out.append(piece)
    return "".join(out)


def truthy(value: Any) -> bool:
    """Condition semantics for ``if``: empty and zero values are false."""
    if isinstance(value, Dimension):
        return value.value != 0
    return bool(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _describe(expr: Expr) -> str:
    if isinstance(expr, Path):
        return expr.dotted
    if isinstance(expr, Member):
        return f"{_describe(expr.base)}.{'.'.join(expr.segments)}"
    return type(expr).__name__


class Evaluator:
    """
    Evaluates expressions.

    Args:
        state: State store read by ``state.`` paths.
        registry: Native functions available to calls.
    """

    def __init__(self, state: StateStore, registry: Optional[NativeRegistry] = None):
        self.state = state
        self.registry = registry

    def evaluate(self, expr: Expr, scope: Optional[Scope] = None) -> Any:
        """
        Evaluate an expression.

        Args:
            expr: Expression node.
            scope: Loop variables visible to the expression.

        Returns:
            A string, number, boolean, Dimension, list, dict or None (for
            an absent optional parameter).

        Raises:
            EvaluationError: Or one of its subclasses on failure.
            NativeCallError: If a call cannot be dispatched.
        """
        scope = scope or {}

        if isinstance(expr, Literal):
            return expr.value
        if isinstance(expr, Absent):
            return None
        if isinstance(expr, Path):
            return self._resolve_path(expr, scope)
        if isinstance(expr, Member):
            base = self.evaluate(expr.base, scope)
            return self._walk(base, expr.segments, _describe(expr))
        if isinstance(expr, ArrayExpr):
            return [self.evaluate(item, scope) for item in expr.items]
        if isinstance(expr, ObjectExpr):
            return {key: self.evaluate(value, scope) for key, value in expr.entries}
        if isinstance(expr, BinaryOp):
            left = self.evaluate(expr.left, scope)
            return self._binary(expr.op, left, self.evaluate(expr.right, scope))
        if isinstance(expr, UnaryOp):
            return self._negate(self.evaluate(expr.operand, scope))
        if isinstance(expr, Len):
            value = self.evaluate(expr.target, scope)
            if not isinstance(value, list):
                raise NotAListError(_describe(expr.target), value)
            return len(value)
        if isinstance(expr, MatchExpr):
            return self._match(expr, scope)
        if isinstance(expr, Call):
            return self.call(expr, scope)

        raise EvaluationError(f"Cannot evaluate {type(expr).__name__}")

    def truthy(self, expr: Expr, scope: Optional[Scope] = None) -> bool:
        return truthy(self.evaluate(expr, scope))

    def format_text(self, template: str, args: Sequence[Expr], scope: Optional[Scope] = None) -> str:
        """Evaluate args and interpolate them into template."""
        return interpolate(template, [self.evaluate(arg, scope) for arg in args])

    def call(self, call: Call, scope: Optional[Scope] = None) -> Any:
        if self.registry is None:
            raise UnknownFunctionError(call.name)
        args = [self.evaluate(arg, scope) for arg in call.args]
        return self.registry.dispatch(call.name, args, self.state)

    # Paths

    def _resolve_path(self, path: Path, scope: Scope) -> Any:
        if path.root in scope:
            return self._walk(scope[path.root], path.segments[1:], path.dotted)
        if path.is_state:
            if len(path.segments) == 1:
                raise UnresolvedPathError(path.dotted, "state")
            return self.state.get(path.segments[1:])
        raise UnresolvedPathError(path.dotted, path.root)

    @staticmethod
    def _walk(value: Any, segments: Sequence[str], dotted: str) -> Any:
        for segment in segments:
            if isinstance(value, dict) and segment in value:
                value = value[segment]
            elif isinstance(value, list) and segment.isdigit() and int(segment) < len(value):
                value = value[int(segment)]
            else:
                raise UnresolvedPathError(dotted, segment)
        return value

    # Operators

    def _binary(self, op: str, left: Any, right: Any) -> Any:
        if op == "==":
            return left == right
        if op == "!=":
            return left != right
        if op in COMPARISONS:
            if _is_number(left) and _is_number(right) or (
                isinstance(left, str) and isinstance(right, str)
            ):
                return COMPARISONS[op](left, right)
            raise EvaluationError(
                f"Cannot compare {type(left).__name__} and {type(right).__name__} with '{op}'"
            )
        if op == "+" and (isinstance(left, str) or isinstance(right, str)):
            return format_value(left) + format_value(right)
        if op == "+" and isinstance(left, list) and isinstance(right, list):
            return left + right
        if isinstance(left, Dimension) or isinstance(right, Dimension):
            return self._dimension_arithmetic(op, left, right)
        if not (_is_number(left) and _is_number(right)):
            raise EvaluationError(
                f"Operator '{op}' needs numbers, got {type(left).__name__} "
                f"and {type(right).__name__}"
            )
        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op == "/":
            if right == 0:
                raise EvaluationError("Division by zero")
            if isinstance(left, int) and isinstance(right, int) and left % right == 0:
                return left // right
            return left / right
        raise EvaluationError(f"Unknown operator '{op}'")

    def _dimension_arithmetic(self, op: str, left: Any, right: Any) -> Dimension:
        if isinstance(left, Dimension) and isinstance(right, Dimension):
            if left.unit != right.unit or op not in ("+", "-"):
                raise EvaluationError(f"Cannot apply '{op}' to {left} and {right}")
            value = left.value + right.value if op == "+" else left.value - right.value
            return Dimension(value, left.unit)
        dim, number = (left, right) if isinstance(left, Dimension) else (right, left)
        if not _is_number(number) or op not in ("*", "/") or (op == "/" and dim is right):
            raise EvaluationError(f"Cannot apply '{op}' to {left!r} and {right!r}")
        if op == "/":
            if number == 0:
                raise EvaluationError("Division by zero")
            return Dimension(dim.value / number, dim.unit)
        return Dimension(dim.value * number, dim.unit)

    @staticmethod
    def _negate(value: Any) -> Any:
        if _is_number(value):
            return -value
        if isinstance(value, Dimension):
            return Dimension(-value.value, value.unit)
        raise EvaluationError(f"Cannot negate {type(value).__name__}")

    def _match(self, expr: MatchExpr, scope: Scope) -> Any:
        subject = self.evaluate(expr.subject, scope)
        for arm in expr.arms:
            if self.evaluate(arm.pattern, scope) == subject:
                return self.evaluate(arm.value, scope)
        if expr.default is not None:
            return self.evaluate(expr.default, scope)
        raise MatchError(subject)
