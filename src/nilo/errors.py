"""
Error types for Nilo compilation, evaluation, navigation and dispatch.

Errors fall into five families:
1. ParseError - malformed source, fatal to the file being compiled
2. SemanticError / SemanticErrors - statically detectable problems,
   collected and raised together after parsing
3. EvaluationError and subclasses - runtime failures while resolving
   state paths, interpolating text or mutating lists
4. NavigationError - an illegal flow transition
5. NativeCallError and subclasses - native function dispatch failures

Runtime, navigation and dispatch errors never abort a tick. The engine
catches them and reports them as Diagnostic records.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence


class NiloError(Exception):
    """Base exception for all Nilo errors."""

    pass


class ParseError(NiloError):
    """Raised when source text cannot be parsed."""

    def __init__(self, message: str, line: int = 0, column: int = 0):
        self.message = message
        self.line = line
        self.column = column
        if line:
            super().__init__(f"Line {line}, column {column}: {message}")
        else:
            super().__init__(message)


class SemanticError(NiloError):
    """
    A single statically detectable problem.

    Examples:
    - Duplicate timeline or component definitions
    - Transitions referencing undeclared timelines
    - Calls to undefined components
    - Missing required component parameters or enum mismatches
    """

    def __init__(self, message: str, location: Optional[str] = None):
        self.message = message
        self.location = location
        if location:
            super().__init__(f"{location}: {message}")
        else:
            super().__init__(message)


class SemanticErrors(NiloError):
    """Raised once with every semantic error found in a compilation unit."""

    def __init__(self, errors: Sequence[SemanticError]):
        self.errors: List[SemanticError] = list(errors)
        lines = [f"{len(self.errors)} semantic error(s):"]
        lines.extend(f"  - {error}" for error in self.errors)
        super().__init__("\n".join(lines))


class EvaluationError(NiloError):
    """Raised when an expression cannot be evaluated against state."""

    pass


class UnresolvedPathError(EvaluationError):
    """A path segment does not exist in the state or scope."""

    def __init__(self, path: str, segment: str):
        self.path = path
        self.segment = segment
        super().__init__(f"Unresolved path '{path}': no field '{segment}'")


class InterpolationError(EvaluationError):
    """Placeholder count does not match the number of arguments."""

    def __init__(self, template: str, expected: int, actual: int):
        self.template = template
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Interpolation of {template!r} expects {expected} argument(s), "
            f"got {actual}"
        )


class StateTypeError(EvaluationError):
    """A state value has the wrong type for the requested operation."""

    pass


class NotAListError(StateTypeError):
    """A list operation or length query targeted a non-list field."""

    def __init__(self, path: str, actual: object):
        self.path = path
        super().__init__(
            f"'{path}' is not a list (found {type(actual).__name__})"
        )


class IndexOutOfBoundsError(EvaluationError):
    """A list insert targeted an index past the end of the list."""

    def __init__(self, path: str, index: int, length: int):
        self.path = path
        self.index = index
        self.length = length
        super().__init__(
            f"Index {index} out of bounds for '{path}' (length {length})"
        )


class ItemNotFoundError(EvaluationError):
    """A list remove targeted a value that the list does not contain."""

    def __init__(self, path: str, item: object):
        self.path = path
        self.item = item
        super().__init__(f"Item {item!r} not found in '{path}'")


class MatchError(EvaluationError):
    """No match arm applied and no default arm exists."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"No match arm for value {value!r} and no default")


class NavigationError(NiloError):
    """Raised when a navigation is rejected by the flow."""

    def __init__(self, current: str, target: str, reason: str):
        self.current = current
        self.target = target
        self.reason = reason
        super().__init__(
            f"Cannot navigate from '{current}' to '{target}': {reason}"
        )


class NativeCallError(NiloError):
    """Base class for native function dispatch failures."""

    pass


class UnknownFunctionError(NativeCallError):
    """No handler is registered under the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Native function '{name}' is not registered")


class SignatureMismatchError(NativeCallError):
    """Argument count or types do not match the registered signature."""

    def __init__(self, name: str, expected: str, detail: str):
        self.name = name
        self.expected = expected
        super().__init__(
            f"Native function '{name}' expects {expected}: {detail}"
        )


class AssetError(NiloError):
    """An image asset could not be located or read."""

    pass


class StyleError(NiloError):
    """A style value could not be resolved."""

    pass


class DiagnosticLevel(Enum):
    """Severity of a reported diagnostic."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class Diagnostic:
    """
    A reported problem on the diagnostic channel.

    Attributes:
        level: Severity of the problem.
        message: Human-readable description.
        location: Optional node id, timeline name or source location.
    """

    level: DiagnosticLevel
    message: str
    location: Optional[str] = None

    @classmethod
    def error(cls, message: str, location: Optional[str] = None) -> "Diagnostic":
        return cls(DiagnosticLevel.ERROR, message, location)

    @classmethod
    def warning(cls, message: str, location: Optional[str] = None) -> "Diagnostic":
        return cls(DiagnosticLevel.WARNING, message, location)

    def __str__(self) -> str:
        where = f" [{self.location}]" if self.location else ""
        return f"{self.level.value}{where}: {self.message}"
