"""
Native function registry.

Source code may call host functions with ``name!(args)`` or, in a button's
``onclick``, ``name(args)``. Functions are registered on a NativeRegistry
instance that is passed to the engine, so independent engines (and tests)
each see their own set of functions.
"""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .errors import NativeCallError, SignatureMismatchError, UnknownFunctionError

logger = logging.getLogger(__name__)


@dataclass
class NativeFunction:
    """
    A registered host function.

    Attributes:
        name: Name used in source.
        func: The Python callable.
        min_args: Fewest arguments accepted.
        max_args: Most arguments accepted; None for variadic functions.
        types: Optional declared argument types, checked positionally.
        pass_state: Pass the state store as the first argument.
    """

    name: str
    func: Callable[..., Any]
    min_args: int
    max_args: Optional[int]
    types: Optional[Tuple[type, ...]] = None
    pass_state: bool = False

    @property
    def expected(self) -> str:
        if self.types is not None:
            names = ", ".join(t.__name__ for t in self.types)
            return f"{len(self.types)} argument(s) ({names})"
        if self.max_args is None:
            return f"at least {self.min_args} argument(s)"
        if self.min_args == self.max_args:
            return f"{self.min_args} argument(s)"
        return f"{self.min_args}-{self.max_args} argument(s)"


def _infer_arity(func: Callable[..., Any], skip: int) -> Tuple[int, Optional[int]]:
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return 0, None

    positional = [
        p
        for p in signature.parameters.values()
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
    ][skip:]
    variadic = any(p.kind == p.VAR_POSITIONAL for p in signature.parameters.values())
    required = sum(1 for p in positional if p.default is p.empty)
    return required, None if variadic else len(positional)


def _matches_type(value: Any, expected: type) -> bool:
    if expected is float:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected is int:
        return isinstance(value, int) and not isinstance(value, bool)
    return isinstance(value, expected)


class NativeRegistry:
    """Named host functions with signature checking."""

    def __init__(self):
        self._functions: Dict[str, NativeFunction] = {}

    def register(
        self,
        name: str,
        func: Optional[Callable[..., Any]] = None,
        types: Optional[Sequence[type]] = None,
        pass_state: bool = False,
    ):
        """
        Register a function, directly or as a decorator.

        Args:
            name: Name used in source.
            func: The callable. When omitted a decorator is returned.
            types: Declared argument types; the arity is then len(types).
                Otherwise the arity is inferred from the Python signature.
            pass_state: Pass the state store as the first argument.

        Example:
            registry.register("log_click", handler)

            @registry.register("add", types=(float, float))
            def add(a, b): ...
        """
        if func is None:

            def decorator(f: Callable[..., Any]) -> Callable[..., Any]:
                self.register(name, f, types=types, pass_state=pass_state)
                return f

            return decorator

        if not callable(func):
            raise ValueError(f"Native function '{name}' must be callable")

        if types is not None:
            type_tuple = tuple(types)
            min_args = max_args = len(type_tuple)
        else:
            type_tuple = None
            min_args, max_args = _infer_arity(func, 1 if pass_state else 0)

        self._functions[name] = NativeFunction(
            name, func, min_args, max_args, type_tuple, pass_state
        )
        logger.debug("Registered native function '%s'", name)
        return func

    def unregister(self, name: str) -> None:
        self._functions.pop(name, None)

    def has(self, name: str) -> bool:
        return name in self._functions

    def names(self) -> List[str]:
        return sorted(self._functions)

    def lookup(self, name: str) -> NativeFunction:
        try:
            return self._functions[name]
        except KeyError:
            raise UnknownFunctionError(name) from None

    def check(self, name: str, args: Sequence[Any]) -> NativeFunction:
        """
        Verify that args fit the registered signature.

        Raises:
            UnknownFunctionError: If name is not registered.
            SignatureMismatchError: On a wrong argument count or type.
        """
        function = self.lookup(name)
        count = len(args)
        if count < function.min_args or (
            function.max_args is not None and count > function.max_args
        ):
            raise SignatureMismatchError(name, function.expected, f"got {count} argument(s)")
        if function.types is not None:
            for position, (value, expected) in enumerate(zip(args, function.types)):
                if not _matches_type(value, expected):
                    raise SignatureMismatchError(
                        name,
                        function.expected,
                        f"argument {position + 1} is {type(value).__name__}, "
                        f"expected {expected.__name__}",
                    )
        return function

    def dispatch(self, name: str, args: Sequence[Any], state: Any = None) -> Any:
        """
        Call a registered function with already-evaluated arguments.

        Raises:
            UnknownFunctionError: If name is not registered.
            SignatureMismatchError: On a wrong argument count or type.
            NativeCallError: If the function itself raises.
        """
        function = self.check(name, args)
        call_args = [state, *args] if function.pass_state else list(args)
        try:
            return function.func(*call_args)
        except NativeCallError:
            raise
        except Exception as exc:
            raise NativeCallError(f"Native function '{name}' failed: {exc}") from exc

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    def __len__(self) -> int:
        return len(self._functions)
