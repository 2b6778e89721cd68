"""
Application state store.

The engine reads and writes state only through the StateStore protocol, so
an embedding host can supply its own store. AppState is the default
dict-backed implementation.

Paths are dotted strings (``user.name``) or segment sequences; a leading
``state`` segment is accepted and ignored. Numeric segments index lists.
Resolution is strict: a missing intermediate segment raises
UnresolvedPathError rather than defaulting.
"""

import copy
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

from .errors import (
    IndexOutOfBoundsError,
    ItemNotFoundError,
    NotAListError,
    StateTypeError,
    UnresolvedPathError,
)

PathLike = Union[str, Sequence[str]]


class StateStore(Protocol):
    """Path-based contract between the engine and the host's state."""

    def get(self, path: PathLike) -> Any: ...

    def set(self, path: PathLike, value: Any) -> None: ...

    def toggle(self, path: PathLike) -> bool: ...

    def append(self, path: PathLike, value: Any) -> None: ...

    def insert(self, path: PathLike, index: int, value: Any) -> None: ...

    def remove(self, path: PathLike, value: Any) -> None: ...

    def clear(self, path: PathLike) -> None: ...

    def snapshot(self) -> Any: ...

    def restore(self, snapshot: Any) -> None: ...


def split_path(path: PathLike) -> Tuple[str, ...]:
    """Normalize a path to its segments without the ``state`` root."""
    segments = tuple(path.split(".")) if isinstance(path, str) else tuple(path)
    if segments and segments[0] == "state":
        segments = segments[1:]
    return segments


def _dotted(segments: Sequence[str]) -> str:
    return ".".join(("state",) + tuple(segments))


class AppState:
    """Dict-backed StateStore."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    # Resolution

    def _step(self, container: Any, segment: str, segments: Sequence[str]) -> Any:
        if isinstance(container, dict):
            if segment not in container:
                raise UnresolvedPathError(_dotted(segments), segment)
            return container[segment]
        if isinstance(container, list) and segment.isdigit():
            index = int(segment)
            if index >= len(container):
                raise UnresolvedPathError(_dotted(segments), segment)
            return container[index]
        raise UnresolvedPathError(_dotted(segments), segment)

    def get(self, path: PathLike) -> Any:
        """
        Resolve a path.

        Raises:
            UnresolvedPathError: If any segment does not exist.
        """
        segments = split_path(path)
        value: Any = self.data
        for segment in segments:
            value = self._step(value, segment, segments)
        return value

    def has(self, path: PathLike) -> bool:
        try:
            self.get(path)
        except UnresolvedPathError:
            return False
        return True

    def _parent(self, segments: Sequence[str]) -> Any:
        if not segments:
            raise UnresolvedPathError("state", "")
        value: Any = self.data
        for segment in segments[:-1]:
            value = self._step(value, segment, segments)
        return value

    def _list(self, path: PathLike) -> Tuple[List[Any], str]:
        segments = split_path(path)
        value = self.get(segments)
        if not isinstance(value, list):
            raise NotAListError(_dotted(segments), value)
        return value, _dotted(segments)

    # Mutation

    def set(self, path: PathLike, value: Any) -> None:
        """
        Assign a value. The parent must exist; the last segment is created
        on objects and must be in range on lists.
        """
        segments = split_path(path)
        parent = self._parent(segments)
        last = segments[-1]
        if isinstance(parent, dict):
            parent[last] = value
        elif isinstance(parent, list) and last.isdigit() and int(last) < len(parent):
            parent[int(last)] = value
        else:
            raise UnresolvedPathError(_dotted(segments), last)

    def toggle(self, path: PathLike) -> bool:
        segments = split_path(path)
        current = self.get(segments)
        if not isinstance(current, bool):
            raise StateTypeError(
                f"Cannot toggle '{_dotted(segments)}': not a boolean "
                f"(found {type(current).__name__})"
            )
        self.set(segments, not current)
        return not current

    def append(self, path: PathLike, value: Any) -> None:
        items, _ = self._list(path)
        items.append(value)

    def insert(self, path: PathLike, index: int, value: Any) -> None:
        """Insert before index; index == len(list) appends."""
        items, dotted = self._list(path)
        if isinstance(index, bool) or not isinstance(index, int):
            if isinstance(index, float) and index.is_integer():
                index = int(index)
            else:
                raise StateTypeError(f"List index for '{dotted}' must be an integer, got {index!r}")
        if index < 0 or index > len(items):
            raise IndexOutOfBoundsError(dotted, index, len(items))
        items.insert(index, value)

    def remove(self, path: PathLike, value: Any) -> None:
        """Remove the first element equal to value."""
        items, dotted = self._list(path)
        try:
            items.remove(value)
        except ValueError:
            raise ItemNotFoundError(dotted, value) from None

    def clear(self, path: PathLike) -> None:
        items, _ = self._list(path)
        items.clear()

    # Transactions

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self.data)

    def restore(self, snapshot: Dict[str, Any]) -> None:
        self.data = copy.deepcopy(snapshot)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.data)

    def __repr__(self) -> str:
        return f"AppState({self.data!r})"
