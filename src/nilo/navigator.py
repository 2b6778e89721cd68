"""
Flow navigation state machine.

States are qualified timeline names. A navigation from the current
timeline C to T succeeds iff the flow graph has the edge (C, T); a
rejected navigation raises NavigationError and leaves the current timeline
unchanged.
"""

import logging
from typing import List, Optional

from .errors import NavigationError
from .graph import FlowGraph
from .models import App

logger = logging.getLogger(__name__)


class FlowNavigator:
    """Tracks the active timeline and enforces declared transitions."""

    def __init__(self, graph: FlowGraph, start: Optional[str] = None):
        self.graph = graph
        initial = start if start is not None else graph.start
        if initial is None:
            raise ValueError("Navigator needs a start timeline")
        self._current = initial
        self._history: List[str] = [initial]

    @classmethod
    def from_app(cls, app: App) -> "FlowNavigator":
        """
        Build a navigator for a compiled app.

        The start is the first flow's start, or the first timeline when the
        app declares no flow.
        """
        graph = FlowGraph.from_flows(app.flows, [t.name for t in app.timelines])
        start = app.start
        if start is None and app.timelines:
            start = app.timelines[0].name
        return cls(graph, start)

    @property
    def current(self) -> str:
        return self._current

    @property
    def history(self) -> List[str]:
        """Timelines visited, oldest first, including the current one."""
        return list(self._history)

    def can_navigate(self, target: str) -> bool:
        return self.graph.has_edge(self._current, target)

    def navigate_to(self, target: str) -> str:
        """
        Switch to target.

        Args:
            target: Qualified timeline name.

        Returns:
            The new current timeline.

        Raises:
            NavigationError: If target is undeclared or no edge leads there.
        """
        if target not in self.graph:
            raise NavigationError(self._current, target, "timeline is not declared")
        if not self.can_navigate(target):
            allowed = ", ".join(self.graph.successors(self._current)) or "none"
            raise NavigationError(
                self._current, target, f"no such transition (allowed: {allowed})"
            )

        logger.info("Navigating %s -> %s", self._current, target)
        self._current = target
        self._history.append(target)
        return target

    def reset(self) -> None:
        """Return to the start timeline and forget the history."""
        self._current = self._history[0]
        self._history = [self._current]
