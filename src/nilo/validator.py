"""
Semantic validation of a desugared App.

Every check runs and every problem is collected, so one compilation reports
all statically detectable errors at once instead of stopping at the first.
"""

import logging
from collections import Counter
from typing import Dict, List, Optional, Set

import networkx as nx

from .errors import Diagnostic, SemanticError
from .expander import bind_arguments
from .graph import FlowGraph
from .models import (
    App,
    ButtonNode,
    ComponentCallNode,
    NavigateAction,
    walk,
)

logger = logging.getLogger(__name__)


class Validator:
    """Collects semantic errors for an App."""

    def __init__(self, app: App):
        self.app = app
        self.errors: List[SemanticError] = []
        self.timeline_names: Set[str] = {t.name for t in app.timelines}
        self.components = app.component_map()

    def validate(self) -> List[SemanticError]:
        self.errors = []
        self._check_duplicates()
        self._check_flows()
        self._check_bodies()
        self._check_component_cycles()
        logger.debug("Validation found %d error(s)", len(self.errors))
        return self.errors

    def _error(self, message: str, location: Optional[str] = None) -> None:
        self.errors.append(SemanticError(message, location))

    def _check_duplicates(self) -> None:
        for kind, names in (
            ("timeline", [t.name for t in self.app.timelines]),
            ("component", [c.name for c in self.app.components]),
        ):
            for name, count in Counter(names).items():
                if count > 1:
                    self._error(f"Duplicate {kind} definition '{name}' ({count} times)")

    def _check_flows(self) -> None:
        for flow in self.app.flows:
            location = f"flow (line {flow.line})" if flow.line else "flow"
            if flow.start not in self.timeline_names:
                self._error(f"Flow start '{flow.start}' is not a declared timeline", location)
            for transition in flow.transitions:
                for name in transition.sources + transition.targets:
                    if name not in self.timeline_names:
                        self._error(
                            f"Transition references undeclared timeline '{name}'",
                            f"line {transition.line}" if transition.line else location,
                        )

    def _check_nodes(self, nodes, location: str) -> None:
        for node in walk(nodes):
            if isinstance(node, NavigateAction) and node.target not in self.timeline_names:
                self._error(
                    f"navigate_to targets undeclared timeline '{node.target}'",
                    f"{location}, line {node.line}",
                )
            elif isinstance(node, ComponentCallNode):
                component = self.components.get(node.name)
                if component is None:
                    self._error(
                        f"Undefined component '{node.name}'", f"{location}, line {node.line}"
                    )
                    continue
                try:
                    bind_arguments(component, node)
                except SemanticError as exc:
                    self.errors.append(exc)

    def _check_bodies(self) -> None:
        for timeline in self.app.timelines:
            location = f"timeline {timeline.name}"
            self._check_nodes(timeline.body, location)
            for when in timeline.whens:
                self._check_nodes(when.actions, location)

        for component in self.app.components:
            location = f"component {component.name}"
            self._check_nodes(component.body, location)
            if component.whens:
                self._error(
                    "Event handlers inside components are not supported; "
                    "declare them in the calling timeline",
                    location,
                )

    def _check_component_cycles(self) -> None:
        calls = nx.DiGraph()
        for component in self.app.components:
            calls.add_node(component.name)
            for node in walk(component.body):
                if isinstance(node, ComponentCallNode) and node.name in self.components:
                    calls.add_edge(component.name, node.name)
        for cycle in nx.simple_cycles(calls):
            path = " -> ".join(cycle + [cycle[0]])
            self._error(f"Recursive component expansion: {path}")


def validate(app: App) -> List[SemanticError]:
    """
    Run every semantic check on an App.

    Args:
        app: Desugared application.

    Returns:
        List of SemanticError, empty when the app is valid.
    """
    return Validator(app).validate()


def collect_warnings(app: App) -> List[Diagnostic]:
    """
    Report suspicious but legal constructs.

    Returns:
        Warnings for timelines unreachable from the start timeline and for
        click handlers whose id matches no button in their timeline.
    """
    warnings: List[Diagnostic] = []

    if app.flows:
        graph = FlowGraph.from_flows(app.flows, [t.name for t in app.timelines])
        for name in graph.unreachable():
            warnings.append(
                Diagnostic.warning(f"Timeline '{name}' is unreachable from '{graph.start}'", name)
            )

    components = app.component_map()
    for timeline in app.timelines:
        button_ids = _button_ids(timeline.body, components, set())
        for when in timeline.whens:
            if when.event.target not in button_ids:
                warnings.append(
                    Diagnostic.warning(
                        f"Click handler for '{when.event.target}' matches no button",
                        timeline.name,
                    )
                )
    return warnings


def _button_ids(nodes, components: Dict, seen: Set[str]) -> Set[str]:
    ids: Set[str] = set()
    for node in walk(nodes):
        if isinstance(node, ButtonNode):
            ids.add(node.id)
        elif isinstance(node, ComponentCallNode) and node.name not in seen:
            component = components.get(node.name)
            if component is not None:
                ids |= _button_ids(component.body, components, seen | {node.name})
    return ids

