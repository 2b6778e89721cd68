"""
Namespace desugaring pass.

Runs after parsing and turns a ParseResult into an App whose names are all
fully qualified:

- ``flow NS { start: A; A -> B }`` becomes the Flow that would have been
  written by hand as ``flow { start: NS::A; NS::A -> NS::B }``.
- A transition endpoint naming a namespaced flow stands for that flow's
  start timeline.
- ``namespace NS { ... }`` prefixes the timelines and components it
  contains with ``NS::``.
- Inside a qualified timeline or component, unqualified ``navigate_to``
  targets and component calls resolve to the enclosing namespace first,
  then to the global scope.
"""

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Set, Tuple

from .models import (
    App,
    Component,
    ComponentCallNode,
    Flow,
    NamespacedFlow,
    NavigateAction,
    Timeline,
    Transition,
    ViewNode,
    When,
    map_bodies,
)
from .parser import ParseResult

logger = logging.getLogger(__name__)

SEPARATOR = "::"


def qualify(namespace: str, name: str) -> str:
    """Prefix name with namespace unless it is already qualified."""
    if SEPARATOR in name or not namespace:
        return name
    return f"{namespace}{SEPARATOR}{name}"


def namespace_of(name: str) -> str:
    """Return the namespace part of a qualified name ('' for global names)."""
    head, sep, _ = name.rpartition(SEPARATOR)
    return head if sep else ""


class Desugarer:
    """Qualifies every name in a ParseResult."""

    def __init__(self, result: ParseResult):
        self.result = result
        self.flow_starts: Dict[str, str] = {
            flow.name: qualify(flow.name, flow.start) for flow in result.namespaced_flows
        }
        self.timeline_names: Set[str] = set()
        self.component_names: Set[str] = set()

    def run(self) -> App:
        timelines: List[Timeline] = list(self.result.timelines)
        components: List[Component] = list(self.result.components)
        for block in self.result.namespaces:
            timelines.extend(replace(t, name=qualify(block.name, t.name)) for t in block.timelines)
            components.extend(
                replace(c, name=qualify(block.name, c.name)) for c in block.components
            )

        self.timeline_names = {t.name for t in timelines}
        self.component_names = {c.name for c in components}

        flows = [self._desugar_flow(flow) for flow in self.result.flows]
        flows.extend(self._desugar_namespaced_flow(flow) for flow in self.result.namespaced_flows)

        app = App(
            flows=flows,
            timelines=[self._desugar_timeline(t) for t in timelines],
            components=[self._desugar_component(c) for c in components],
        )
        logger.debug(
            "Desugared %d flow(s), %d timeline(s), %d component(s)",
            len(app.flows),
            len(app.timelines),
            len(app.components),
        )
        return app

    # Flows

    def _resolve_endpoint(self, name: str, namespace: str) -> str:
        if SEPARATOR not in name and name in self.flow_starts:
            return self.flow_starts[name]
        return qualify(namespace, name)

    def _desugar_transitions(
        self, transitions: Iterable[Transition], namespace: str
    ) -> Tuple[Transition, ...]:
        return tuple(
            Transition(
                tuple(self._resolve_endpoint(s, namespace) for s in transition.sources),
                tuple(self._resolve_endpoint(t, namespace) for t in transition.targets),
                line=transition.line,
            )
            for transition in transitions
        )

    def _desugar_flow(self, flow: Flow) -> Flow:
        return Flow(
            self._resolve_endpoint(flow.start, ""),
            self._desugar_transitions(flow.transitions, ""),
            line=flow.line,
        )

    def _desugar_namespaced_flow(self, flow: NamespacedFlow) -> Flow:
        return Flow(
            qualify(flow.name, flow.start),
            self._desugar_transitions(flow.transitions, flow.name),
            line=flow.line,
        )

    # Bodies

    def _resolve(self, name: str, namespace: str, known: Set[str]) -> str:
        if SEPARATOR in name or not namespace:
            return name
        candidate = qualify(namespace, name)
        return candidate if candidate in known else name

    def _desugar_nodes(self, nodes: Tuple[ViewNode, ...], namespace: str) -> Tuple[ViewNode, ...]:
        return tuple(self._desugar_node(node, namespace) for node in nodes)

    def _desugar_node(self, node: ViewNode, namespace: str) -> ViewNode:
        if isinstance(node, NavigateAction):
            target = self._resolve(node.target, namespace, self.timeline_names)
            return replace(node, target=target)
        if isinstance(node, ComponentCallNode):
            name = self._resolve(node.name, namespace, self.component_names)
            return replace(node, name=name)
        return map_bodies(node, lambda body: self._desugar_nodes(body, namespace))

    def _desugar_whens(self, whens: Tuple[When, ...], namespace: str) -> Tuple[When, ...]:
        return tuple(
            replace(when, actions=self._desugar_nodes(when.actions, namespace)) for when in whens
        )

    def _desugar_timeline(self, timeline: Timeline) -> Timeline:
        namespace = namespace_of(timeline.name)
        return replace(
            timeline,
            body=self._desugar_nodes(timeline.body, namespace),
            whens=self._desugar_whens(timeline.whens, namespace),
        )

    def _desugar_component(self, component: Component) -> Component:
        namespace = namespace_of(component.name)
        return replace(
            component,
            body=self._desugar_nodes(component.body, namespace),
            whens=self._desugar_whens(component.whens, namespace),
        )


def desugar(result: ParseResult) -> App:
    """
    Qualify every name in a parse result.

    Args:
        result: Grammar-level parse of a source file.

    Returns:
        App with fully qualified flows, timelines and components. The
        first top-level flow (or, failing that, the first namespaced flow)
        provides the application's start timeline.
    """
    return Desugarer(result).run()

