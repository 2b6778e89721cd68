"""
Flow graph module.

Stores the allowed transitions between timelines in a networkx DiGraph.
Multi-source/multi-target transitions are expanded into their full pairwise
edge set when the graph is built, so navigation checks are a plain edge
lookup.
"""

from typing import Iterable, List, Optional, Set, Tuple

import networkx as nx

from .models import Flow


class FlowGraph:
    """Directed graph of timeline names; edges are allowed navigations."""

    def __init__(self, start: Optional[str] = None):
        self.graph: nx.DiGraph = nx.DiGraph()
        self.start = start
        if start is not None:
            self.graph.add_node(start)

    @classmethod
    def from_flows(
        cls, flows: Iterable[Flow], timelines: Iterable[str] = ()
    ) -> "FlowGraph":
        """
        Build a graph from every flow of an app.

        Args:
            flows: Flows in declaration order; the first one's start is the
                graph's start node.
            timelines: Declared timeline names, added as nodes so that
                timelines without any edge still appear.

        Returns:
            FlowGraph with every transition expanded pairwise.
        """
        flows = list(flows)
        graph = cls(flows[0].start if flows else None)
        graph.graph.add_nodes_from(timelines)
        for flow in flows:
            graph.graph.add_node(flow.start)
            for transition in flow.transitions:
                graph.add_edges(transition.pairs())
        return graph

    def add_edge(self, source: str, target: str) -> None:
        """Add a directed edge from source to target."""
        self.graph.add_edge(source, target)

    def add_edges(self, pairs: Iterable[Tuple[str, str]]) -> None:
        self.graph.add_edges_from(pairs)

    def has_node(self, name: str) -> bool:
        return self.graph.has_node(name)

    def has_edge(self, source: str, target: str) -> bool:
        """Check whether navigating from source to target is allowed."""
        return self.graph.has_edge(source, target)

    def successors(self, name: str) -> List[str]:
        """Timelines reachable in one navigation from name."""
        if not self.graph.has_node(name):
            return []
        return sorted(self.graph.successors(name))

    def predecessors(self, name: str) -> List[str]:
        if not self.graph.has_node(name):
            return []
        return sorted(self.graph.predecessors(name))

    def get_nodes(self) -> List[str]:
        return sorted(self.graph.nodes)

    def get_edges(self) -> List[Tuple[str, str]]:
        return sorted(self.graph.edges)

    def reachable(self, start: Optional[str] = None) -> Set[str]:
        """Every node reachable from start (the graph's start by default)."""
        origin = start if start is not None else self.start
        if origin is None or not self.graph.has_node(origin):
            return set()
        return {origin} | nx.descendants(self.graph, origin)

    def unreachable(self, start: Optional[str] = None) -> List[str]:
        """Nodes that cannot be reached from start, sorted by name."""
        reached = self.reachable(start)
        return sorted(node for node in self.graph.nodes if node not in reached)

    def has_cycle(self) -> bool:
        return not nx.is_directed_acyclic_graph(self.graph)

    def __len__(self) -> int:
        return self.graph.number_of_nodes()

    def __contains__(self, name: str) -> bool:
        return self.graph.has_node(name)
