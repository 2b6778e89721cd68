"""
Debug tracing infrastructure for the layout engine.

When a frame is computed with ``debug=True`` the engine records every
pipeline stage and the cache outcome of every node. This is useful for:
1. Understanding why a node was (or was not) recomputed
2. Verifying cache behaviour in tests
3. Inspecting the resolved tree between stages

Usage:
    >>> engine = NiloEngine(source)
    >>> frame = engine.frame(debug=True)
    >>> trace = engine.get_trace()
    >>> print(trace.summary())
    >>> trace.dump_to_file("layout_trace.txt")
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

HIT = "hit"
MISS = "miss"
DYNAMIC = "dynamic"
PLACEHOLDER = "placeholder"


@dataclass
class CacheEvent:
    """
    Cache outcome for one node in one frame.

    Attributes:
        node_id: Structural key of the node.
        outcome: "hit", "miss", "dynamic" or "placeholder".
        reason: Why, e.g. "new node", "hash changed", "dynamic section".
    """

    node_id: str
    outcome: str
    reason: str = ""

    def __str__(self) -> str:
        reason = f" ({self.reason})" if self.reason else ""
        return f"{self.node_id}: {self.outcome}{reason}"


@dataclass
class PipelineStage:
    """
    Snapshot of data at a pipeline stage.

    The frame pipeline has three stages:
    1. resolve - evaluate expressions and styles, hash every node
    2. layout - size nodes, consulting the cache
    3. position - flatten to absolute stencils in paint order
    """

    name: str
    data: Dict[str, Any]

    def __str__(self) -> str:
        lines = [f"=== Stage: {self.name} ==="]
        for key, value in self.data.items():
            str_val = str(value)
            if len(str_val) > 100:
                str_val = str_val[:100] + "..."
            lines.append(f"  {key}: {str_val}")
        return "\n".join(lines)


@dataclass
class DiffStats:
    """Per-frame counters of layout work."""

    total_nodes: int = 0
    recomputed_nodes: int = 0
    cached_nodes: int = 0
    dynamic_nodes: int = 0
    placeholders: int = 0

    @property
    def cache_hit_rate(self) -> float:
        """Share of laid-out nodes served from the cache."""
        looked_up = self.recomputed_nodes + self.cached_nodes
        if looked_up == 0:
            return 0.0
        return self.cached_nodes / looked_up

    def __str__(self) -> str:
        return (
            f"nodes={self.total_nodes} recomputed={self.recomputed_nodes} "
            f"cached={self.cached_nodes} dynamic={self.dynamic_nodes} "
            f"placeholders={self.placeholders} hit_rate={self.cache_hit_rate:.0%}"
        )


@dataclass
class LayoutTrace:
    """
    Complete trace of one frame.

    Attributes:
        timeline: Timeline the frame was computed for.
        viewport: (width, height) of the viewport.
        stages: Pipeline stages with their data.
        cache_events: Cache outcome per node, in visit order.
        stats: Counters for the frame.
    """

    timeline: str = ""
    viewport: tuple = (0.0, 0.0)
    stages: List[PipelineStage] = field(default_factory=list)
    cache_events: List[CacheEvent] = field(default_factory=list)
    stats: Optional[DiffStats] = None

    def add_stage(self, name: str, data: Dict[str, Any]) -> None:
        self.stages.append(PipelineStage(name, data.copy()))

    def add_event(self, node_id: str, outcome: str, reason: str = "") -> None:
        self.cache_events.append(CacheEvent(node_id, outcome, reason))

    def get_stage(self, name: str) -> Optional[PipelineStage]:
        """Get a specific pipeline stage by name."""
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None

    def events_for(self, outcome: str) -> List[CacheEvent]:
        return [e for e in self.cache_events if e.outcome == outcome]

    def outcome_of(self, node_id: str) -> Optional[str]:
        """Last recorded outcome for a node id."""
        for event in reversed(self.cache_events):
            if event.node_id == node_id:
                return event.outcome
        return None

    def summary(self) -> str:
        lines = [
            "=" * 60,
            "LAYOUT TRACE SUMMARY",
            "=" * 60,
            "",
            f"Timeline: {self.timeline}",
            f"Viewport: {self.viewport[0]:g} x {self.viewport[1]:g}",
            "",
            f"Pipeline stages: {len(self.stages)}",
        ]
        for stage in self.stages:
            lines.append(f"  - {stage.name}")

        counts: Dict[str, int] = {}
        for event in self.cache_events:
            counts[event.outcome] = counts.get(event.outcome, 0) + 1
        lines.extend(["", f"Cache events: {len(self.cache_events)}"])
        for outcome, count in sorted(counts.items(), key=lambda x: -x[1]):
            lines.append(f"  {outcome}: {count}")

        if self.stats is not None:
            lines.extend(["", f"Stats: {self.stats}"])
        return "\n".join(lines)

    def dump(self) -> str:
        lines = [self.summary(), "", "=" * 60, "DETAILED TRACE", "=" * 60, ""]
        lines.append("PIPELINE STAGES:")
        lines.append("-" * 40)
        for stage in self.stages:
            lines.append(str(stage))
            lines.append("")
        lines.append("CACHE EVENTS:")
        lines.append("-" * 40)
        for event in self.cache_events:
            lines.append(str(event))
        return "\n".join(lines)

    def dump_to_file(self, filename: str) -> None:
        """Write the complete trace dump to a file."""
        with open(filename, "w", encoding="utf-8") as f:
            f.write(self.dump())
