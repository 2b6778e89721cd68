"""
Incremental layout and diff engine.

A frame is computed in three stages:

1. resolve (top-down): every view node gets a structural NodeId, its
   expressions and style are evaluated against state, size constraints that
   depend only on the parent context are resolved, and a NodeHash is
   computed from the node's kind, resolved content, resolved style, layout
   context and the hashes of its children.
2. layout (bottom-up): each node is looked up in the cache by NodeId. A
   stored LayoutedNode with the same NodeHash is reused as is, without
   visiting its subtree. Otherwise the node is recomputed from its
   children's sizes.
3. position: the LayoutedNode tree is flattened into absolute stencils in
   paint order, static stencils first and dynamic sections after them.

Because a NodeHash covers the whole subtree and the context the node was
laid out in, an unchanged hash guarantees an unchanged layout. Dynamic
sections are never cached; their ancestors are always recomputed but still
reuse their other children from the cache.

Traversal is recursive. Trees deeper than the interpreter's recursion limit
would need the resolve and layout passes rewritten as explicit worklists
(post-order stack for layout); UI nesting never approaches that depth.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .errors import (
    AssetError,
    Diagnostic,
    EvaluationError,
    MatchError,
    NativeCallError,
    NotAListError,
    StyleError,
)
from .evaluator import Evaluator, format_value
from .measure import ImageSizer, TextMeasurer
from .models import (
    ActionNode,
    ButtonNode,
    Call,
    DynamicSectionNode,
    ForEachNode,
    IfNode,
    ImageNode,
    MatchNode,
    NativeCallNode,
    SpacingAutoNode,
    SpacingNode,
    StackNode,
    StencilNode,
    TextInputNode,
    TextNode,
    ViewNode,
)
from .stencil import (
    SHAPES,
    ImageStencil,
    Rect,
    RoundedRect,
    Stencil,
    TextStencil,
    order_for_drawing,
)
from .style import (
    DEFAULT_ROUNDED_RADIUS,
    RGBA,
    Dimension,
    Edges,
    Style,
    StyleSpec,
    parse_color,
    to_dimension,
)
from .tracer import DYNAMIC, HIT, MISS, PLACEHOLDER, DiffStats, LayoutTrace

logger = logging.getLogger(__name__)

Box = Tuple[float, float, float, float]

VERTICAL = "vertical"
HORIZONTAL = "horizontal"

# Control nodes lay out their chosen children in the parent's flow.
TRANSPARENT_KINDS = frozenset({"if", "foreach", "match"})

TEXT_COLOR: RGBA = (0.0, 0.0, 0.0, 1.0)
PLACEHOLDER_TEXT_COLOR: RGBA = (0.6, 0.6, 0.6, 1.0)
BUTTON_BACKGROUND: RGBA = (0.9, 0.9, 0.9, 1.0)
INPUT_BACKGROUND: RGBA = (1.0, 1.0, 1.0, 1.0)
INPUT_BORDER: RGBA = (0.6, 0.6, 0.6, 1.0)
CARD_BACKGROUND: RGBA = (1.0, 1.0, 1.0, 1.0)
SHADOW_COLOR: RGBA = (0.0, 0.0, 0.0, 0.25)
SHADOW_OFFSET = 3.0

BUTTON_PADDING = Edges.vh(Dimension.px(8), Dimension.px(16))
INPUT_PADDING = Edges.all(Dimension.px(6))
INPUT_MIN_WIDTH = 200.0
INPUT_LINES = 3

ZERO_BOX: Box = (0.0, 0.0, 0.0, 0.0)


@dataclass
class LayoutParams:
    """
    Layout configuration.

    Attributes:
        viewport_width: Viewport width in pixels (vw basis, root width).
        viewport_height: Viewport height in pixels (vh basis, root height).
        root_font_size: Font size that rem units resolve against.
        default_font_size: Font size of text without a font_size style.
        default_spacing: Gap between a container's children.
        auto_spacing: Fixed size of SpacingAuto.
        default_font: Font name or path for text measurement.
        asset_root: Directory relative image paths resolve against.
    """

    viewport_width: float = 800.0
    viewport_height: float = 600.0
    root_font_size: float = 16.0
    default_font_size: float = 16.0
    default_spacing: float = 8.0
    auto_spacing: float = 12.0
    default_font: Optional[str] = None
    asset_root: Optional[str] = None

    def __post_init__(self):
        for name in ("viewport_width", "viewport_height", "root_font_size", "default_font_size"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("default_spacing", "auto_spacing"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative, got {getattr(self, name)}")

    @property
    def viewport(self) -> Tuple[float, float]:
        return (self.viewport_width, self.viewport_height)


@dataclass(frozen=True)
class NodeId:
    """
    Structural address of a node: ``root`` followed by one segment per
    level, ``<index>_<kind>``; loop iterations append ``_<iteration>``.
    """

    segments: Tuple[str, ...] = ("root",)

    @classmethod
    def root(cls) -> "NodeId":
        return cls(("root",))

    def child(self, index: int, kind: str) -> "NodeId":
        return NodeId(self.segments + (f"{index}_{kind}",))

    def iteration(self, iteration: int, index: int, kind: str) -> "NodeId":
        """Id of body node ``index`` in loop iteration ``iteration``."""
        return NodeId(self.segments + (f"{index}_{kind}_{iteration}",))

    @property
    def key(self) -> str:
        return "/".join(self.segments)

    @property
    def parent(self) -> Optional["NodeId"]:
        if len(self.segments) <= 1:
            return None
        return NodeId(self.segments[:-1])

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class NodeHash:
    """Content digest of a resolved node and its subtree."""

    digest: str

    @classmethod
    def of(cls, *parts: Any) -> "NodeHash":
        """Hash the repr of parts; every part must have a stable repr."""
        hasher = hashlib.blake2b(digest_size=16)
        hasher.update(repr(parts).encode("utf-8"))
        return cls(hasher.hexdigest())

    def __str__(self) -> str:
        return self.digest[:12]


@dataclass(frozen=True, eq=False)
class LayoutedNode:
    """
    Computed layout of one node.

    Sizes are the node's border box; stencils are relative to the node's
    own origin; children are (x, y, child) slots relative to it as well,
    so a cached node can be reused wherever its parent places it.
    """

    node_id: str
    kind: str
    node_hash: NodeHash
    width: float
    height: float
    margin: Box = ZERO_BOX
    stencils: Tuple[Stencil, ...] = ()
    children: Tuple[Tuple[float, float, "LayoutedNode"], ...] = ()
    dynamic: bool = False
    collapsed: bool = False
    cacheable: bool = True
    hit_id: Optional[str] = None

    @property
    def size(self) -> Tuple[float, float]:
        return (self.width, self.height)

    def walk(self) -> Iterator["LayoutedNode"]:
        yield self
        for _, _, child in self.children:
            yield from child.walk()

    def __repr__(self) -> str:
        return f"LayoutedNode({self.node_id!r}, {self.width:g}x{self.height:g})"


@dataclass
class HitRegion:
    """Absolute bounds of an interactive element."""

    target: str
    kind: str
    node_id: str
    x: float
    y: float
    width: float
    height: float

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px < self.x + self.width and self.y <= py < self.y + self.height


@dataclass
class Frame:
    """
    Result of one layout pass.

    Attributes:
        timeline: Timeline the frame shows.
        root: Root of the LayoutedNode tree.
        stencils: Absolute draw primitives in paint order.
        hit_regions: Buttons and text inputs, in paint order.
        boxes: Absolute (x, y, width, height) per node id.
        stats: Work counters for this frame.
        diagnostics: Problems reported while computing the frame.
        onclicks: Inline button calls with the loop scope they were
            rendered in, per node id.
    """

    timeline: str
    root: LayoutedNode
    stencils: List[Stencil] = field(default_factory=list)
    hit_regions: List[HitRegion] = field(default_factory=list)
    boxes: Dict[str, Box] = field(default_factory=dict)
    stats: DiffStats = field(default_factory=DiffStats)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    onclicks: Dict[str, Tuple[Call, Dict[str, Any]]] = field(default_factory=dict)

    def box(self, node_id: str) -> Optional[Box]:
        return self.boxes.get(node_id)

    def node(self, node_id: str) -> Optional[LayoutedNode]:
        for node in self.root.walk():
            if node.node_id == node_id:
                return node
        return None

    def hit_test(self, x: float, y: float) -> Optional[HitRegion]:
        """Top-most interactive region under a point."""
        for region in reversed(self.hit_regions):
            if region.contains(x, y):
                return region
        return None

    def texts(self) -> List[str]:
        return [s.text for s in self.stencils if isinstance(s, TextStencil)]


@dataclass(frozen=True)
class LayoutContext:
    """What a node inherits from its parent during the resolve pass."""

    available: Tuple[float, float]
    font_size: float
    font: Optional[str]
    axis: str
    spacing: float
    align: Optional[str] = None
    dynamic: bool = False

    @property
    def signature(self) -> Tuple[Any, ...]:
        return (self.available, self.font_size, self.font, self.axis, self.spacing, self.align)


@dataclass
class ResolvedNode:
    """A node after the resolve pass, ready for sizing."""

    node_id: NodeId
    kind: str
    context: LayoutContext
    style: Style = field(default_factory=Style)
    content: Any = None
    children: List["ResolvedNode"] = field(default_factory=list)
    axis: str = VERTICAL
    spacing: float = 0.0
    font_size: float = 16.0
    font: Optional[str] = None
    fixed: Tuple[Optional[float], Optional[float]] = (None, None)
    limits: Tuple[Optional[float], ...] = (None, None, None, None)
    padding: Box = ZERO_BOX
    margin: Box = ZERO_BOX
    dynamic: bool = False
    has_dynamic: bool = False
    error: Optional[str] = None
    hit_id: Optional[str] = None
    node_hash: NodeHash = NodeHash("")

    @property
    def key(self) -> str:
        return self.node_id.key


class LayoutDiffEngine:
    """
    Computes frames, reusing cached layouts whose NodeHash is unchanged.

    Args:
        params: Layout configuration.
        measurer: Text measurement collaborator.
        image_sizer: Image size collaborator.
    """

    def __init__(self, params: LayoutParams, measurer: TextMeasurer, image_sizer: ImageSizer):
        self.params = params
        self.measurer = measurer
        self.image_sizer = image_sizer
        self.cache: Dict[str, LayoutedNode] = {}
        self._diagnostics: List[Diagnostic] = []
        self._onclicks: Dict[str, Tuple[Call, Dict[str, Any]]] = {}
        self._stats = DiffStats()
        self._trace: Optional[LayoutTrace] = None
        self._evaluator: Optional[Evaluator] = None

    def invalidate(self) -> None:
        """Drop every cached layout."""
        self.cache = {}

    def compute(
        self,
        nodes: Sequence[ViewNode],
        evaluator: Evaluator,
        timeline: str = "",
        font: Optional[str] = None,
        trace: Optional[LayoutTrace] = None,
    ) -> Frame:
        """
        Lay out a timeline body.

        Args:
            nodes: Expanded view nodes of the timeline.
            evaluator: Evaluator bound to the current state.
            timeline: Timeline name, for diagnostics and the trace.
            font: Timeline default font.
            trace: Optional trace to record stages and cache events into.

        Returns:
            Frame with stencils, hit regions and statistics.
        """
        self._diagnostics = []
        self._onclicks = {}
        self._stats = DiffStats()
        self._trace = trace
        self._evaluator = evaluator

        params = self.params
        context = LayoutContext(
            available=params.viewport,
            font_size=params.default_font_size,
            font=font or params.default_font,
            axis=VERTICAL,
            spacing=params.default_spacing,
        )
        resolved = self._resolve_root(nodes, context)
        if trace is not None:
            trace.timeline = timeline
            trace.viewport = params.viewport
            trace.add_stage(
                "resolve",
                {
                    "nodes": self._stats.total_nodes,
                    "root_hash": str(resolved.node_hash),
                    "errors": len(self._diagnostics),
                },
            )

        new_cache: Dict[str, LayoutedNode] = {}
        root = self._layout(resolved, new_cache)
        self.cache = new_cache
        if trace is not None:
            trace.add_stage(
                "layout",
                {
                    "recomputed": self._stats.recomputed_nodes,
                    "cached": self._stats.cached_nodes,
                    "root_size": root.size,
                },
            )

        frame = Frame(
            timeline=timeline,
            root=root,
            stats=self._stats,
            diagnostics=self._diagnostics,
            onclicks=self._onclicks,
        )
        self._position(frame)
        if trace is not None:
            trace.add_stage(
                "position",
                {"stencils": len(frame.stencils), "hit_regions": len(frame.hit_regions)},
            )
            trace.stats = self._stats

        logger.debug("Frame %s: %s", timeline, self._stats)
        return frame

    # ------------------------------------------------------------------
    # Resolve pass
    # ------------------------------------------------------------------

    def _report(self, node_id: NodeId, exc: Exception) -> str:
        message = str(exc)
        logger.warning("Node %s degraded to placeholder: %s", node_id.key, message)
        self._diagnostics.append(Diagnostic.error(message, node_id.key))
        return message

    def _resolve_root(self, nodes: Sequence[ViewNode], context: LayoutContext) -> ResolvedNode:
        root_id = NodeId.root()
        resolved = ResolvedNode(
            root_id,
            "root",
            context,
            axis=VERTICAL,
            spacing=context.spacing,
            font_size=context.font_size,
            font=context.font,
        )
        resolved.children = self._resolve_children(nodes, root_id, context, {})
        self._finish(resolved)
        return resolved

    def _resolve_children(
        self,
        nodes: Sequence[ViewNode],
        parent_id: NodeId,
        context: LayoutContext,
        scope: Dict[str, Any],
        iteration: Optional[int] = None,
    ) -> List[ResolvedNode]:
        children = []
        for index, node in enumerate(nodes):
            if isinstance(node, ActionNode):
                continue
            if iteration is None:
                node_id = parent_id.child(index, node.kind)
            else:
                node_id = parent_id.iteration(iteration, index, node.kind)
            children.append(self._resolve(node, node_id, context, scope))
        return children

    def _resolve(
        self, node: ViewNode, node_id: NodeId, context: LayoutContext, scope: Dict[str, Any]
    ) -> ResolvedNode:
        dynamic = context.dynamic or isinstance(node, DynamicSectionNode)
        resolved = ResolvedNode(node_id, node.kind, context, dynamic=dynamic)
        try:
            self._resolve_node(node, resolved, scope)
        except (EvaluationError, NativeCallError, StyleError) as exc:
            resolved.error = self._report(node_id, exc)
            resolved.children = []
        self._finish(resolved)
        return resolved

    def _finish(self, resolved: ResolvedNode) -> None:
        self._stats.total_nodes += 1
        resolved.has_dynamic = any(c.dynamic or c.has_dynamic for c in resolved.children)
        resolved.node_hash = NodeHash.of(
            resolved.kind,
            resolved.content,
            resolved.style.items(),
            resolved.context.signature,
            resolved.fixed,
            resolved.limits,
            resolved.padding,
            resolved.margin,
            resolved.spacing,
            resolved.error,
            tuple(c.node_hash.digest for c in resolved.children),
        )

    def _resolve_style(self, spec: Optional[StyleSpec], scope: Dict[str, Any]) -> Style:
        if not spec:
            return Style()
        values = {key: self._evaluator.evaluate(expr, scope) for key, expr in spec.entries}
        return Style.from_values(values)

    def _px(self, dimension: Dimension, basis: float, font_size: float) -> float:
        return dimension.to_px(
            basis=basis,
            viewport=self.params.viewport,
            font_size=font_size,
            root_font_size=self.params.root_font_size,
        )

    def _edges(self, edges: Optional[Edges], context: LayoutContext, font_size: float) -> Box:
        if edges is None:
            return ZERO_BOX
        return edges.to_px(
            basis_width=context.available[0],
            basis_height=context.available[1],
            viewport=self.params.viewport,
            font_size=font_size,
            root_font_size=self.params.root_font_size,
        )

    def _fixed(
        self, candidates: Sequence[Optional[Dimension]], basis: float, font_size: float
    ) -> Optional[float]:
        """Explicit pixels win over relative units; None means intrinsic."""
        present = [d for d in candidates if d is not None]
        for dimension in present:
            if dimension.is_absolute:
                return dimension.value
        for dimension in present:
            return self._px(dimension, basis, font_size)
        return None

    def _resolve_node(self, node: ViewNode, resolved: ResolvedNode, scope: Dict[str, Any]) -> None:
        context = resolved.context
        evaluator = self._evaluator

        if resolved.kind in TRANSPARENT_KINDS:
            resolved.axis = context.axis
            resolved.spacing = context.spacing
            resolved.children = self._resolve_control(node, resolved, scope)
            return

        style = self._resolve_style(node.style, scope)
        resolved.style = style
        font_size = context.font_size
        if style.font_size is not None:
            font_size = self._px(style.font_size, context.font_size, context.font_size)
        resolved.font_size = font_size
        resolved.font = style.font or context.font

        avail_w, avail_h = context.available
        size = style.size or (None, None)
        resolved.fixed = (
            self._fixed([style.width, size[0]], avail_w, font_size),
            self._fixed([style.height, size[1]], avail_h, font_size),
        )
        resolved.limits = tuple(
            self._px(d, basis, font_size) if d is not None else None
            for d, basis in (
                (style.min_width, avail_w),
                (style.max_width, avail_w),
                (style.min_height, avail_h),
                (style.max_height, avail_h),
            )
        )
        padding = style.padding
        if padding is None and isinstance(node, ButtonNode):
            padding = BUTTON_PADDING
        elif padding is None and isinstance(node, TextInputNode):
            padding = INPUT_PADDING
        resolved.padding = self._edges(padding, context, font_size)
        resolved.margin = self._edges(style.margin, context, font_size)

        if isinstance(node, TextNode):
            resolved.content = evaluator.format_text(node.template, node.args, scope)
        elif isinstance(node, ButtonNode):
            resolved.content = format_value(evaluator.evaluate(node.label, scope))
            resolved.hit_id = node.id
            if node.onclick is not None:
                self._onclicks[resolved.key] = (node.onclick, dict(scope))
        elif isinstance(node, TextInputNode):
            value = evaluator.evaluate(node.value, scope) if node.value is not None else None
            resolved.content = (
                format_value(value),
                node.placeholder or "",
                node.multiline,
                node.max_length,
            )
            resolved.hit_id = node.id
        elif isinstance(node, ImageNode):
            resolved.content = node.path
        elif isinstance(node, SpacingNode):
            amount = to_dimension(node.amount)
            basis = avail_w if context.axis == HORIZONTAL else avail_h
            resolved.content = self._px(amount, basis, font_size)
        elif isinstance(node, SpacingAutoNode):
            resolved.content = self.params.auto_spacing
        elif isinstance(node, StencilNode):
            resolved.content = (node.shape, stencil_params(node))
        elif isinstance(node, NativeCallNode):
            result = evaluator.call(node.call, scope)
            resolved.content = None if result is None else format_value(result)
        elif isinstance(node, (StackNode, DynamicSectionNode)):
            self._resolve_container(node, resolved, style, scope)

    def _resolve_container(
        self, node: ViewNode, resolved: ResolvedNode, style: Style, scope: Dict[str, Any]
    ) -> None:
        context = resolved.context
        axis = node.axis if isinstance(node, StackNode) else VERTICAL
        basis = context.available[0] if axis == HORIZONTAL else context.available[1]
        spacing = self.params.default_spacing
        if style.spacing is not None:
            spacing = self._px(style.spacing, basis, resolved.font_size)
        resolved.axis = axis
        resolved.spacing = spacing

        top, right, bottom, left = resolved.padding
        m_top, m_right, m_bottom, m_left = resolved.margin
        fixed_w, fixed_h = resolved.fixed
        outer_w = fixed_w if fixed_w is not None else context.available[0] - m_left - m_right
        outer_h = fixed_h if fixed_h is not None else context.available[1] - m_top - m_bottom
        child_context = LayoutContext(
            available=(max(0.0, outer_w - left - right), max(0.0, outer_h - top - bottom)),
            font_size=resolved.font_size,
            font=resolved.font,
            axis=axis,
            spacing=spacing,
            align=style.align,
            dynamic=resolved.dynamic,
        )
        resolved.children = self._resolve_children(node.children, resolved.node_id, child_context, scope)

    def _resolve_control(
        self, node: ViewNode, resolved: ResolvedNode, scope: Dict[str, Any]
    ) -> List[ResolvedNode]:
        evaluator = self._evaluator
        context = resolved.context
        node_id = resolved.node_id

        if isinstance(node, IfNode):
            if evaluator.truthy(node.condition, scope):
                return self._resolve_children(node.then_body, node_id, context, scope)
            return self._resolve_children(node.else_body or (), node_id, context, scope)

        if isinstance(node, MatchNode):
            subject = evaluator.evaluate(node.subject, scope)
            for case in node.cases:
                if evaluator.evaluate(case.pattern, scope) == subject:
                    return self._resolve_children(case.body, node_id, context, scope)
            if node.default is not None:
                return self._resolve_children(node.default, node_id, context, scope)
            raise MatchError(subject)

        if isinstance(node, ForEachNode):
            items = evaluator.evaluate(node.iterable, scope)
            if not isinstance(items, list):
                raise NotAListError(_describe_expr(node.iterable), items)
            children: List[ResolvedNode] = []
            for iteration, item in enumerate(items):
                inner = dict(scope)
                inner[node.var] = item
                children.extend(
                    self._resolve_children(node.body, node_id, context, inner, iteration)
                )
            return children

        return []

    # ------------------------------------------------------------------
    # Layout pass
    # ------------------------------------------------------------------

    def _event(self, key: str, outcome: str, reason: str = "") -> None:
        if self._trace is not None:
            self._trace.add_event(key, outcome, reason)

    def _retain(self, node: LayoutedNode, cache: Dict[str, LayoutedNode]) -> None:
        cache[node.node_id] = node
        for _, _, child in node.children:
            self._retain(child, cache)

    def _layout(self, resolved: ResolvedNode, cache: Dict[str, LayoutedNode]) -> LayoutedNode:
        key = resolved.key
        if resolved.error is not None:
            self._stats.placeholders += 1
            self._event(key, PLACEHOLDER, resolved.error)
            return self._placeholder(resolved)

        if resolved.dynamic:
            self._stats.dynamic_nodes += 1
            self._stats.recomputed_nodes += 1
            self._event(key, DYNAMIC, "dynamic section")
        elif resolved.has_dynamic:
            self._stats.recomputed_nodes += 1
            self._event(key, MISS, "contains dynamic section")
        else:
            cached = self.cache.get(key)
            if cached is not None and cached.node_hash == resolved.node_hash:
                self._stats.cached_nodes += 1
                self._event(key, HIT)
                self._retain(cached, cache)
                return cached
            self._stats.recomputed_nodes += 1
            self._event(key, MISS, "new node" if cached is None else "hash changed")

        children = [self._layout(child, cache) for child in resolved.children]
        try:
            node = self._build(resolved, children)
        except AssetError as exc:
            resolved.error = self._report(resolved.node_id, exc)
            self._stats.placeholders += 1
            return self._placeholder(resolved)

        if node.cacheable:
            cache[key] = node
        return node

    def _placeholder(self, resolved: ResolvedNode) -> LayoutedNode:
        return LayoutedNode(
            resolved.key,
            resolved.kind,
            resolved.node_hash,
            0.0,
            0.0,
            collapsed=True,
            cacheable=False,
            dynamic=resolved.dynamic,
        )

    def _clamp(self, resolved: ResolvedNode, width: float, height: float) -> Tuple[float, float]:
        fixed_w, fixed_h = resolved.fixed
        if fixed_w is not None:
            width = fixed_w
        if fixed_h is not None:
            height = fixed_h
        min_w, max_w, min_h, max_h = resolved.limits
        if max_w is not None:
            width = min(width, max_w)
        if min_w is not None:
            width = max(width, min_w)
        if max_h is not None:
            height = min(height, max_h)
        if min_h is not None:
            height = max(height, min_h)
        return max(0.0, width), max(0.0, height)

    def _make(
        self,
        resolved: ResolvedNode,
        width: float,
        height: float,
        stencils: Sequence[Stencil] = (),
        children: Sequence[Tuple[float, float, LayoutedNode]] = (),
        collapsed: bool = False,
    ) -> LayoutedNode:
        cacheable = not resolved.dynamic and not resolved.has_dynamic and all(
            child.cacheable for _, _, child in children
        )
        return LayoutedNode(
            resolved.key,
            resolved.kind,
            resolved.node_hash,
            width,
            height,
            resolved.margin,
            tuple(stencils),
            tuple(children),
            dynamic=resolved.dynamic,
            collapsed=collapsed,
            cacheable=cacheable,
            hit_id=resolved.hit_id,
        )

    def _build(self, resolved: ResolvedNode, children: List[LayoutedNode]) -> LayoutedNode:
        kind = resolved.kind
        if kind in TRANSPARENT_KINDS:
            return self._build_stack(resolved, children, transparent=True)
        if kind in ("root", "vstack", "hstack", "dynamic"):
            return self._build_stack(resolved, children)
        if kind == "text":
            return self._build_text(resolved, resolved.content)
        if kind == "native":
            if resolved.content is None:
                return self._make(resolved, 0.0, 0.0, collapsed=True)
            return self._build_text(resolved, resolved.content)
        if kind == "button":
            return self._build_button(resolved)
        if kind == "text_input":
            return self._build_text_input(resolved)
        if kind == "image":
            return self._build_image(resolved)
        if kind in ("spacing", "spacing_auto"):
            amount = resolved.content
            if resolved.context.axis == HORIZONTAL:
                return self._make(resolved, *self._clamp(resolved, amount, 0.0))
            return self._make(resolved, *self._clamp(resolved, 0.0, amount))
        if kind == "stencil":
            return self._build_stencil(resolved)
        return self._make(resolved, 0.0, 0.0, collapsed=True)

    def _decorations(
        self,
        resolved: ResolvedNode,
        width: float,
        height: float,
        background: Optional[RGBA] = None,
        radius: Optional[float] = None,
    ) -> List[Stencil]:
        """
        Shadow, background and border for a node's box.

        Args:
            resolved: Node being drawn.
            width: Border box width.
            height: Border box height.
            background: Fill used when the style sets none.
            radius: Corner radius used when the style sets none.
        """
        style = resolved.style
        key = resolved.key
        background = style.background or background
        radius = style.rounded if style.rounded is not None else radius
        shadow = bool(style.shadow)
        if style.card:
            background = background or CARD_BACKGROUND
            radius = radius if radius is not None else DEFAULT_ROUNDED_RADIUS
            shadow = True

        stencils: List[Stencil] = []
        if shadow:
            stencils.append(
                _box_shape(SHADOW_OFFSET, SHADOW_OFFSET, width, height, SHADOW_COLOR, radius, None, key)
            )
        if background is not None or style.border_color is not None:
            stencils.append(
                _box_shape(0.0, 0.0, width, height, background, radius, style.border_color, key)
            )
        return stencils

    def _build_stack(
        self, resolved: ResolvedNode, children: List[LayoutedNode], transparent: bool = False
    ) -> LayoutedNode:
        axis = resolved.axis
        spacing = resolved.spacing
        top, right, bottom, left = resolved.padding
        visible = [c for c in children if not c.collapsed]

        def outer(child: LayoutedNode) -> Tuple[float, float]:
            m_top, m_right, m_bottom, m_left = child.margin
            return child.width + m_left + m_right, child.height + m_top + m_bottom

        sizes = [outer(c) for c in visible]
        gaps = spacing * max(0, len(visible) - 1)
        if axis == VERTICAL:
            content_w = max((w for w, _ in sizes), default=0.0)
            content_h = sum(h for _, h in sizes) + gaps
        else:
            content_w = sum(w for w, _ in sizes) + gaps
            content_h = max((h for _, h in sizes), default=0.0)

        if transparent:
            width, height = content_w, content_h
        else:
            width, height = self._clamp(resolved, content_w + left + right, content_h + top + bottom)

        align = resolved.context.align if transparent else resolved.style.align
        inner_w = max(0.0, width - left - right)
        inner_h = max(0.0, height - top - bottom)

        slots: List[Tuple[float, float, LayoutedNode]] = []
        cursor = top if axis == VERTICAL else left
        placed = 0
        for child in children:
            m_top, m_right, m_bottom, m_left = child.margin
            if child.collapsed:
                x, y = (left, cursor) if axis == VERTICAL else (cursor, top)
                slots.append((x, y, child))
                continue
            if placed:
                cursor += spacing
            placed += 1
            out_w, out_h = outer(child)
            if axis == VERTICAL:
                x = left + m_left + _align_offset(align, inner_w - out_w, VERTICAL)
                y = cursor + m_top
                cursor += out_h
            else:
                x = cursor + m_left
                y = top + m_top + _align_offset(align, inner_h - out_h, HORIZONTAL)
                cursor += out_w
            slots.append((x, y, child))

        stencils = [] if transparent else self._decorations(resolved, width, height)
        collapsed = transparent and not visible
        return self._make(resolved, width, height, stencils, slots, collapsed=collapsed)

    def _measure(self, resolved: ResolvedNode, text: str) -> Tuple[float, float]:
        return self.measurer.measure(text, resolved.font_size, resolved.font)

    def _build_text(self, resolved: ResolvedNode, text: str) -> LayoutedNode:
        top, right, bottom, left = resolved.padding
        text_w, text_h = self._measure(resolved, text)
        width, height = self._clamp(resolved, text_w + left + right, text_h + top + bottom)
        stencils = self._decorations(resolved, width, height)
        stencils.append(
            TextStencil(
                left,
                top,
                text_w,
                text_h,
                resolved.style.color or TEXT_COLOR,
                None,
                resolved.key,
                text=text,
                font_size=resolved.font_size,
                font=resolved.font,
            )
        )
        return self._make(resolved, width, height, stencils)

    def _build_button(self, resolved: ResolvedNode) -> LayoutedNode:
        top, right, bottom, left = resolved.padding
        label = resolved.content
        text_w, text_h = self._measure(resolved, label)
        width, height = self._clamp(resolved, text_w + left + right, text_h + top + bottom)
        stencils = self._decorations(
            resolved, width, height, BUTTON_BACKGROUND, DEFAULT_ROUNDED_RADIUS / 2
        )
        stencils.append(
            TextStencil(
                (width - text_w) / 2,
                (height - text_h) / 2,
                text_w,
                text_h,
                resolved.style.color or TEXT_COLOR,
                None,
                resolved.key,
                text=label,
                font_size=resolved.font_size,
                font=resolved.font,
            )
        )
        return self._make(resolved, width, height, stencils)

    def _build_text_input(self, resolved: ResolvedNode) -> LayoutedNode:
        value, placeholder, multiline, _ = resolved.content
        top, right, bottom, left = resolved.padding
        shown = value or placeholder
        text_w, text_h = self._measure(resolved, shown)
        _, line_h = self._measure(resolved, "M")
        content_h = max(text_h, line_h * (INPUT_LINES if multiline else 1))
        content_w = max(text_w, INPUT_MIN_WIDTH)
        width, height = self._clamp(resolved, content_w + left + right, content_h + top + bottom)
        style = resolved.style
        stencils = [
            Rect(
                0.0,
                0.0,
                width,
                height,
                style.background or INPUT_BACKGROUND,
                None,
                resolved.key,
                border_color=style.border_color or INPUT_BORDER,
            )
        ]
        if shown:
            stencils.append(
                TextStencil(
                    left,
                    top,
                    text_w,
                    text_h,
                    (style.color or TEXT_COLOR) if value else PLACEHOLDER_TEXT_COLOR,
                    None,
                    resolved.key,
                    text=shown,
                    font_size=resolved.font_size,
                    font=resolved.font,
                )
            )
        return self._make(resolved, width, height, stencils)

    def _build_image(self, resolved: ResolvedNode) -> LayoutedNode:
        top, right, bottom, left = resolved.padding
        image_w, image_h = self.image_sizer.size(resolved.content)
        width, height = self._clamp(resolved, image_w + left + right, image_h + top + bottom)
        stencils = self._decorations(resolved, width, height)
        stencils.append(
            ImageStencil(
                left,
                top,
                max(0.0, width - left - right),
                max(0.0, height - top - bottom),
                None,
                None,
                resolved.key,
                path=resolved.content,
            )
        )
        return self._make(resolved, width, height, stencils)

    def _build_stencil(self, resolved: ResolvedNode) -> LayoutedNode:
        shape, raw = resolved.content
        params = dict(raw)
        x = params.get("x", 0.0)
        y = params.get("y", 0.0)
        width = params.get("width")
        height = params.get("height")
        color = params.get("color")
        extra: Dict[str, Any] = {}

        if shape == "text":
            text = params.get("text", "")
            font_size = params.get("font_size", resolved.font_size)
            measured_w, measured_h = self.measurer.measure(text, font_size, resolved.font)
            width = measured_w if width is None else width
            height = measured_h if height is None else height
            extra = {"text": text, "font_size": font_size, "font": resolved.font}
            color = color or TEXT_COLOR
        elif shape == "image":
            path = params.get("path", "")
            if width is None or height is None:
                image_w, image_h = self.image_sizer.size(path)
                width = image_w if width is None else width
                height = image_h if height is None else height
            extra = {"path": path}
        elif shape == "rounded_rect":
            extra = {"radius": params.get("radius", DEFAULT_ROUNDED_RADIUS)}

        width = width or 0.0
        height = height or 0.0
        stencil = SHAPES[shape](
            x, y, width, height, color, params.get("depth"), resolved.key, **extra
        )
        return self._make(resolved, x + width, y + height, [stencil])

    # ------------------------------------------------------------------
    # Position pass
    # ------------------------------------------------------------------

    def _position(self, frame: Frame) -> None:
        static: List[Stencil] = []
        dynamic: List[Stencil] = []
        static_regions: List[HitRegion] = []
        dynamic_regions: List[HitRegion] = []

        def visit(node: LayoutedNode, x: float, y: float) -> None:
            frame.boxes[node.node_id] = (x, y, node.width, node.height)
            stencils = dynamic if node.dynamic else static
            stencils.extend(s.translated(x, y) for s in node.stencils)
            if node.hit_id is not None:
                regions = dynamic_regions if node.dynamic else static_regions
                regions.append(
                    HitRegion(node.hit_id, node.kind, node.node_id, x, y, node.width, node.height)
                )
            for dx, dy, child in node.children:
                visit(child, x + dx, y + dy)

        visit(frame.root, 0.0, 0.0)
        frame.stencils = order_for_drawing(static) + order_for_drawing(dynamic)
        frame.hit_regions = static_regions + dynamic_regions


def _box_shape(
    x: float,
    y: float,
    width: float,
    height: float,
    color: Optional[RGBA],
    radius: Optional[float],
    border: Optional[RGBA],
    key: str,
) -> Stencil:
    if radius:
        return RoundedRect(x, y, width, height, color, None, key, radius=radius, border_color=border)
    return Rect(x, y, width, height, color, None, key, border_color=border)


def _align_offset(align: Optional[str], free: float, axis: str) -> float:
    """Cross-axis offset of a child within free space."""
    if free <= 0 or align is None:
        return 0.0
    if align == "center":
        return free / 2
    end = "right" if axis == VERTICAL else "bottom"
    if align == end:
        return free
    return 0.0


def _number(name: str, value: Any) -> float:
    if isinstance(value, Dimension):
        if not value.is_absolute:
            raise StyleError(f"stencil parameter '{name}' must be in pixels, got {value}")
        return value.value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise StyleError(f"stencil parameter '{name}' must be a number, got {value!r}")
    return float(value)


def stencil_params(node: StencilNode) -> Tuple[Tuple[str, Any], ...]:
    """
    Normalize a stencil node's literal parameters.

    Numbers become floats, colours RGBA tuples; ``size`` and ``radius``
    are folded into width and height.

    Raises:
        StyleError: If a parameter has the wrong type.
    """
    params: Dict[str, Any] = {}
    for name, value in node.params:
        if name in ("x", "y", "width", "height", "depth", "font_size", "radius"):
            params[name] = _number(name, value)
        elif name == "size":
            if not isinstance(value, (list, tuple)) or len(value) != 2:
                raise StyleError(f"stencil size must be [width, height], got {value!r}")
            params["width"] = _number("width", value[0])
            params["height"] = _number("height", value[1])
        elif name == "color":
            params[name] = parse_color(value)
        elif name in ("text", "path"):
            params[name] = str(value)
    if node.shape == "circle" and "radius" in params:
        params["width"] = params["height"] = 2 * params["radius"]
    return tuple(sorted(params.items()))


def _describe_expr(expr: Any) -> str:
    segments = getattr(expr, "segments", None)
    return ".".join(segments) if segments else type(expr).__name__


__all__ = [
    "Frame",
    "HitRegion",
    "LayoutContext",
    "LayoutDiffEngine",
    "LayoutParams",
    "LayoutedNode",
    "NodeHash",
    "NodeId",
    "ResolvedNode",
]
