"""
AST models for the Nilo language.

This module contains the dataclasses produced by the parser and consumed by
the expander, validator, evaluator and layout engine. Every node is frozen
so that two structurally identical trees compare equal; source positions
are excluded from comparison.

Classes:
    Expressions: Literal, Absent, Path, Member, ArrayExpr, ObjectExpr,
        BinaryOp, UnaryOp, Len, MatchExpr, Call.
    View nodes: TextNode, ButtonNode, ImageNode, TextInputNode, VStackNode,
        HStackNode, SpacingNode, SpacingAutoNode, DynamicSectionNode, IfNode,
        ForEachNode, MatchNode, ComponentCallNode, NativeCallNode,
        StencilNode and the state/navigation actions.
    Definitions: Transition, Flow, NamespacedFlow, When, Timeline,
        ComponentParam, Component, App.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, ClassVar, Dict, Iterable, Iterator, List, Optional, Tuple

from .style import StyleSpec

# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Expr:
    """Base class for expressions."""


@dataclass(frozen=True)
class Literal(Expr):
    """A string, number, boolean or Dimension literal."""

    value: Any


@dataclass(frozen=True)
class Absent(Expr):
    """Value of an optional component parameter that was not supplied."""


@dataclass(frozen=True)
class Path(Expr):
    """
    A dotted path such as ``state.user.name`` or ``item.title``.

    The first segment is the root: ``state`` for application state, or the
    name of a loop variable / component parameter.
    """

    segments: Tuple[str, ...]

    @property
    def root(self) -> str:
        return self.segments[0]

    @property
    def dotted(self) -> str:
        return ".".join(self.segments)

    @property
    def is_state(self) -> bool:
        return self.segments[0] == "state"


@dataclass(frozen=True)
class Member(Expr):
    """Field access into the value of an arbitrary expression."""

    base: Expr
    segments: Tuple[str, ...]


@dataclass(frozen=True)
class ArrayExpr(Expr):
    items: Tuple[Expr, ...] = ()


@dataclass(frozen=True)
class ObjectExpr(Expr):
    entries: Tuple[Tuple[str, Expr], ...] = ()

    def get(self, key: str) -> Optional[Expr]:
        for name, value in self.entries:
            if name == key:
                return value
        return None


@dataclass(frozen=True)
class BinaryOp(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class UnaryOp(Expr):
    op: str
    operand: Expr


@dataclass(frozen=True)
class Len(Expr):
    """``target.len()`` - length of a list-typed value."""

    target: Expr


@dataclass(frozen=True)
class MatchArm:
    pattern: Expr
    value: Expr


@dataclass(frozen=True)
class MatchExpr(Expr):
    subject: Expr
    arms: Tuple[MatchArm, ...] = ()
    default: Optional[Expr] = None


@dataclass(frozen=True)
class Call(Expr):
    """A call to a registered native function: ``name!(args)`` or ``name(args)``."""

    name: str
    args: Tuple[Expr, ...] = ()


# ---------------------------------------------------------------------------
# View nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ViewNode:
    """Base class for view nodes. Style and position are keyword-only."""

    kind: ClassVar[str] = "node"

    style: Optional[StyleSpec] = field(default=None, kw_only=True)
    line: int = field(default=0, kw_only=True, compare=False)
    column: int = field(default=0, kw_only=True, compare=False)

    @property
    def children(self) -> Tuple["ViewNode", ...]:
        return ()


@dataclass(frozen=True)
class TextNode(ViewNode):
    kind: ClassVar[str] = "text"

    template: str
    args: Tuple[Expr, ...] = ()


@dataclass(frozen=True)
class ButtonNode(ViewNode):
    kind: ClassVar[str] = "button"

    id: str
    label: Expr
    onclick: Optional[Call] = None


@dataclass(frozen=True)
class ImageNode(ViewNode):
    kind: ClassVar[str] = "image"

    path: str


@dataclass(frozen=True)
class TextInputNode(ViewNode):
    kind: ClassVar[str] = "text_input"

    id: str
    placeholder: Optional[str] = None
    value: Optional[Expr] = None
    multiline: bool = False
    max_length: Optional[int] = None


@dataclass(frozen=True)
class StackNode(ViewNode):
    """A container laying out its children sequentially along one axis."""

    axis: ClassVar[str] = "vertical"

    body: Tuple[ViewNode, ...] = ()

    @property
    def children(self) -> Tuple[ViewNode, ...]:
        return self.body


@dataclass(frozen=True)
class VStackNode(StackNode):
    kind: ClassVar[str] = "vstack"
    axis: ClassVar[str] = "vertical"


@dataclass(frozen=True)
class HStackNode(StackNode):
    kind: ClassVar[str] = "hstack"
    axis: ClassVar[str] = "horizontal"


@dataclass(frozen=True)
class SpacingNode(ViewNode):
    kind: ClassVar[str] = "spacing"

    amount: Any


@dataclass(frozen=True)
class SpacingAutoNode(ViewNode):
    kind: ClassVar[str] = "spacing_auto"


@dataclass(frozen=True)
class DynamicSectionNode(ViewNode):
    """A subtree recomputed every frame, never served from the layout cache."""

    kind: ClassVar[str] = "dynamic"

    name: str
    body: Tuple[ViewNode, ...] = ()

    @property
    def children(self) -> Tuple[ViewNode, ...]:
        return self.body


@dataclass(frozen=True)
class IfNode(ViewNode):
    kind: ClassVar[str] = "if"

    condition: Expr
    then_body: Tuple[ViewNode, ...] = ()
    else_body: Optional[Tuple[ViewNode, ...]] = None

    @property
    def children(self) -> Tuple[ViewNode, ...]:
        return self.then_body + (self.else_body or ())


@dataclass(frozen=True)
class ForEachNode(ViewNode):
    kind: ClassVar[str] = "foreach"

    var: str
    iterable: Expr
    body: Tuple[ViewNode, ...] = ()

    @property
    def children(self) -> Tuple[ViewNode, ...]:
        return self.body


@dataclass(frozen=True)
class MatchCase:
    pattern: Expr
    body: Tuple[ViewNode, ...] = ()


@dataclass(frozen=True)
class MatchNode(ViewNode):
    kind: ClassVar[str] = "match"

    subject: Expr
    cases: Tuple[MatchCase, ...] = ()
    default: Optional[Tuple[ViewNode, ...]] = None

    @property
    def children(self) -> Tuple[ViewNode, ...]:
        nodes: Tuple[ViewNode, ...] = ()
        for case in self.cases:
            nodes += case.body
        return nodes + (self.default or ())


@dataclass(frozen=True)
class ComponentCallNode(ViewNode):
    kind: ClassVar[str] = "component"

    name: str
    args: Tuple[Expr, ...] = ()
    named_args: Tuple[Tuple[str, Expr], ...] = ()


@dataclass(frozen=True)
class NativeCallNode(ViewNode):
    kind: ClassVar[str] = "native"

    call: Call


@dataclass(frozen=True)
class StencilNode(ViewNode):
    """A low-level draw primitive with literal parameters."""

    kind: ClassVar[str] = "stencil"

    shape: str
    params: Tuple[Tuple[str, Any], ...] = ()

    def param(self, name: str, default: Any = None) -> Any:
        for key, value in self.params:
            if key == name:
                return value
        return default


def map_bodies(
    node: ViewNode, mapper: Callable[[Tuple[ViewNode, ...]], Tuple[ViewNode, ...]]
) -> ViewNode:
    """
    Return node with every nested body passed through mapper.

    Leaf nodes are returned unchanged.
    """
    if isinstance(node, (StackNode, DynamicSectionNode, ForEachNode)):
        return replace(node, body=mapper(node.body))
    if isinstance(node, IfNode):
        else_body = mapper(node.else_body) if node.else_body is not None else None
        return replace(node, then_body=mapper(node.then_body), else_body=else_body)
    if isinstance(node, MatchNode):
        cases = tuple(MatchCase(case.pattern, mapper(case.body)) for case in node.cases)
        default = mapper(node.default) if node.default is not None else None
        return replace(node, cases=cases, default=default)
    return node


def walk(nodes: Iterable[ViewNode]) -> Iterator[ViewNode]:
    """Yield every node in nodes and their descendants, depth first."""
    for node in nodes:
        yield node
        yield from walk(node.children)


# Actions: state mutation and navigation. They render nothing.


@dataclass(frozen=True)
class ActionNode(ViewNode):
    """Base class for nodes that act on state or navigation."""


@dataclass(frozen=True)
class SetAction(ActionNode):
    kind: ClassVar[str] = "set"

    path: Path
    value: Expr


@dataclass(frozen=True)
class ToggleAction(ActionNode):
    kind: ClassVar[str] = "toggle"

    path: Path


@dataclass(frozen=True)
class ListAppendAction(ActionNode):
    kind: ClassVar[str] = "append"

    path: Path
    value: Expr


@dataclass(frozen=True)
class ListInsertAction(ActionNode):
    kind: ClassVar[str] = "insert"

    path: Path
    index: Expr
    value: Expr


@dataclass(frozen=True)
class ListRemoveAction(ActionNode):
    kind: ClassVar[str] = "remove"

    path: Path
    value: Expr


@dataclass(frozen=True)
class ListClearAction(ActionNode):
    kind: ClassVar[str] = "clear"

    path: Path


@dataclass(frozen=True)
class NavigateAction(ActionNode):
    kind: ClassVar[str] = "navigate"

    target: str


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClickEvent:
    """``user.click(target)``: a click on the button with this id."""

    target: str


@dataclass(frozen=True)
class When:
    event: ClickEvent
    actions: Tuple[ViewNode, ...] = ()
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class Transition:
    """Edges from every source to every target."""

    sources: Tuple[str, ...]
    targets: Tuple[str, ...]
    line: int = field(default=0, compare=False)

    def pairs(self) -> List[Tuple[str, str]]:
        return [(s, t) for s in self.sources for t in self.targets]


@dataclass(frozen=True)
class Flow:
    start: str
    transitions: Tuple[Transition, ...] = ()
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class NamespacedFlow:
    """``flow Name { ... }`` before its names are qualified."""

    name: str
    start: str
    transitions: Tuple[Transition, ...] = ()
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class Timeline:
    name: str
    body: Tuple[ViewNode, ...] = ()
    whens: Tuple[When, ...] = ()
    font: Optional[str] = None
    line: int = field(default=0, compare=False)


@dataclass(frozen=True)
class ComponentParam:
    """
    A component parameter.

    Attributes:
        name: Parameter name referenced in the body.
        type: Declared type name (String, Number, Bool, Array, Object,
            Function, Any) or None.
        default: Default value expression, used when no argument is bound.
        optional: May be absent; binds to Absent when not supplied.
        enum_values: Allowed string values, for enumerated parameters.
    """

    name: str
    type: Optional[str] = None
    default: Optional[Expr] = None
    optional: bool = False
    enum_values: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class Component:
    name: str
    params: Tuple[ComponentParam, ...] = ()
    body: Tuple[ViewNode, ...] = ()
    default_style: Optional[StyleSpec] = None
    whens: Tuple[When, ...] = ()
    font: Optional[str] = None
    line: int = field(default=0, compare=False)


@dataclass
class App:
    """A compiled program: flows, timelines and components."""

    flows: List[Flow] = field(default_factory=list)
    timelines: List[Timeline] = field(default_factory=list)
    components: List[Component] = field(default_factory=list)

    @property
    def start(self) -> Optional[str]:
        return self.flows[0].start if self.flows else None

    def timeline(self, name: str) -> Optional[Timeline]:
        for timeline in self.timelines:
            if timeline.name == name:
                return timeline
        return None

    def component(self, name: str) -> Optional[Component]:
        for component in self.components:
            if component.name == name:
                return component
        return None

    def component_map(self) -> Dict[str, Component]:
        # First definition wins; duplicates are reported by the validator.
        mapping: Dict[str, Component] = {}
        for component in self.components:
            mapping.setdefault(component.name, component)
        return mapping
