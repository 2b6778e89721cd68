"""
Component expansion.

Components are templates expanded statically: every ComponentCallNode is
replaced by the component's body with the call's arguments substituted for
the parameter names. Expansion is a pure function of the definition, the
arguments and the call-site style, so the same call always produces a
structurally identical subtree.

Binding order:
1. Named arguments bind to the parameter with that name.
2. Positional arguments bind to the remaining parameters in declared order.
3. Unbound parameters take their declared default.
4. Optional parameters without a default bind to Absent.
5. Anything still unbound is a SemanticError.

Style precedence on the body's top-level nodes, lowest to highest:
inline style < component default style < call-site style.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from .errors import SemanticError
from .models import (
    Absent,
    ActionNode,
    ArrayExpr,
    BinaryOp,
    ButtonNode,
    Call,
    Component,
    ComponentCallNode,
    Expr,
    ForEachNode,
    IfNode,
    Len,
    ListAppendAction,
    ListInsertAction,
    ListRemoveAction,
    Literal,
    MatchArm,
    MatchCase,
    MatchExpr,
    MatchNode,
    Member,
    NativeCallNode,
    ObjectExpr,
    Path,
    SetAction,
    TextInputNode,
    TextNode,
    UnaryOp,
    ViewNode,
    map_bodies,
    walk,
)
from .style import Dimension, StyleSpec

logger = logging.getLogger(__name__)

Bindings = Mapping[str, Expr]


def _literal_type_ok(param_type: str, expr: Expr) -> Optional[bool]:
    """Check a literal argument against a declared type; None if not literal."""
    if isinstance(expr, Literal):
        value = expr.value
        if param_type == "String":
            return isinstance(value, str)
        if param_type == "Number":
            return isinstance(value, (int, float, Dimension)) and not isinstance(value, bool)
        if param_type == "Bool":
            return isinstance(value, bool)
        return param_type == "Any"
    if isinstance(expr, ArrayExpr):
        return param_type in ("Array", "Any")
    if isinstance(expr, ObjectExpr):
        return param_type in ("Object", "Any")
    if isinstance(expr, Call):
        return param_type in ("Function", "Any")
    return None


def bind_arguments(component: Component, call: ComponentCallNode) -> Dict[str, Expr]:
    """
    Bind a call's arguments to the component's parameters.

    Args:
        component: The component definition.
        call: The call site.

    Returns:
        Mapping of parameter name to the bound expression.

    Raises:
        SemanticError: On unknown or surplus arguments, a missing required
            parameter, a literal of the wrong type, or an enum mismatch.
    """
    location = f"{call.name} (line {call.line})" if call.line else call.name
    params = {param.name: param for param in component.params}
    bound: Dict[str, Expr] = {}

    for name, value in call.named_args:
        if name not in params:
            raise SemanticError(f"Component '{component.name}' has no parameter '{name}'", location)
        if name in bound:
            raise SemanticError(f"Parameter '{name}' bound more than once", location)
        bound[name] = value

    remaining = [param for param in component.params if param.name not in bound]
    if len(call.args) > len(remaining):
        raise SemanticError(
            f"Component '{component.name}' takes {len(component.params)} argument(s), "
            f"got {len(call.args) + len(call.named_args)}",
            location,
        )
    for param, value in zip(remaining, call.args):
        bound[param.name] = value

    for param in component.params:
        if param.name in bound:
            continue
        if param.default is not None:
            bound[param.name] = param.default
        elif param.optional:
            bound[param.name] = Absent()
        else:
            raise SemanticError(
                f"Missing required parameter '{param.name}' for component '{component.name}'",
                location,
            )

    for param in component.params:
        value = bound[param.name]
        if isinstance(value, Absent):
            continue
        if param.enum_values is not None and isinstance(value, Literal):
            if value.value not in param.enum_values:
                allowed = ", ".join(repr(v) for v in param.enum_values)
                raise SemanticError(
                    f"Value {value.value!r} for parameter '{param.name}' is not one of {allowed}",
                    location,
                )
        if param.type is not None and _literal_type_ok(param.type, value) is False:
            raise SemanticError(
                f"Parameter '{param.name}' of component '{component.name}' expects "
                f"{param.type}",
                location,
            )

    return bound


# Substitution


def substitute_expr(expr: Expr, bindings: Bindings) -> Expr:
    """Replace parameter references in expr with their bound expressions."""
    if isinstance(expr, Path):
        if expr.root not in bindings:
            return expr
        return _access(bindings[expr.root], expr.segments[1:], expr)
    if isinstance(expr, Member):
        return _access(substitute_expr(expr.base, bindings), expr.segments, expr)
    if isinstance(expr, ArrayExpr):
        return ArrayExpr(tuple(substitute_expr(item, bindings) for item in expr.items))
    if isinstance(expr, ObjectExpr):
        return ObjectExpr(tuple((k, substitute_expr(v, bindings)) for k, v in expr.entries))
    if isinstance(expr, BinaryOp):
        return BinaryOp(
            expr.op, substitute_expr(expr.left, bindings), substitute_expr(expr.right, bindings)
        )
    if isinstance(expr, UnaryOp):
        return UnaryOp(expr.op, substitute_expr(expr.operand, bindings))
    if isinstance(expr, Len):
        return Len(substitute_expr(expr.target, bindings))
    if isinstance(expr, MatchExpr):
        return MatchExpr(
            substitute_expr(expr.subject, bindings),
            tuple(
                MatchArm(substitute_expr(arm.pattern, bindings), substitute_expr(arm.value, bindings))
                for arm in expr.arms
            ),
            substitute_expr(expr.default, bindings) if expr.default is not None else None,
        )
    if isinstance(expr, Call):
        return substitute_call(expr, bindings)
    return expr


def substitute_call(call: Call, bindings: Bindings) -> Call:
    return Call(call.name, tuple(substitute_expr(arg, bindings) for arg in call.args))


def _access(value: Expr, tail: Tuple[str, ...], original: Expr) -> Expr:
    if not tail:
        return value
    if isinstance(value, ObjectExpr):
        field_value = value.get(tail[0])
        if field_value is None:
            name = original.dotted if isinstance(original, Path) else ".".join(tail)
            raise SemanticError(f"Object argument has no field '{tail[0]}' (in '{name}')")
        return _access(field_value, tail[1:], original)
    if isinstance(value, Path):
        return Path(value.segments + tail)
    if isinstance(value, Member):
        return Member(value.base, value.segments + tail)
    return Member(value, tail)


def free_roots(expr: Expr) -> Set[str]:
    """Root names of every path referenced by expr."""
    if isinstance(expr, Path):
        return {expr.root}
    if isinstance(expr, Member):
        return free_roots(expr.base)
    if isinstance(expr, ArrayExpr):
        parts = list(expr.items)
    elif isinstance(expr, ObjectExpr):
        parts = [value for _, value in expr.entries]
    elif isinstance(expr, BinaryOp):
        parts = [expr.left, expr.right]
    elif isinstance(expr, UnaryOp):
        parts = [expr.operand]
    elif isinstance(expr, Len):
        parts = [expr.target]
    elif isinstance(expr, MatchExpr):
        parts = [expr.subject]
        for arm in expr.arms:
            parts.extend((arm.pattern, arm.value))
        if expr.default is not None:
            parts.append(expr.default)
    elif isinstance(expr, Call):
        parts = list(expr.args)
    else:
        return set()
    roots: Set[str] = set()
    for part in parts:
        roots |= free_roots(part)
    return roots


def _loop_vars(nodes: Sequence[ViewNode]) -> Set[str]:
    return {node.var for node in walk(nodes) if isinstance(node, ForEachNode)}


def _fresh_name(var: str, taken: Set[str]) -> str:
    index = 1
    while f"{var}__{index}" in taken:
        index += 1
    return f"{var}__{index}"


def substitute_style(style: Optional[StyleSpec], bindings: Bindings) -> Optional[StyleSpec]:
    if style is None:
        return None
    return StyleSpec(tuple((k, substitute_expr(v, bindings)) for k, v in style.entries))


def substitute_node(node: ViewNode, bindings: Bindings) -> ViewNode:
    """Replace parameter references throughout a view node."""
    if not bindings:
        return node

    def sub(expr: Expr) -> Expr:
        return substitute_expr(expr, bindings)

    def body(nodes: Tuple[ViewNode, ...]) -> Tuple[ViewNode, ...]:
        return tuple(substitute_node(child, bindings) for child in nodes)

    style = substitute_style(node.style, bindings)

    if isinstance(node, TextNode):
        return replace(node, args=tuple(sub(a) for a in node.args), style=style)
    if isinstance(node, ButtonNode):
        onclick = substitute_call(node.onclick, bindings) if node.onclick else None
        return replace(node, label=sub(node.label), onclick=onclick, style=style)
    if isinstance(node, TextInputNode):
        value = sub(node.value) if node.value is not None else None
        return replace(node, value=value, style=style)
    if isinstance(node, ForEachNode):
        # The loop variable shadows a parameter of the same name.
        inner = {k: v for k, v in bindings.items() if k != node.var}
        var = node.var
        captured = set()
        for value in inner.values():
            captured |= free_roots(value)
        if var in captured:
            # An argument refers to a caller variable with this name.
            var = _fresh_name(var, captured | _loop_vars(node.body))
            inner[node.var] = Path((var,))
        return replace(
            node,
            var=var,
            iterable=sub(node.iterable),
            body=tuple(substitute_node(child, inner) for child in node.body),
            style=style,
        )
    if isinstance(node, IfNode):
        node = replace(node, condition=sub(node.condition), style=style)
        return map_bodies(node, body)
    if isinstance(node, MatchNode):
        cases = tuple(MatchCase(sub(c.pattern), body(c.body)) for c in node.cases)
        default = body(node.default) if node.default is not None else None
        return replace(node, subject=sub(node.subject), cases=cases, default=default, style=style)
    if isinstance(node, ComponentCallNode):
        return replace(
            node,
            args=tuple(sub(a) for a in node.args),
            named_args=tuple((k, sub(v)) for k, v in node.named_args),
            style=style,
        )
    if isinstance(node, NativeCallNode):
        return replace(node, call=substitute_call(node.call, bindings))
    if isinstance(node, (SetAction, ListAppendAction, ListRemoveAction)):
        return replace(node, value=sub(node.value))
    if isinstance(node, ListInsertAction):
        return replace(node, index=sub(node.index), value=sub(node.value))
    if isinstance(node, ActionNode):
        return node
    return map_bodies(replace(node, style=style), body)


def apply_style(
    node: ViewNode, base: StyleSpec, override: StyleSpec, floor: Optional[StyleSpec] = None
) -> ViewNode:
    """
    Merge component and call-site styles onto a rendered node.

    floor holds entries below even the inline style (the component font).

    Control nodes are transparent, so the merge descends into their
    branches instead.
    """
    if isinstance(node, (ActionNode, NativeCallNode)):
        return node
    if isinstance(node, (IfNode, ForEachNode, MatchNode)):
        return map_bodies(
            node, lambda nodes: tuple(apply_style(n, base, override, floor) for n in nodes)
        )
    inline = (floor or StyleSpec()).merged(node.style)
    return replace(node, style=inline.merged(base).merged(override))


class ComponentExpander:
    """Inlines component calls given the set of known components."""

    def __init__(self, components: Mapping[str, Component]):
        self.components = components

    def expand_nodes(
        self, nodes: Sequence[ViewNode], stack: Tuple[str, ...] = ()
    ) -> Tuple[ViewNode, ...]:
        expanded: List[ViewNode] = []
        for node in nodes:
            if isinstance(node, ComponentCallNode):
                expanded.extend(self.expand_call(node, stack))
            else:
                expanded.append(
                    map_bodies(node, lambda body: self.expand_nodes(body, stack))
                )
        return tuple(expanded)

    def expand_call(
        self, call: ComponentCallNode, stack: Tuple[str, ...] = ()
    ) -> Tuple[ViewNode, ...]:
        component = self.components.get(call.name)
        if component is None:
            raise SemanticError(f"Undefined component '{call.name}'", f"line {call.line}")
        return self.expand_component(component, call, stack)

    def expand_component(
        self, component: Component, call: ComponentCallNode, stack: Tuple[str, ...] = ()
    ) -> Tuple[ViewNode, ...]:
        if component.name in stack:
            cycle = " -> ".join(stack + (component.name,))
            raise SemanticError(f"Recursive component expansion: {cycle}")

        bindings = bind_arguments(component, call)
        base = substitute_style(component.default_style or StyleSpec(), bindings)
        floor = StyleSpec((("font", Literal(component.font)),)) if component.font else None
        override = call.style or StyleSpec()

        body = tuple(
            apply_style(substitute_node(node, bindings), base, override, floor)
            for node in component.body
        )
        return self.expand_nodes(body, stack + (component.name,))


def expand_component(
    component: Component,
    call: ComponentCallNode,
    components: Mapping[str, Component],
) -> Tuple[ViewNode, ...]:
    """
    Expand a single component call into view nodes.

    Args:
        component: The called component.
        call: The call site (positional/named arguments and style).
        components: Every known component, for nested calls.

    Returns:
        The inlined body, free of component calls.

    Raises:
        SemanticError: On binding failures, undefined nested components,
            or recursion.
    """
    return ComponentExpander(components).expand_component(component, call)


def expand_nodes(
    nodes: Sequence[ViewNode], components: Mapping[str, Component]
) -> Tuple[ViewNode, ...]:
    """Expand every component call in a node list."""
    return ComponentExpander(components).expand_nodes(nodes)
