"""Unit tests for the parser module."""

import pytest

from nilo.errors import ParseError
from nilo.models import (
    BinaryOp,
    ButtonNode,
    Call,
    ComponentCallNode,
    DynamicSectionNode,
    ForEachNode,
    HStackNode,
    IfNode,
    ImageNode,
    Len,
    ListAppendAction,
    ListClearAction,
    ListInsertAction,
    ListRemoveAction,
    Literal,
    MatchExpr,
    MatchNode,
    NamespacedFlow,
    NativeCallNode,
    NavigateAction,
    ObjectExpr,
    Path,
    SetAction,
    SpacingAutoNode,
    SpacingNode,
    StencilNode,
    TextInputNode,
    TextNode,
    ToggleAction,
    UnaryOp,
    VStackNode,
)
from nilo.parser import Parser, parse_nilo
from nilo.style import Dimension, Unit


def body_of(source):
    """Parse a timeline body and return its nodes."""
    result = parse_nilo(f"timeline T {{ {source} }}")
    return result.timelines[0].body


def expr_of(text):
    """Parse a single expression through a Text argument."""
    (node,) = body_of(f'Text("{{}}", {text})')
    return node.args[0]


class TestFlows:
    """Tests for flow definitions."""

    def test_anonymous_flow(self):
        """Test a flow with a start and transitions."""
        result = parse_nilo("flow { start: A; A -> B, B -> C }")
        (flow,) = result.flows
        assert flow.start == "A"
        assert [t.pairs() for t in flow.transitions] == [[("A", "B")], [("B", "C")]]

    def test_multi_endpoint_transition(self):
        """Test list endpoints expand to every pair."""
        result = parse_nilo("flow { start: A\n [A, B] -> [C, D] }")
        (transition,) = result.flows[0].transitions
        assert transition.pairs() == [("A", "C"), ("A", "D"), ("B", "C"), ("B", "D")]

    def test_named_flow(self):
        """Test that a named flow parses as a NamespacedFlow."""
        result = parse_nilo("flow Auth { start: Login\n Login -> Signup }")
        assert result.flows == []
        (flow,) = result.namespaced_flows
        assert isinstance(flow, NamespacedFlow)
        assert flow.name == "Auth"
        assert flow.start == "Login"

    def test_qualified_names(self):
        """Test that :: joins qualified identifiers."""
        result = parse_nilo("flow { start: Auth::Login\n Auth::Login -> Home }")
        assert result.flows[0].start == "Auth::Login"

    def test_missing_start(self):
        """Test that a flow without start: is rejected."""
        with pytest.raises(ParseError) as exc_info:
            parse_nilo("flow { A -> B }")
        assert "start" in str(exc_info.value)

    def test_duplicate_start(self):
        """Test that two start declarations are rejected."""
        with pytest.raises(ParseError):
            parse_nilo("flow { start: A\n start: B }")


class TestDefinitions:
    """Tests for timelines, components and namespaces."""

    def test_timeline_with_font_and_when(self):
        """Test a timeline's font and click handler."""
        result = parse_nilo(
            """
            timeline Home {
                font: "Inter"
                Button(id: go, label: "Go")
                when user.click(go) { set state.count = 1 }
            }
            """
        )
        timeline = result.timelines[0]
        assert timeline.font == "Inter"
        assert len(timeline.body) == 1
        (when,) = timeline.whens
        assert when.event.target == "go"
        assert isinstance(when.actions[0], SetAction)

    def test_when_with_string_target(self):
        """Test that a click target may be a string."""
        result = parse_nilo('timeline T { when user.click("b1") { toggle state.on } }')
        assert result.timelines[0].whens[0].event.target == "b1"

    def test_when_rejects_view_nodes(self):
        """Test that only actions are allowed in when blocks."""
        with pytest.raises(ParseError) as exc_info:
            parse_nilo('timeline T { when user.click(b) { Text("no") } }')
        assert "Only actions" in str(exc_info.value)

    def test_when_only_at_top_level(self):
        """Test that when is rejected inside nested blocks."""
        with pytest.raises(ParseError):
            parse_nilo("timeline T { VStack { when user.click(b) { toggle state.x } } }")

    def test_unknown_event(self):
        """Test that events other than click are rejected."""
        with pytest.raises(ParseError):
            parse_nilo("timeline T { when user.hover(b) { toggle state.x } }")

    def test_component_params(self):
        """Test typed, optional, enum and defaulted parameters."""
        result = parse_nilo(
            """
            component Badge(label: String, count: Number?, size: ("s" | "m") = "s",
                            extra, style: { padding: 2 }) {
                Text(label)
            }
            """
        )
        component = result.components[0]
        label, count, size, extra = component.params
        assert (label.name, label.type, label.optional) == ("label", "String", False)
        assert count.type == "Number" and count.optional
        assert size.enum_values == ("s", "m")
        assert size.default == Literal("s")
        assert extra.type is None
        assert component.default_style.as_dict() == {"padding": Literal(2)}

    def test_unknown_param_type(self):
        """Test that an unknown type name is a parse error."""
        with pytest.raises(ParseError):
            parse_nilo("component C(x: Widget) { Text(x) }")

    def test_namespace_block(self):
        """Test that namespace blocks collect timelines and components."""
        result = parse_nilo(
            """
            namespace Auth {
                timeline Login { Text("login") }
                component Field(name) { Text(name) }
            }
            """
        )
        (namespace,) = result.namespaces
        assert namespace.name == "Auth"
        assert [t.name for t in namespace.timelines] == ["Login"]
        assert [c.name for c in namespace.components] == ["Field"]

    def test_unexpected_top_level(self):
        """Test the error for an unknown top-level keyword."""
        with pytest.raises(ParseError) as exc_info:
            parse_nilo("widget X {}")
        assert "Expected 'flow'" in str(exc_info.value)
        assert exc_info.value.line == 1


class TestViewNodes:
    """Tests for view node parsing."""

    def test_text_with_args_and_style(self):
        """Test Text template, arguments and style."""
        (node,) = body_of('Text("Hi {}", state.name, style: { color: "red" })')
        assert isinstance(node, TextNode)
        assert node.template == "Hi {}"
        assert node.args == (Path(("state", "name")),)
        assert node.style.as_dict() == {"color": Literal("red")}

    def test_text_with_expression(self):
        """Test that a non-string first argument uses a single placeholder."""
        (node,) = body_of("Text(state.title)")
        assert node.template == "{}"
        assert node.args == (Path(("state", "title")),)

    def test_button(self):
        """Test Button id, label and onclick."""
        (node,) = body_of('Button(id: save, label: "Save", onclick: log("saved"))')
        assert isinstance(node, ButtonNode)
        assert node.id == "save"
        assert node.label == Literal("Save")
        assert node.onclick == Call("log", (Literal("saved"),))

    def test_button_positional(self):
        """Test Button with positional id and label."""
        (node,) = body_of('Button("ok", "OK")')
        assert (node.id, node.label) == ("ok", Literal("OK"))

    def test_button_requires_label(self):
        """Test that Button without a label is rejected."""
        with pytest.raises(ParseError):
            body_of("Button(id: x)")

    def test_image(self):
        """Test Image path."""
        (node,) = body_of('Image("logo.png", style: { width: 20 })')
        assert isinstance(node, ImageNode)
        assert node.path == "logo.png"

    def test_text_input(self):
        """Test TextInput named arguments."""
        (node,) = body_of(
            'TextInput(id: name, placeholder: "Name", value: state.name, '
            "multiline: true, max_length: 10)"
        )
        assert isinstance(node, TextInputNode)
        assert node.id == "name"
        assert node.placeholder == "Name"
        assert node.value == Path(("state", "name"))
        assert node.multiline is True
        assert node.max_length == 10

    def test_stacks(self):
        """Test VStack and HStack with and without style."""
        (outer,) = body_of('VStack(style: { spacing: 4 }) { HStack { Text("a") Text("b") } }')
        assert isinstance(outer, VStackNode)
        assert outer.style.as_dict() == {"spacing": Literal(4)}
        (inner,) = outer.body
        assert isinstance(inner, HStackNode)
        assert len(inner.body) == 2

    def test_spacing(self):
        """Test Spacing with a number and with a dimension."""
        plain, relative, auto = body_of("Spacing(10) Spacing(5%) SpacingAuto")
        assert isinstance(plain, SpacingNode)
        assert plain.amount == Dimension.px(10)
        assert relative.amount == Dimension(5.0, Unit.PERCENT)
        assert isinstance(auto, SpacingAutoNode)

    def test_dynamic_section(self):
        """Test a named dynamic section."""
        (node,) = body_of('dynamic_section clock { Text("tick") }')
        assert isinstance(node, DynamicSectionNode)
        assert node.name == "clock"
        assert len(node.body) == 1

    def test_if_else_chain(self):
        """Test if / else if / else."""
        (node,) = body_of(
            'if state.a { Text("a") } else if state.b { Text("b") } else { Text("c") }'
        )
        assert isinstance(node, IfNode)
        assert node.condition == Path(("state", "a"))
        (nested,) = node.else_body
        assert isinstance(nested, IfNode)
        assert len(nested.else_body) == 1

    def test_foreach(self):
        """Test foreach variable and iterable."""
        (node,) = body_of('foreach item in state.items { Text("{}", item) }')
        assert isinstance(node, ForEachNode)
        assert node.var == "item"
        assert node.iterable == Path(("state", "items"))

    def test_match_node(self):
        """Test match with cases and default."""
        (node,) = body_of(
            'match state.mode { case "a" { Text("A") } case "b" { Text("B") } default { Text("?") } }'
        )
        assert isinstance(node, MatchNode)
        assert [c.pattern for c in node.cases] == [Literal("a"), Literal("b")]
        assert len(node.default) == 1

    def test_component_call(self):
        """Test positional, named and style arguments of a component call."""
        (node,) = body_of('Card("Hi", subtitle: "there", style: { padding: 2 })')
        assert isinstance(node, ComponentCallNode)
        assert node.name == "Card"
        assert node.args == (Literal("Hi"),)
        assert node.named_args == (("subtitle", Literal("there")),)
        assert node.style is not None

    def test_qualified_component_call(self):
        """Test a namespaced component call."""
        (node,) = body_of('UI::Card("Hi")')
        assert node.name == "UI::Card"

    def test_positional_after_named(self):
        """Test that positional arguments may not follow named ones."""
        with pytest.raises(ParseError):
            body_of('Card(title: "a", "b")')

    def test_native_call_node(self):
        """Test a native call in view position."""
        (node,) = body_of("track!(state.page)")
        assert isinstance(node, NativeCallNode)
        assert node.call == Call("track", (Path(("state", "page")),))

    def test_stencil(self):
        """Test a stencil with literal named parameters."""
        (node,) = body_of('circle(x: 5, y: 5, radius: 10, color: "blue", depth: 0)')
        assert isinstance(node, StencilNode)
        assert node.shape == "circle"
        assert node.param("radius") == 10
        assert node.param("color") == "blue"

    def test_stencil_rejects_positional(self):
        """Test that stencils take named parameters only."""
        with pytest.raises(ParseError):
            body_of("rect(1, 2)")

    def test_unknown_node(self):
        """Test that a bare unknown identifier is rejected."""
        with pytest.raises(ParseError) as exc_info:
            body_of("Bogus")
        assert "Unknown view node" in str(exc_info.value)


class TestActions:
    """Tests for action parsing."""

    def test_state_actions(self):
        """Test every list and state action."""
        nodes = body_of(
            """
            set state.count = 1
            toggle state.flag
            toggle(state.other)
            append(state.items, "x")
            insert(state.items, 0, "y")
            remove(state.items, "x")
            clear(state.items)
            navigate_to(Auth::Login)
            """
        )
        assert [type(n) for n in nodes] == [
            SetAction,
            ToggleAction,
            ToggleAction,
            ListAppendAction,
            ListInsertAction,
            ListRemoveAction,
            ListClearAction,
            NavigateAction,
        ]
        assert nodes[4].index == Literal(0)
        assert nodes[-1].target == "Auth::Login"

    def test_action_requires_state_path(self):
        """Test that actions only target state paths."""
        with pytest.raises(ParseError) as exc_info:
            body_of("set item.name = 1")
        assert "state path" in str(exc_info.value)

    def test_list_action_arity(self):
        """Test the argument count check of list actions."""
        with pytest.raises(ParseError):
            body_of("insert(state.items, 1)")


class TestExpressions:
    """Tests for expression parsing."""

    def test_precedence(self):
        """Test that * binds tighter than + and + tighter than ==."""
        expr = expr_of("1 + 2 * 3 == 7")
        assert expr == BinaryOp(
            "==", BinaryOp("+", Literal(1), BinaryOp("*", Literal(2), Literal(3))), Literal(7)
        )

    def test_parentheses(self):
        """Test grouping with parentheses."""
        assert expr_of("(1 + 2) * 3") == BinaryOp(
            "*", BinaryOp("+", Literal(1), Literal(2)), Literal(3)
        )

    def test_unary_minus_folds_literals(self):
        """Test that negative literals fold and other operands do not."""
        assert expr_of("-5") == Literal(-5)
        assert expr_of("-state.x") == UnaryOp("-", Path(("state", "x")))

    def test_literals(self):
        """Test number, float, boolean and dimension literals."""
        assert expr_of("3") == Literal(3)
        assert expr_of("2.5") == Literal(2.5)
        assert expr_of("true") == Literal(True)
        assert expr_of("50%") == Literal(Dimension(50.0, Unit.PERCENT))

    def test_len(self):
        """Test .len() on a path."""
        assert expr_of("state.items.len()") == Len(Path(("state", "items")))

    def test_numeric_path_segment(self):
        """Test list index segments in paths."""
        assert expr_of("state.items.0") == Path(("state", "items", "0"))

    def test_object_literal(self):
        """Test object literals with identifier and string keys."""
        expr = expr_of('{ name: "a", "two words": 2 }')
        assert isinstance(expr, ObjectExpr)
        assert expr.get("name") == Literal("a")
        assert expr.get("two words") == Literal(2)

    def test_match_expression(self):
        """Test match expressions with => arms."""
        expr = expr_of('match state.n { case 1 => "one", default => "many" }')
        assert isinstance(expr, MatchExpr)
        assert expr.arms[0].value == Literal("one")
        assert expr.default == Literal("many")

    def test_native_call_expression(self):
        """Test both call forms in expressions."""
        assert expr_of("fmt!(1)") == Call("fmt", (Literal(1),))
        assert expr_of("fmt(1, 2)") == Call("fmt", (Literal(1), Literal(2)))


class TestParserClass:
    """Tests for the Parser object itself."""

    def test_reusable(self):
        """Test that one Parser parses several sources independently."""
        parser = Parser()
        first = parser.parse('timeline A { Text("a") }')
        second = parser.parse('timeline B { Text("b") }')
        assert [t.name for t in first.timelines] == ["A"]
        assert [t.name for t in second.timelines] == ["B"]

    def test_error_location(self):
        """Test that parse errors carry line and column."""
        with pytest.raises(ParseError) as exc_info:
            parse_nilo("timeline T {\n  Text(\"a\"\n}")
        assert exc_info.value.line == 3
        assert str(exc_info.value).startswith("Line 3, column 1:")
