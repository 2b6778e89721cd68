"""Unit tests for the incremental layout engine."""

import pytest

from nilo.compiler import compile_source
from nilo.evaluator import Evaluator
from nilo.layout import LayoutDiffEngine, LayoutParams, NodeHash, NodeId
from nilo.models import Call, Path
from nilo.state import AppState
from nilo.stencil import Circle, ImageStencil, Rect, RoundedRect, TextStencil
from nilo.tracer import LayoutTrace

RED = (1.0, 0.0, 0.0, 1.0)
WHITE = (1.0, 1.0, 1.0, 1.0)


class Harness:
    """One timeline body laid out repeatedly against mutable state."""

    def __init__(self, body, measurer, image_sizer, registry, state=None, **params):
        params.setdefault("viewport_width", 400)
        params.setdefault("viewport_height", 300)
        self.app = compile_source(body if "timeline" in body else f"timeline T {{ {body} }}")
        self.state = AppState(state)
        self.evaluator = Evaluator(self.state, registry)
        self.engine = LayoutDiffEngine(LayoutParams(**params), measurer, image_sizer)
        self.trace = None

    def frame(self):
        timeline = self.app.timelines[-1]
        self.trace = LayoutTrace()
        return self.engine.compute(
            timeline.body, self.evaluator, timeline.name, timeline.font, self.trace
        )


@pytest.fixture
def layout(measurer, image_sizer, registry):
    def factory(body, state=None, **params):
        return Harness(body, measurer, image_sizer, registry, state, **params)

    return factory


class TestNodeId:
    """Tests for NodeId."""

    def test_keys(self):
        """Test child and iteration segments."""
        root = NodeId.root()
        child = root.child(1, "foreach")
        assert root.key == "root"
        assert child.key == "root/1_foreach"
        assert child.iteration(2, 0, "text").key == "root/1_foreach/0_text_2"

    def test_parent(self):
        """Test walking up the id."""
        node = NodeId.root().child(0, "vstack").child(3, "text")
        assert node.parent.key == "root/0_vstack"
        assert NodeId.root().parent is None


class TestNodeHash:
    """Tests for NodeHash."""

    def test_stable(self):
        """Test that equal parts give equal hashes."""
        assert NodeHash.of("text", "a", ()) == NodeHash.of("text", "a", ())

    def test_sensitive(self):
        """Test that any part changes the hash."""
        assert NodeHash.of("text", "a") != NodeHash.of("text", "b")
        assert NodeHash.of("text", "a") != NodeHash.of("button", "a")


class TestLayoutParams:
    """Tests for LayoutParams validation."""

    def test_defaults(self):
        """Test default viewport."""
        assert LayoutParams().viewport == (800.0, 600.0)

    @pytest.mark.parametrize(
        "options",
        [{"viewport_width": 0}, {"default_font_size": -1}, {"default_spacing": -1}],
    )
    def test_invalid(self, options):
        """Test that invalid values are rejected."""
        with pytest.raises(ValueError):
            LayoutParams(**options)


class TestStacking:
    """Tests for stack layout."""

    def test_vertical(self, layout):
        """Test that root children stack vertically with the default gap."""
        frame = layout('Text("ab") Text("abcd")').frame()
        assert frame.box("root/0_text") == (0.0, 0.0, 16.0, 16.0)
        assert frame.box("root/1_text") == (0.0, 24.0, 32.0, 16.0)
        assert frame.root.size == (32.0, 40.0)
        assert frame.texts() == ["ab", "abcd"]

    def test_horizontal(self, layout):
        """Test HStack placement."""
        frame = layout('HStack { Text("ab") Text("abcd") }').frame()
        assert frame.box("root/0_hstack/0_text") == (0.0, 0.0, 16.0, 16.0)
        assert frame.box("root/0_hstack/1_text") == (24.0, 0.0, 32.0, 16.0)
        assert frame.box("root/0_hstack")[2:] == (56.0, 16.0)

    def test_padding_and_background(self, layout):
        """Test padding offsets children and background fills the box."""
        frame = layout('VStack(style: { padding: 10, background: "red" }) { Text("ab") }').frame()
        assert frame.box("root/0_vstack") == (0.0, 0.0, 36.0, 36.0)
        assert frame.box("root/0_vstack/0_text") == (10.0, 10.0, 16.0, 16.0)
        background = frame.stencils[0]
        assert isinstance(background, Rect)
        assert background.color == RED
        assert background.bounds == (0.0, 0.0, 36.0, 36.0)

    def test_custom_spacing(self, layout):
        """Test the spacing style."""
        frame = layout('VStack(style: { spacing: 2 }) { Text("a") Text("b") }').frame()
        assert frame.box("root/0_vstack/1_text")[1] == 18.0

    def test_margin(self, layout):
        """Test that margins offset the node and enlarge its slot."""
        frame = layout('Text("a", style: { margin: 5 }) Text("b")').frame()
        assert frame.box("root/0_text") == (5.0, 5.0, 8.0, 16.0)
        assert frame.box("root/1_text")[1] == 34.0
        assert frame.root.size == (18.0, 50.0)

    def test_align_center_and_right(self, layout):
        """Test cross-axis alignment in a vertical stack."""
        frame = layout(
            """
            VStack(style: { width: 100, align: "center" }) { Text("ab") }
            VStack(style: { width: 100, align: "right" }) { Text("ab") }
            """
        ).frame()
        assert frame.box("root/0_vstack/0_text")[0] == 42.0
        assert frame.box("root/1_vstack/0_text")[0] == 84.0

    def test_align_bottom(self, layout):
        """Test cross-axis alignment in a horizontal stack."""
        frame = layout('HStack(style: { height: 50, align: "bottom" }) { Text("a") }').frame()
        assert frame.box("root/0_hstack/0_text")[1] == 34.0

    def test_spacing_nodes(self, layout):
        """Test Spacing and SpacingAuto sizes along the stack axis."""
        frame = layout(
            'VStack(style: { spacing: 0 }) { Text("a") Spacing(20) Text("b") SpacingAuto Text("c") }'
        ).frame()
        assert frame.box("root/0_vstack/1_spacing")[2:] == (0.0, 20.0)
        assert frame.box("root/0_vstack/2_text")[1] == 36.0
        assert frame.box("root/0_vstack/3_spacing_auto")[3] == 12.0
        assert frame.box("root/0_vstack/4_text")[1] == 64.0

    def test_relative_spacing(self, layout):
        """Test a percentage spacing along the vertical axis."""
        frame = layout("Spacing(10%)").frame()
        assert frame.box("root/0_spacing")[3] == 30.0


class TestSizing:
    """Tests for explicit, relative and clamped sizes."""

    def test_percent_of_parent_available(self, layout):
        """Test that % resolves against the parent's content box."""
        frame = layout(
            "VStack(style: { width: 200, padding: 10 }) {"
            '  VStack(style: { width: 50% }) { Text("a") }'
            "}"
        ).frame()
        assert frame.box("root/0_vstack")[2] == 200.0
        assert frame.box("root/0_vstack/0_vstack")[2] == 90.0

    def test_viewport_units(self, layout):
        """Test vw and vh."""
        frame = layout('VStack(style: { width: 25vw, height: 10vh }) { Text("a") }').frame()
        assert frame.box("root/0_vstack")[2:] == (100.0, 30.0)

    def test_clamps(self, layout):
        """Test max_width and min_height."""
        frame = layout('Text("abcdefgh", style: { max_width: 20, min_height: 40 })').frame()
        assert frame.box("root/0_text")[2:] == (20.0, 40.0)

    def test_pixels_win_over_relative(self, layout):
        """Test that an explicit pixel size beats a relative one."""
        frame = layout('Text("a", style: { size: [30, 40], width: 50% })').frame()
        assert frame.box("root/0_text")[2:] == (30.0, 40.0)

    def test_width_wins_over_size(self, layout):
        """Test that width overrides the size shorthand."""
        frame = layout('Text("a", style: { size: [30, 40], width: 50 })').frame()
        assert frame.box("root/0_text")[2:] == (50.0, 40.0)

    def test_font_size_units(self, layout):
        """Test em and rem font sizes."""
        frame = layout(
            'Text("ab", style: { font_size: 2em }) Text("ab", style: { font_size: 1.5rem })'
        ).frame()
        assert frame.box("root/0_text")[2:] == (32.0, 32.0)
        assert frame.box("root/1_text")[2:] == (24.0, 24.0)
        assert frame.stencils[0].font_size == 32.0

    def test_component_style_scenario(self, layout):
        """Test a component default width with a call-site background."""
        frame = layout(
            """
            component Card(title, style: { width: 300px }) { VStack { Text(title) } }
            timeline T { Card("Hi", style: { background: "#fff" }) }
            """
        ).frame()
        assert frame.box("root/0_vstack")[2] == 300.0
        assert frame.stencils[0].color == WHITE
        assert frame.texts() == ["Hi"]


class TestControlNodes:
    """Tests for if, foreach and match."""

    def test_false_if_collapses(self, layout):
        """Test that an empty branch takes no space and no gap."""
        frame = layout(
            'Text("a") if state.show { Text("b") } Text("c")', {"show": False}
        ).frame()
        assert frame.node("root/1_if").collapsed
        assert frame.box("root/2_text")[1] == 24.0

    def test_true_if_flows_in_parent(self, layout):
        """Test that branch children join the parent's flow."""
        frame = layout(
            'Text("a") if state.show { Text("b") } else { Text("x") } Text("c")', {"show": True}
        ).frame()
        assert frame.texts() == ["a", "b", "c"]
        assert frame.box("root/1_if/0_text") == (0.0, 24.0, 8.0, 16.0)
        assert frame.box("root/2_text")[1] == 48.0

    def test_foreach_ids(self, layout):
        """Test iteration-suffixed ids."""
        frame = layout(
            'foreach item in state.items { Text("{}", item) }', {"items": ["a", "b", "c"]}
        ).frame()
        assert frame.texts() == ["a", "b", "c"]
        for index in range(3):
            assert frame.box(f"root/0_foreach/0_text_{index}") is not None

    def test_foreach_records_loop_scope_for_onclick(self, layout):
        """Test that inline onclick calls keep their loop variable."""
        frame = layout(
            "foreach item in state.items { Button(id: pick, label: item, onclick: choose(item)) }",
            {"items": ["a", "b"]},
        ).frame()
        call, scope = frame.onclicks["root/0_foreach/0_button_1"]
        assert call == Call("choose", (Path(("item",)),))
        assert scope == {"item": "b"}

    def test_foreach_over_non_list(self, layout):
        """Test that iterating a scalar degrades to a placeholder."""
        frame = layout('foreach item in state.items { Text("{}", item) }', {"items": 3}).frame()
        (diagnostic,) = frame.diagnostics
        assert diagnostic.location == "root/0_foreach"
        assert "'state.items' is not a list" in diagnostic.message

    def test_match(self, layout):
        """Test case selection and default."""
        body = 'match state.mode { case "a" { Text("A") } default { Text("D") } }'
        assert layout(body, {"mode": "a"}).frame().texts() == ["A"]
        assert layout(body, {"mode": "z"}).frame().texts() == ["D"]

    def test_match_without_default(self, layout):
        """Test that an unmatched subject degrades to a placeholder."""
        frame = layout('match state.mode { case "a" { Text("A") } }', {"mode": "b"}).frame()
        assert frame.diagnostics[0].location == "root/0_match"
        assert frame.texts() == []


class TestLeaves:
    """Tests for leaf node layout."""

    def test_button(self, layout):
        """Test button padding, background, label and hit region."""
        frame = layout('Button(id: go, label: "Go")').frame()
        assert frame.box("root/0_button") == (0.0, 0.0, 48.0, 32.0)
        background, label = frame.stencils
        assert isinstance(background, RoundedRect)
        assert background.radius == 4.0
        assert (label.x, label.y, label.text) == (16.0, 8.0, "Go")
        (region,) = frame.hit_regions
        assert (region.target, region.kind, region.node_id) == ("go", "button", "root/0_button")
        assert frame.hit_test(10, 10) is region
        assert frame.hit_test(100, 100) is None

    def test_button_label_expression(self, layout):
        """Test that labels are evaluated."""
        frame = layout('Button(id: b, label: state.label)', {"label": "Hi"}).frame()
        assert frame.texts() == ["Hi"]

    def test_text_input_placeholder(self, layout):
        """Test an empty input shows its placeholder at the minimum width."""
        frame = layout(
            'TextInput(id: name, placeholder: "Name", value: state.name)', {"name": ""}
        ).frame()
        assert frame.box("root/0_text_input")[2:] == (212.0, 28.0)
        border, text = frame.stencils
        assert border.border_color is not None
        assert text.text == "Name"
        assert text.color != (0.0, 0.0, 0.0, 1.0)
        assert frame.hit_regions[0].kind == "text_input"

    def test_text_input_value_and_multiline(self, layout):
        """Test an input showing its value over three lines."""
        frame = layout(
            "TextInput(id: bio, value: state.bio, multiline: true)", {"bio": "hello"}
        ).frame()
        assert frame.box("root/0_text_input")[3] == 60.0
        assert frame.texts() == ["hello"]

    def test_image(self, layout):
        """Test intrinsic image size."""
        frame = layout('Image("logo.png")').frame()
        (stencil,) = frame.stencils
        assert isinstance(stencil, ImageStencil)
        assert (stencil.path, stencil.width, stencil.height) == ("logo.png", 40.0, 30.0)

    def test_image_with_width(self, layout):
        """Test an explicit width with the intrinsic height."""
        frame = layout('Image("logo.png", style: { width: 80 })').frame()
        assert frame.box("root/0_image")[2:] == (80.0, 30.0)

    def test_missing_image(self, layout):
        """Test that a missing asset degrades to a placeholder."""
        frame = layout('Image("missing.png") Text("after")').frame()
        (diagnostic,) = frame.diagnostics
        assert diagnostic.message == "Image asset not found: missing.png"
        assert frame.node("root/0_image").collapsed
        assert frame.box("root/1_text")[1] == 0.0

    def test_card(self, layout):
        """Test card decoration."""
        frame = layout('Text("x", style: { card: true })').frame()
        shadow, background, _ = frame.stencils
        assert (shadow.x, shadow.y) == (3.0, 3.0)
        assert shadow.color[3] == 0.25
        assert background.color == WHITE
        assert background.radius == 8.0

    def test_stencil_nodes(self, layout):
        """Test a circle primitive and its node size."""
        frame = layout('circle(x: 5, y: 5, radius: 10, color: "blue")').frame()
        (circle,) = frame.stencils
        assert isinstance(circle, Circle)
        assert circle.bounds == (5.0, 5.0, 25.0, 25.0)
        assert circle.color == (0.0, 0.0, 1.0, 1.0)
        assert frame.box("root/0_stencil")[2:] == (25.0, 25.0)

    def test_stencil_depth(self, layout):
        """Test that a deeper primitive paints first."""
        frame = layout('Text("a") rect(width: 10, height: 10, color: "red", depth: 1)').frame()
        assert isinstance(frame.stencils[0], Rect)
        assert isinstance(frame.stencils[1], TextStencil)

    def test_invalid_stencil_parameter(self, layout):
        """Test that a bad stencil parameter degrades to a placeholder."""
        frame = layout('rect(width: "wide")').frame()
        assert "stencil parameter 'width' must be a number" in frame.diagnostics[0].message

    def test_native_call_in_view(self, layout, registry):
        """Test that a native call renders its result as text."""
        registry.register("greet", lambda: "hi")
        registry.register("quiet", lambda: None)
        frame = layout("greet!() quiet!() Text(\"end\")").frame()
        assert frame.texts() == ["hi", "end"]
        assert frame.node("root/1_native").collapsed

    def test_failing_native_call_in_view(self, layout, registry):
        """Test that a failing native call degrades to a placeholder."""

        def broken():
            raise RuntimeError("nope")

        registry.register("broken", broken)
        frame = layout('broken!() Text("ok")').frame()
        assert "Native function 'broken' failed: nope" in frame.diagnostics[0].message
        assert frame.texts() == ["ok"]


class TestDegradation:
    """Tests for runtime errors during layout."""

    def test_unresolved_path_placeholder(self, layout):
        """Test that a failing node is a zero-size placeholder."""
        frame = layout('Text("Score: {}", state.score) Text("after")').frame()
        (diagnostic,) = frame.diagnostics
        assert diagnostic.location == "root/0_text"
        assert "Unresolved path 'state.score'" in diagnostic.message
        assert frame.node("root/0_text").size == (0.0, 0.0)
        assert frame.texts() == ["after"]
        assert frame.stats.placeholders == 1

    def test_invalid_style(self, layout):
        """Test that a bad style value is reported."""
        frame = layout('Text("x", style: { color: "nocolour" })').frame()
        assert "Invalid value for style 'color'" in frame.diagnostics[0].message

    def test_interpolation_mismatch(self, layout):
        """Test that a placeholder count mismatch is reported."""
        frame = layout('Text("{} {}", 1)').frame()
        assert "expects 2 argument(s), got 1" in frame.diagnostics[0].message


class TestCaching:
    """Tests for the layout cache."""

    def test_identical_frame_is_reused(self, layout):
        """Test that an unchanged tree returns the same layout object."""
        harness = layout('VStack { Text("a") Text("b") }')
        first = harness.frame()
        second = harness.frame()
        assert second.root is first.root
        assert second.stats.recomputed_nodes == 0
        assert second.stats.cached_nodes == 1
        assert harness.trace.outcome_of("root") == "hit"
        assert second.stencils == first.stencils

    def test_only_changed_branch_is_recomputed(self, layout):
        """Test that siblings of a changed node come from the cache."""
        harness = layout('Text("static") Text("{}", state.n)', {"n": 1})
        first = harness.frame()
        harness.state.set("n", 2)
        second = harness.frame()
        trace = harness.trace
        assert trace.outcome_of("root") == "miss"
        assert trace.outcome_of("root/0_text") == "hit"
        assert trace.outcome_of("root/1_text") == "miss"
        assert trace.cache_events[-1].reason == "hash changed"
        assert second.root.children[0][2] is first.root.children[0][2]
        assert second.texts() == ["static", "2"]

    def test_resize_recomputes_everything(self, layout):
        """Test that a new viewport changes every hash."""
        harness = layout('Text("a") Text("b")')
        harness.frame()
        harness.engine.params.viewport_width = 500
        second = harness.frame()
        assert second.stats.recomputed_nodes == 3
        assert second.stats.cached_nodes == 0

    def test_invalidate(self, layout):
        """Test that invalidate drops the cache."""
        harness = layout('Text("a")')
        harness.frame()
        harness.engine.invalidate()
        harness.frame()
        assert {e.reason for e in harness.trace.cache_events} == {"new node"}

    def test_dynamic_section_always_recomputed(self, layout):
        """Test dynamic sections and their ancestors."""
        harness = layout(
            'Text("static") dynamic_section clock { Text("{}", state.tick) }', {"tick": 0}
        )
        harness.frame()
        second = harness.frame()
        trace = harness.trace
        assert trace.cache_events[0].reason == "contains dynamic section"
        assert trace.outcome_of("root/0_text") == "hit"
        assert trace.outcome_of("root/1_dynamic") == "dynamic"
        assert trace.outcome_of("root/1_dynamic/0_text") == "dynamic"
        assert second.stats.dynamic_nodes == 2

    def test_dynamic_stencils_paint_last(self, layout):
        """Test that dynamic sections draw over static content."""
        frame = layout('dynamic_section d { Text("dyn") } Text("static")').frame()
        assert frame.texts() == ["static", "dyn"]

    def test_dynamic_hit_regions_on_top(self, layout):
        """Test that dynamic hit regions are listed after static ones."""
        frame = layout(
            'dynamic_section d { Button(id: live, label: "L") } Button(id: fixed, label: "F")'
        ).frame()
        assert [r.target for r in frame.hit_regions] == ["fixed", "live"]

    def test_placeholder_is_not_cached(self, layout):
        """Test that a failing node is retried and its parent not cached."""
        harness = layout('Text("{}", state.score) Text("after")')
        harness.frame()
        harness.state.set("score", 7)
        second = harness.frame()
        assert harness.trace.cache_events[0].reason == "new node"
        assert harness.trace.outcome_of("root/1_text") == "hit"
        assert second.texts() == ["7", "after"]

    def test_foreach_removal_keeps_prefix(self, layout):
        """Test that removing an item reuses the entries before it."""
        harness = layout(
            'foreach item in state.items { Text("{}", item) }', {"items": ["a", "b", "c"]}
        )
        harness.frame()
        harness.state.remove("items", "b")
        second = harness.frame()
        trace = harness.trace
        assert trace.outcome_of("root/0_foreach/0_text_0") == "hit"
        assert trace.outcome_of("root/0_foreach/0_text_1") == "miss"
        assert trace.outcome_of("root/0_foreach/0_text_2") is None
        assert second.texts() == ["a", "c"]
