"""End-to-end tests running Nilo programs through the engine."""

import pytest

from nilo.errors import IndexOutOfBoundsError, ItemNotFoundError
from nilo.tracer import DYNAMIC, HIT, MISS

GAME_SOURCE = """
// Two screens that can switch back and forth.
flow {
    start: Main
    Main -> Game
    Game -> Main
}

timeline Main {
    Text("Score: {}", state.score)
    HStack {
        Button(id: inc, label: "+")
        Button(id: play, label: "Play")
    }

    when user.click(inc) {
        set state.score = state.score + 1
    }
    when user.click(play) {
        navigate_to(Game)
    }
}

timeline Game {
    Text("Playing")
    Button(id: quit, label: "Quit")

    when user.click(quit) {
        navigate_to(Main)
    }
}

timeline Other {
    Text("Never reached")
}
"""


class TestGameScenario:
    """Tests for a two-screen program with a counter."""

    @pytest.fixture
    def engine(self, make_engine):
        engine = make_engine(GAME_SOURCE, {"score": 0})
        engine.drain_diagnostics()
        return engine

    def test_click_increments_score(self, engine):
        """Test that clicking inc raises the score by one."""
        engine.frame()
        engine.click("inc")
        assert engine.state.get("score") == 1
        assert engine.frame().texts()[0] == "Score: 1"

    def test_undeclared_transition_rejected(self, engine):
        """Test that navigating outside the flow leaves Main current."""
        assert not engine.navigate_to("Other")
        assert engine.current_timeline == "Main"
        (diagnostic,) = engine.drain_diagnostics()
        assert "Cannot navigate from 'Main' to 'Other'" in diagnostic.message

    def test_round_trip(self, engine):
        """Test following both declared transitions by clicking."""
        engine.frame()
        engine.click("play")
        assert engine.current_timeline == "Game"
        assert engine.frame().texts() == ["Playing", "Quit"]
        engine.click("quit")
        assert engine.navigator.history == ["Main", "Game", "Main"]

    @pytest.mark.parametrize(
        "path, allowed",
        [
            (["Game"], True),
            (["Main"], False),
            (["Other"], False),
            (["Game", "Main"], True),
            (["Game", "Other"], False),
        ],
    )
    def test_navigation_follows_edges(self, engine, path, allowed):
        """Test that a navigation succeeds exactly when the edge exists."""
        for target in path[:-1]:
            assert engine.navigate_to(target)
        before = engine.current_timeline
        assert engine.navigate_to(path[-1]) is allowed
        assert engine.current_timeline == (path[-1] if allowed else before)


class TestComponentScenario:
    """Tests for component defaults combined with call-site styles."""

    def test_call_site_style_merges_with_default(self, make_engine):
        """Test a component default width kept alongside a call-site background."""
        engine = make_engine(
            """
            component Card(title, style: { width: 300px }) {
                VStack { Text(title) }
            }
            timeline Home { Card("Hi", style: { background: "#fff" }) }
            """
        )
        frame = engine.frame()
        assert frame.box("root/0_vstack")[2] == 300.0
        assert frame.stencils[0].color == (1.0, 1.0, 1.0, 1.0)
        assert frame.texts() == ["Hi"]

    def test_components_inside_loops(self, make_engine):
        """Test a component rendered once per item."""
        engine = make_engine(
            """
            component Row(label) {
                HStack { Text("-") Text(label) }
            }
            timeline Home {
                foreach name in state.names { Row(name) }
            }
            """,
            {"names": ["ann", "bob"]},
        )
        assert engine.frame().texts() == ["-", "ann", "-", "bob"]


class TestListScenario:
    """Tests for foreach identities and incremental updates."""

    SOURCE = """
    timeline Items {
        foreach item in state.items {
            Text("{}", item)
        }
    }
    """

    def test_ids_are_suffixed_by_iteration(self, make_engine):
        """Test one text node per item, keyed by position."""
        engine = make_engine(self.SOURCE, {"items": ["a", "b", "c"]})
        frame = engine.frame()
        ids = [n.node_id for n in frame.root.walk() if n.kind == "text"]
        assert ids == [
            "root/0_foreach/0_text_0",
            "root/0_foreach/0_text_1",
            "root/0_foreach/0_text_2",
        ]

    def test_removal_invalidates_from_index(self, make_engine):
        """Test that removing the middle item keeps only earlier entries."""
        engine = make_engine(self.SOURCE, {"items": ["a", "b", "c"]})
        engine.frame()
        engine.state.remove("items", "b")
        frame = engine.frame(debug=True)
        trace = engine.get_trace()
        assert trace.outcome_of("root/0_foreach/0_text_0") == HIT
        assert trace.outcome_of("root/0_foreach/0_text_1") == MISS
        assert frame.texts() == ["a", "c"]

    def test_list_operations(self, make_engine, list_source):
        """Test append, remove and insert against len()."""
        engine = make_engine(list_source, {"items": ["x"]})
        engine.state.append("items", "y")
        assert engine.frame().texts()[0] == "Items: 2"
        engine.state.remove("items", "x")
        assert engine.state.get("items") == ["y"]
        with pytest.raises(ItemNotFoundError):
            engine.state.remove("items", "x")
        with pytest.raises(IndexOutOfBoundsError):
            engine.state.insert("items", 5, "z")


class TestDegradation:
    """Tests for best-effort frames."""

    def test_unresolved_score_placeholder(self, make_engine):
        """Test that a missing field degrades one node and keeps its siblings."""
        engine = make_engine(
            """
            timeline Home {
                Text("Score: {}", state.score)
                Text("Still here")
                Button(id: ok, label: "OK")
            }
            """
        )
        frame = engine.frame()
        assert frame.node("root/0_text").size == (0.0, 0.0)
        assert frame.texts() == ["Still here", "OK"]
        assert frame.box("root/1_text")[1] == 0.0
        (diagnostic,) = engine.drain_diagnostics()
        assert "Unresolved path 'state.score'" in diagnostic.message


class TestIncrementalLayout:
    """Tests for cache behavior across ticks."""

    def test_identical_frames(self, make_engine, counter_source):
        """Test that an unchanged program reuses the whole tree."""
        engine = make_engine(counter_source, {"count": 0})
        first = engine.frame()
        second = engine.frame()
        assert second.root is first.root
        assert second.stats.recomputed_nodes == 0

    def test_deterministic_layout(self, make_engine, counter_source):
        """Test that two engines produce the same frame."""
        first = make_engine(counter_source, {"count": 3}).frame()
        second = make_engine(counter_source, {"count": 3}).frame()
        assert first.boxes == second.boxes
        assert first.stencils == second.stencils

    def test_dynamic_section_every_tick(self, make_engine):
        """Test that a dynamic section is recomputed even when unchanged."""
        engine = make_engine(
            """
            timeline Clock {
                Text("Header")
                dynamic_section ticker { Text("{}", state.tick) }
            }
            """,
            {"tick": 0},
        )
        for _ in range(3):
            frame = engine.frame(debug=True)
            trace = engine.get_trace()
            assert trace.outcome_of("root/1_dynamic/0_text") == DYNAMIC
            assert frame.stats.dynamic_nodes == 2
        assert trace.outcome_of("root/0_text") == HIT
