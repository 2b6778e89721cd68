"""Unit tests for draw primitives."""

from nilo.stencil import (
    IMPLICIT_DEPTH,
    Circle,
    Rect,
    TextStencil,
    Triangle,
    effective_depth,
    order_for_drawing,
)


class TestStencils:
    """Tests for stencil geometry."""

    def test_bounds_and_contains(self):
        """Test the bounding box and point containment."""
        rect = Rect(10, 20, 30, 40)
        assert rect.bounds == (10, 20, 40, 60)
        assert rect.contains(10, 20)
        assert not rect.contains(40, 20)

    def test_translated(self):
        """Test translation returns a moved copy."""
        rect = Rect(1, 2, 3, 4, node_id="root")
        moved = rect.translated(10, 10)
        assert (moved.x, moved.y) == (11, 12)
        assert moved.node_id == "root"
        assert rect.translated(0, 0) is rect

    def test_circle(self):
        """Test the inscribed circle."""
        circle = Circle(0, 0, 20, 10)
        assert circle.radius == 5
        assert circle.center == (10, 5)

    def test_triangle_points(self):
        """Test the upward triangle vertices."""
        assert Triangle(0, 0, 10, 10).points == ((5, 0), (10, 10), (0, 10))

    def test_kinds(self):
        """Test kind names."""
        assert TextStencil(0, 0, 1, 1, text="a").kind == "text"
        assert Rect(0, 0, 1, 1).kind == "rect"


class TestDrawOrder:
    """Tests for order_for_drawing()."""

    def test_implicit_depth(self):
        """Test the depth of stencils without one."""
        assert effective_depth(Rect(0, 0, 1, 1)) == IMPLICIT_DEPTH

    def test_deeper_first(self):
        """Test that depth 1 paints before depth 0."""
        front = Rect(0, 0, 1, 1, depth=0.0, node_id="front")
        back = Rect(0, 0, 1, 1, depth=1.0, node_id="back")
        middle = Rect(0, 0, 1, 1, node_id="middle")
        ordered = order_for_drawing([front, middle, back])
        assert [s.node_id for s in ordered] == ["back", "middle", "front"]

    def test_stable_for_equal_depth(self):
        """Test that declaration order is kept at equal depth."""
        stencils = [Rect(0, 0, 1, 1, node_id=str(i)) for i in range(5)]
        assert [s.node_id for s in order_for_drawing(stencils)] == ["0", "1", "2", "3", "4"]
