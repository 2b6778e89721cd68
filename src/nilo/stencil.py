"""
Draw primitives handed to the external renderer.

A frame is an ordered list of stencils with absolute positions. Stencils
are produced relative to their node and translated into place when the
layout tree is flattened.

Classes:
    Stencil: Base primitive (bounding box, colour, optional depth).
    Rect, RoundedRect, Circle, Triangle: Shapes.
    TextStencil: A run of text with its font.
    ImageStencil: An image asset.
"""

from dataclasses import dataclass, replace
from typing import ClassVar, Iterable, List, Optional, Tuple

from .style import RGBA

# Depth used for stencils without an explicit depth: between the front (0)
# and the back (1), so explicit values can place primitives either side.
IMPLICIT_DEPTH = 0.5


@dataclass(frozen=True)
class Stencil:
    """
    Base draw primitive.

    Attributes:
        x: Left edge.
        y: Top edge.
        width: Bounding box width.
        height: Bounding box height.
        color: Fill (or text) colour; None leaves the choice to the renderer.
        depth: Explicit depth, 0 = front and 1 = back; None keeps
            declaration order.
        node_id: Key of the node that produced this stencil.
    """

    kind: ClassVar[str] = "stencil"

    x: float
    y: float
    width: float
    height: float
    color: Optional[RGBA] = None
    depth: Optional[float] = None
    node_id: str = ""

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def translated(self, dx: float, dy: float) -> "Stencil":
        if dx == 0 and dy == 0:
            return self
        return replace(self, x=self.x + dx, y=self.y + dy)

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px < self.x + self.width and self.y <= py < self.y + self.height


@dataclass(frozen=True)
class Rect(Stencil):
    kind: ClassVar[str] = "rect"

    border_color: Optional[RGBA] = None


@dataclass(frozen=True)
class RoundedRect(Stencil):
    kind: ClassVar[str] = "rounded_rect"

    radius: float = 0.0
    border_color: Optional[RGBA] = None


@dataclass(frozen=True)
class Circle(Stencil):
    """A circle inscribed in the bounding box."""

    kind: ClassVar[str] = "circle"

    @property
    def radius(self) -> float:
        return min(self.width, self.height) / 2

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)


@dataclass(frozen=True)
class Triangle(Stencil):
    """An upward-pointing triangle filling the bounding box."""

    kind: ClassVar[str] = "triangle"

    @property
    def points(self) -> Tuple[Tuple[float, float], ...]:
        return (
            (self.x + self.width / 2, self.y),
            (self.x + self.width, self.y + self.height),
            (self.x, self.y + self.height),
        )


@dataclass(frozen=True)
class TextStencil(Stencil):
    kind: ClassVar[str] = "text"

    text: str = ""
    font_size: float = 16.0
    font: Optional[str] = None


@dataclass(frozen=True)
class ImageStencil(Stencil):
    kind: ClassVar[str] = "image"

    path: str = ""


SHAPES = {
    "rect": Rect,
    "rounded_rect": RoundedRect,
    "circle": Circle,
    "triangle": Triangle,
    "text": TextStencil,
    "image": ImageStencil,
}


def effective_depth(stencil: Stencil) -> float:
    return IMPLICIT_DEPTH if stencil.depth is None else stencil.depth


def order_for_drawing(stencils: Iterable[Stencil]) -> List[Stencil]:
    """
    Sort stencils into paint order, back to front.

    Deeper stencils paint first. The sort is stable, so stencils at the
    same depth keep declaration order and later siblings paint over
    earlier ones.

    Args:
        stencils: Stencils in declaration order.

    Returns:
        New list in paint order.
    """
    return sorted(stencils, key=lambda s: -effective_depth(s))
