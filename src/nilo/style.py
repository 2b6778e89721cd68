"""
Style values for Nilo view nodes.

Style objects in source are open maps: recognized keys are kept, unknown
keys are ignored. Values may be literals, dimensions or expressions, so a
node carries a StyleSpec (key -> expression) until layout time, when the
layout engine evaluates each value and builds a resolved Style.

Classes:
    Unit: Dimension units (px, %, vw, vh, em, rem).
    Dimension: A number with a unit.
    Edges: Four-sided padding/margin values.
    StyleSpec: Unresolved style as written in source.
    Style: Resolved, sparse style used by the layout engine.
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .errors import StyleError

RGBA = Tuple[float, float, float, float]

# Keys understood by the layout engine. Anything else is ignored.
STYLE_KEYS = frozenset(
    {
        "color",
        "background",
        "border_color",
        "font_size",
        "font",
        "padding",
        "margin",
        "width",
        "height",
        "size",
        "min_width",
        "max_width",
        "min_height",
        "max_height",
        "align",
        "spacing",
        "gap",
        "rounded",
        "shadow",
        "card",
    }
)

ALIGN_VALUES = frozenset({"left", "center", "right", "top", "bottom"})

NAMED_COLORS: Dict[str, RGBA] = {
    "red": (1.0, 0.0, 0.0, 1.0),
    "green": (0.0, 1.0, 0.0, 1.0),
    "blue": (0.0, 0.0, 1.0, 1.0),
    "white": (1.0, 1.0, 1.0, 1.0),
    "black": (0.0, 0.0, 0.0, 1.0),
    "gray": (0.5, 0.5, 0.5, 1.0),
    "grey": (0.5, 0.5, 0.5, 1.0),
    "transparent": (0.0, 0.0, 0.0, 0.0),
}

DEFAULT_ROUNDED_RADIUS = 8.0


class Unit(Enum):
    """Dimension units."""

    PX = "px"
    PERCENT = "%"
    VW = "vw"
    VH = "vh"
    EM = "em"
    REM = "rem"

    @classmethod
    def from_suffix(cls, suffix: str) -> "Unit":
        for unit in cls:
            if unit.value == suffix:
                return unit
        raise StyleError(f"Unknown dimension unit '{suffix}'")


@dataclass(frozen=True)
class Dimension:
    """A numeric value with a unit."""

    value: float
    unit: Unit = Unit.PX

    @classmethod
    def px(cls, value: float) -> "Dimension":
        return cls(float(value), Unit.PX)

    @property
    def is_absolute(self) -> bool:
        return self.unit == Unit.PX

    def to_px(
        self,
        basis: float = 0.0,
        viewport: Tuple[float, float] = (0.0, 0.0),
        font_size: float = 16.0,
        root_font_size: float = 16.0,
    ) -> float:
        """
        Convert to pixels.

        Args:
            basis: Parent size along the relevant axis, for percentages.
            viewport: (width, height) of the viewport, for vw/vh.
            font_size: Current font size, for em.
            root_font_size: Root font size, for rem.
        """
        if self.unit == Unit.PX:
            return self.value
        if self.unit == Unit.PERCENT:
            return self.value / 100.0 * basis
        if self.unit == Unit.VW:
            return self.value / 100.0 * viewport[0]
        if self.unit == Unit.VH:
            return self.value / 100.0 * viewport[1]
        if self.unit == Unit.EM:
            return self.value * font_size
        return self.value * root_font_size

    def __str__(self) -> str:
        return f"{self.value:g}{self.unit.value}"


@dataclass(frozen=True)
class Edges:
    """Top/right/bottom/left values for padding and margin."""

    top: Dimension = Dimension(0.0)
    right: Dimension = Dimension(0.0)
    bottom: Dimension = Dimension(0.0)
    left: Dimension = Dimension(0.0)

    @classmethod
    def all(cls, value: Dimension) -> "Edges":
        return cls(value, value, value, value)

    @classmethod
    def vh(cls, vertical: Dimension, horizontal: Dimension) -> "Edges":
        return cls(vertical, horizontal, vertical, horizontal)

    def to_px(self, **context: Any) -> Tuple[float, float, float, float]:
        """Resolve to pixel values (top, right, bottom, left)."""
        horizontal_basis = context.pop("basis_width", 0.0)
        vertical_basis = context.pop("basis_height", 0.0)
        return (
            self.top.to_px(basis=vertical_basis, **context),
            self.right.to_px(basis=horizontal_basis, **context),
            self.bottom.to_px(basis=vertical_basis, **context),
            self.left.to_px(basis=horizontal_basis, **context),
        )


ZERO_EDGES = Edges()


@dataclass(frozen=True)
class StyleSpec:
    """
    A style object as written in source: recognized key -> expression.

    Entries keep declaration order. Merging returns a new StyleSpec, the
    argument's entries winning over this one's.
    """

    entries: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, Any]]) -> "StyleSpec":
        kept: Dict[str, Any] = {}
        for key, value in pairs:
            if key in STYLE_KEYS:
                kept[key] = value
        return cls(tuple(kept.items()))

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.entries)

    def merged(self, override: Optional["StyleSpec"]) -> "StyleSpec":
        """Return a copy with override's entries taking precedence."""
        if override is None or not override.entries:
            return self
        combined = self.as_dict()
        combined.update(override.as_dict())
        return StyleSpec(tuple(combined.items()))

    def __bool__(self) -> bool:
        return bool(self.entries)

    def __contains__(self, key: str) -> bool:
        return any(k == key for k, _ in self.entries)


@dataclass(frozen=True)
class Style:
    """
    Resolved style. Every field is optional; None means "not set".

    Attributes:
        color: Foreground (text) colour.
        background: Fill colour behind the node.
        border_color: Outline colour.
        font_size: Font size; em/rem resolve against the font context.
        font: Font family or path passed to the measurement collaborator.
        padding: Inner spacing.
        margin: Outer spacing inside the parent's flow.
        width, height: Explicit (px) or relative (%, vw, vh, em, rem) size.
        size: [width, height] shorthand; width/height win when both are set.
        min_width, max_width, min_height, max_height: Final clamps.
        align: Cross-axis alignment of a container's children.
        spacing: Gap between a container's children.
        rounded: Corner radius of the background.
        shadow: Draw a drop shadow behind the background.
        card: Card decoration (white rounded background with shadow).
    """

    color: Optional[RGBA] = None
    background: Optional[RGBA] = None
    border_color: Optional[RGBA] = None
    font_size: Optional[Dimension] = None
    font: Optional[str] = None
    padding: Optional[Edges] = None
    margin: Optional[Edges] = None
    width: Optional[Dimension] = None
    height: Optional[Dimension] = None
    size: Optional[Tuple[Dimension, Dimension]] = None
    min_width: Optional[Dimension] = None
    max_width: Optional[Dimension] = None
    min_height: Optional[Dimension] = None
    max_height: Optional[Dimension] = None
    align: Optional[str] = None
    spacing: Optional[Dimension] = None
    rounded: Optional[float] = None
    shadow: Optional[bool] = None
    card: Optional[bool] = None

    @classmethod
    def from_values(cls, values: Mapping[str, Any]) -> "Style":
        """
        Build a Style from already-evaluated values.

        Raises:
            StyleError: If a recognized key holds a value of the wrong shape.
        """
        kwargs: Dict[str, Any] = {}
        for key, value in values.items():
            if key not in STYLE_KEYS:
                continue
            try:
                if key in ("color", "background", "border_color"):
                    kwargs[key] = parse_color(value)
                elif key in ("padding", "margin"):
                    kwargs[key] = parse_edges(value)
                elif key == "size":
                    kwargs[key] = parse_size(value)
                elif key in ("spacing", "gap"):
                    kwargs["spacing"] = to_dimension(value)
                elif key == "align":
                    kwargs[key] = parse_align(value)
                elif key == "font":
                    kwargs[key] = str(value)
                elif key == "rounded":
                    kwargs[key] = parse_rounded(value)
                elif key in ("shadow", "card"):
                    kwargs[key] = bool(value)
                else:
                    kwargs[key] = to_dimension(value)
            except StyleError as exc:
                raise StyleError(f"Invalid value for style '{key}': {exc}") from exc
        return cls(**kwargs)

    def items(self) -> Tuple[Tuple[str, Any], ...]:
        """Set fields in declaration order, for hashing and display."""
        return tuple(
            (f.name, getattr(self, f.name))
            for f in fields(self)
            if getattr(self, f.name) is not None
        )

    def merged(self, other: "Style") -> "Style":
        """Return a copy where every field set on other overrides this one."""
        values = dict(self.items())
        values.update(other.items())
        return Style(**values)


def to_dimension(value: Any) -> Dimension:
    """Coerce a number or Dimension into a Dimension."""
    if isinstance(value, Dimension):
        return value
    if isinstance(value, bool):
        raise StyleError(f"expected a number or dimension, got {value!r}")
    if isinstance(value, (int, float)):
        return Dimension.px(value)
    raise StyleError(f"expected a number or dimension, got {value!r}")


def parse_color(value: Any) -> RGBA:
    """
    Parse a colour value.

    Accepts hex strings (#rgb, #rgba, #rrggbb, #rrggbbaa), named colours,
    and [r, g, b] / [r, g, b, a] lists in 0..1 or 0..255 ranges.
    """
    if isinstance(value, str):
        text = value.strip().lower()
        if text in NAMED_COLORS:
            return NAMED_COLORS[text]
        if text.startswith("#"):
            return _parse_hex(text[1:])
        raise StyleError(f"unknown colour {value!r}")
    if isinstance(value, (list, tuple)) and len(value) in (3, 4):
        if not all(isinstance(c, (int, float)) and not isinstance(c, bool) for c in value):
            raise StyleError(f"colour components must be numbers: {value!r}")
        components = [float(c) for c in value]
        if any(c > 1.0 for c in components[:3]):
            components[:3] = [c / 255.0 for c in components[:3]]
        if len(components) == 3:
            components.append(1.0)
        return tuple(components)  # type: ignore[return-value]
    raise StyleError(f"unsupported colour value {value!r}")


def _parse_hex(digits: str) -> RGBA:
    if len(digits) in (3, 4):
        digits = "".join(ch * 2 for ch in digits)
    if len(digits) == 6:
        digits += "ff"
    if len(digits) != 8:
        raise StyleError(f"invalid hex colour '#{digits}'")
    try:
        channels = [int(digits[i : i + 2], 16) / 255.0 for i in range(0, 8, 2)]
    except ValueError as exc:
        raise StyleError(f"invalid hex colour '#{digits}'") from exc
    return tuple(channels)  # type: ignore[return-value]


def parse_edges(value: Any) -> Edges:
    """Parse padding/margin: number, [v, h], [t, r, b, l] or {top: ..}."""
    if isinstance(value, dict):
        sides = {
            side: to_dimension(value[side])
            for side in ("top", "right", "bottom", "left")
            if side in value
        }
        return Edges(**sides)
    if isinstance(value, (list, tuple)):
        if len(value) == 2:
            return Edges.vh(to_dimension(value[0]), to_dimension(value[1]))
        if len(value) == 4:
            return Edges(*(to_dimension(v) for v in value))
        raise StyleError(f"edges need 2 or 4 values, got {len(value)}")
    return Edges.all(to_dimension(value))


def parse_size(value: Any) -> Tuple[Dimension, Dimension]:
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return to_dimension(value[0]), to_dimension(value[1])
    raise StyleError(f"size must be [width, height], got {value!r}")


def parse_align(value: Any) -> str:
    text = str(value).lower()
    if text not in ALIGN_VALUES:
        raise StyleError(f"unknown alignment {value!r}")
    return text


def parse_rounded(value: Any) -> Optional[float]:
    if value is True:
        return DEFAULT_ROUNDED_RADIUS
    if value is False:
        return None
    return to_dimension(value).value
