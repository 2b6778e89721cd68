"""
Measurement collaborators.

The layout engine never touches fonts or image files directly. Text and
image nodes ask a measurer for their intrinsic size:

- TextMeasurer: protocol, ``measure(text, font_size, font) -> (w, h)``.
- PillowTextMeasurer: default implementation using Pillow's ImageFont.
- ImageSizer: reads image dimensions with Pillow, resolving relative paths
  against an asset root.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Protocol, Tuple, Union

from PIL import Image, ImageFont, UnidentifiedImageError

from .errors import AssetError

logger = logging.getLogger(__name__)

FontType = Union[ImageFont.FreeTypeFont, ImageFont.ImageFont]

FALLBACK_FONTS = [
    # Linux
    "DejaVuSans.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    # macOS
    "Helvetica",
    "/System/Library/Fonts/Helvetica.ttc",
    # Windows
    "Arial",
    "C:/Windows/Fonts/arial.ttf",
]


class TextMeasurer(Protocol):
    """Returns the rendered size of a text run."""

    def measure(self, text: str, font_size: float, font: Optional[str] = None) -> Tuple[float, float]:
        ...


class PillowTextMeasurer:
    """
    Measures text with Pillow fonts.

    Fonts are loaded once per (font, size) pair. Multi-line text is as wide
    as its widest line and as tall as its line count times the line height.

    Args:
        default_font: Font name or path tried before the system fallbacks.
    """

    def __init__(self, default_font: Optional[str] = None):
        self.default_font = default_font
        self._fonts: Dict[Tuple[Optional[str], int], FontType] = {}

    def _load_font(self, font_size: int, font_name: Optional[str]) -> FontType:
        key = (font_name, font_size)
        if key in self._fonts:
            return self._fonts[key]

        fonts_to_try = []
        for name in (font_name, self.default_font):
            if name:
                fonts_to_try.append(name)
        fonts_to_try.extend(FALLBACK_FONTS)

        loaded: Optional[FontType] = None
        for candidate in fonts_to_try:
            try:
                loaded = ImageFont.truetype(candidate, font_size)
                break
            except OSError:
                continue

        if loaded is None:
            logger.debug("No TrueType font found, using Pillow's default font")
            loaded = ImageFont.load_default(size=font_size)

        self._fonts[key] = loaded
        return loaded

    def measure(self, text: str, font_size: float, font: Optional[str] = None) -> Tuple[float, float]:
        """
        Measure text.

        Args:
            text: Text to measure; newlines start new lines.
            font_size: Font size in pixels.
            font: Optional font name or path.

        Returns:
            (width, height) in pixels.
        """
        loaded = self._load_font(max(1, round(font_size)), font)
        ascent, descent = _metrics(loaded, font_size)
        line_height = ascent + descent

        lines = text.split("\n")
        width = 0.0
        for line in lines:
            if line:
                left, _, right, _ = loaded.getbbox(line)
                width = max(width, float(right - left))
        return width, float(line_height * len(lines))


def _metrics(font: FontType, font_size: float) -> Tuple[float, float]:
    if isinstance(font, ImageFont.FreeTypeFont):
        ascent, descent = font.getmetrics()
        return float(ascent), float(descent)
    return float(font_size), 0.0


class ImageSizer:
    """
    Reads intrinsic image sizes.

    Args:
        asset_root: Directory relative image paths are resolved against.
    """

    def __init__(self, asset_root: Optional[Union[str, Path]] = None):
        self.asset_root = Path(asset_root) if asset_root else None
        self._sizes: Dict[Path, Tuple[float, float]] = {}

    def resolve(self, path: str) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute() and self.asset_root is not None:
            candidate = self.asset_root / candidate
        return candidate

    def size(self, path: str) -> Tuple[float, float]:
        """
        Return (width, height) of an image asset.

        Raises:
            AssetError: If the file is missing or is not a readable image.
        """
        resolved = self.resolve(path)
        if resolved in self._sizes:
            return self._sizes[resolved]
        if not resolved.is_file():
            raise AssetError(f"Image asset not found: {path}")
        try:
            with Image.open(resolved) as img:
                width, height = img.size
        except (UnidentifiedImageError, OSError) as exc:
            raise AssetError(f"Cannot read image asset {path}: {exc}") from exc

        self._sizes[resolved] = (float(width), float(height))
        return self._sizes[resolved]
