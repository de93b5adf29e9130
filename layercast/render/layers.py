"""Typed composition layers and canvas descriptors.

Layers are stacked in request order: the first element is drawn first and
every later element renders on top of it.

Element payload (one entry of ``elements``):
    Type          "Text" | "Image"
    Value         text content, or base64 image data (data URI prefix allowed)
    xpos, ypos    absolute offset in pixels
    Width, Height target size of an image layer
    FontSize, FontColor, FontStyle, MaxLineLength, align   text styling
"""

import base64
import binascii
import io
import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from PIL import Image, UnidentifiedImageError

from layercast.exceptions import InvalidElementsError, NoUsableLayersError

logger = logging.getLogger(__name__)

Number = Union[int, float]

# Aspect ratio -> canvas pixel size
CANVAS_SIZES: dict[str, tuple[int, int]] = {
    "9:16": (1080, 1920),
    "1:1": (1080, 1080),
    "4:5": (1080, 1350),
    "16:9": (1920, 1080),
}
DEFAULT_CANVAS_SIZE = (1080, 1080)

_RAW_SIZE_RE = re.compile(r"^(\d+)x(\d+)$")
_DATA_URI_RE = re.compile(r"^data:[a-z]+/[a-z0-9.+-]+;base64,?", re.IGNORECASE)


class LayerKind(Enum):
    """Supported layer types."""

    TEXT = "Text"
    IMAGE = "Image"


class TextAlign(Enum):
    """Horizontal text alignment."""

    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


@dataclass
class Position:
    """Absolute offset. ``None`` means use the context default."""

    x: Optional[Number] = None
    y: Optional[Number] = None


@dataclass
class Size:
    """Target size of an image layer."""

    width: Optional[Number] = None
    height: Optional[Number] = None


@dataclass
class TextStyle:
    """Text styling configuration."""

    font_style: Optional[str] = None
    font_size: Number = 48
    font_color: str = "white"
    max_line_length: Optional[int] = None


@dataclass
class Layer:
    """One element to composite."""

    kind: LayerKind
    value: Union[str, bytes]
    index: int
    position: Position = field(default_factory=Position)
    size: Size = field(default_factory=Size)
    style: TextStyle = field(default_factory=TextStyle)
    align: TextAlign = TextAlign.LEFT


@dataclass
class Canvas:
    """Base surface the layers are composited onto.

    Either a generated solid-color background (``base_path`` is None) or an
    existing media file whose video stream is optionally scaled to
    ``width`` x ``height``. An unscaled base keeps its own size, which is
    unknown here (``width``/``height`` are None).
    """

    width: Optional[int] = None
    height: Optional[int] = None
    color: str = "black"
    base_path: Optional[Path] = None
    scale_base: bool = False

    @property
    def is_generated(self) -> bool:
        return self.base_path is None

    @property
    def size(self) -> str:
        if self.width is None or self.height is None:
            return "source"
        return f"{self.width}x{self.height}"

    def lavfi_source(self) -> str:
        """lavfi source string for a generated canvas."""
        return f"color=c={self.color}:s={self.size}"

    @classmethod
    def from_ratio(cls, ratio: Optional[str], color: str = "black") -> "Canvas":
        width, height = canvas_size(ratio)
        return cls(width=width, height=height, color=color)


@dataclass
class ParsedLayers:
    """Result of parsing raw elements."""

    layers: list[Layer]
    skipped: int = 0


def canvas_size(ratio: Optional[str]) -> tuple[int, int]:
    """Map an aspect ratio (or raw ``WxH``) to pixel dimensions."""
    if ratio in CANVAS_SIZES:
        return CANVAS_SIZES[ratio]
    if isinstance(ratio, str):
        match = _RAW_SIZE_RE.match(ratio)
        if match:
            width, height = int(match.group(1)), int(match.group(2))
            if width > 0 and height > 0:
                return width, height
    return DEFAULT_CANVAS_SIZE


def _number(value: Any) -> Optional[Number]:
    """Return ``value`` if it is a finite number, else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def decode_image(value: Any) -> Optional[bytes]:
    """Decode base64 image data. Returns None if it is not a readable image."""
    data = decode_media(value)
    if data is None:
        return None
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return None
    return data


def decode_media(value: Any) -> Optional[bytes]:
    """Decode base64 media (video/audio) data without inspecting it."""
    if not isinstance(value, str) or not value.strip():
        return None
    payload = _DATA_URI_RE.sub("", value.strip())
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None
    return data or None


def _parse_align(raw: Any) -> TextAlign:
    if isinstance(raw, str):
        try:
            return TextAlign(raw.strip().lower())
        except ValueError:
            pass
    return TextAlign.LEFT


def parse_element(element: Any, index: int) -> Optional[Layer]:
    """Parse one raw element. Returns None for anything unusable."""
    if not isinstance(element, dict):
        return None

    kind = element.get("Type")
    value = element.get("Value")
    position = Position(x=_number(element.get("xpos")), y=_number(element.get("ypos")))

    if kind == LayerKind.TEXT.value:
        if not isinstance(value, str) or not value:
            return None
        font_size = _number(element.get("FontSize"))
        max_chars = _number(element.get("MaxLineLength"))
        font_color = element.get("FontColor")
        font_style = element.get("FontStyle")
        style = TextStyle(
            font_style=font_style if isinstance(font_style, str) and font_style.strip() else None,
            font_size=font_size if font_size and font_size > 0 else 48,
            font_color=font_color if isinstance(font_color, str) and font_color.strip() else "white",
            max_line_length=int(max_chars) if max_chars and max_chars >= 1 else None,
        )
        return Layer(
            kind=LayerKind.TEXT,
            value=value,
            index=index,
            position=position,
            style=style,
            align=_parse_align(element.get("align")),
        )

    if kind == LayerKind.IMAGE.value:
        data = decode_image(value)
        if data is None:
            return None
        width = _number(element.get("Width"))
        height = _number(element.get("Height"))
        return Layer(
            kind=LayerKind.IMAGE,
            value=data,
            index=index,
            position=position,
            size=Size(
                width=width if width and width > 0 else None,
                height=height if height and height > 0 else None,
            ),
        )

    return None


def parse_elements(elements: Any, *, require_layers: bool = True) -> ParsedLayers:
    """Parse raw elements into layers, dropping malformed ones.

    Args:
        elements: The request's ``elements`` array
        require_layers: Raise if nothing usable remains

    Returns:
        ParsedLayers with the surviving layers in request order

    Raises:
        InvalidElementsError: ``elements`` is not an array
        NoUsableLayersError: No usable layer remains and one is required
    """
    if not isinstance(elements, list):
        raise InvalidElementsError()

    layers: list[Layer] = []
    skipped = 0
    for index, element in enumerate(elements):
        layer = parse_element(element, index)
        if layer is None:
            skipped += 1
            kind = element.get("Type") if isinstance(element, dict) else type(element).__name__
            logger.info(f"[LAYERS] Skipping malformed element #{index} (Type={kind!r})")
            continue
        layers.append(layer)

    if require_layers and not layers:
        raise NoUsableLayersError(skipped)

    return ParsedLayers(layers=layers, skipped=skipped)
