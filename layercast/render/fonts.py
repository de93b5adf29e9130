"""Font resolution strategies for drawtext stages."""

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from layercast.config import Settings

logger = logging.getLogger(__name__)

WINDOWS_FONTS_DIR = "C:/Windows/Fonts"
WINDOWS_DEFAULT_FONT = "arial.ttf"


@dataclass(frozen=True)
class FontRef:
    """Either a concrete font file or a logical family name."""

    fontfile: Optional[str] = None
    family: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.fontfile is None) == (self.family is None):
            raise ValueError("FontRef needs exactly one of fontfile or family")


class FontResolver(Protocol):
    def resolve(self, style: Optional[str]) -> FontRef: ...


def _safe_style(style: Optional[str]) -> Optional[str]:
    """Reject style names that could escape the fonts directory."""
    style = style.strip() if style else ""
    if not style:
        return None
    if any(token in style for token in ("/", "\\", "..", ":")):
        logger.warning(f"[FONT] Ignoring unsafe font style name: {style!r}")
        return None
    return style


class PlatformDefaultFontResolver:
    """Always returns the platform's default font file."""

    def __init__(self, fonts_dir: str, default_font: str, platform: str = sys.platform):
        if platform == "win32":
            fonts_dir, default_font = WINDOWS_FONTS_DIR, WINDOWS_DEFAULT_FONT
        self.fonts_dir = fonts_dir.rstrip("/\\")
        self.default_font = default_font
        self.platform = platform

    @property
    def default_path(self) -> str:
        return f"{self.fonts_dir}/{self.default_font}"

    def resolve(self, style: Optional[str]) -> FontRef:
        return FontRef(fontfile=self.default_path)


class NamedStyleFontResolver(PlatformDefaultFontResolver):
    """``<fonts_dir>/<style>.ttf`` without checking the file exists."""

    def style_path(self, style: str) -> str:
        return f"{self.fonts_dir}/{style}.ttf"

    def resolve(self, style: Optional[str]) -> FontRef:
        style = _safe_style(style)
        if style is None:
            return FontRef(fontfile=self.default_path)
        return FontRef(fontfile=self.style_path(style))


class CheckedFontResolver(NamedStyleFontResolver):
    """Named style, falling back to a family-name lookup when the file is absent."""

    def resolve(self, style: Optional[str]) -> FontRef:
        style = _safe_style(style)
        if style is None:
            return FontRef(fontfile=self.default_path)
        path = self.style_path(style)
        if Path(path).is_file():
            return FontRef(fontfile=path)
        logger.info(f"[FONT] {path} not found, falling back to family name {style!r}")
        return FontRef(family=style)


def get_font_resolver(settings: Settings, platform: str = sys.platform) -> FontResolver:
    """Build the resolver selected by ``settings.font_policy``."""
    resolvers = {
        "platform-default": PlatformDefaultFontResolver,
        "named-style": NamedStyleFontResolver,
        "checked": CheckedFontResolver,
    }
    resolver_cls = resolvers[settings.font_policy]
    return resolver_cls(settings.fonts_dir, settings.default_font, platform=platform)
