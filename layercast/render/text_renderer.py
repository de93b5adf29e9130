"""Text layout and drawtext stage generation.

Alignment handling:
- left: the wrapped lines are drawn as one block; drawtext breaks the lines
  itself.
- center/right: each line is its own drawtext stage, because the x position
  depends on that line's rendered width.

User text is always staged as a side file (``textfile=``, ``expansion=none``)
so it is never parsed as filtergraph syntax or drawtext expansions.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from layercast.render.fonts import FontRef, FontResolver
from layercast.render.graph import GraphStage, StagedResource
from layercast.render.layers import Layer, TextAlign
from layercast.render.scratch import ScratchArea

logger = logging.getLogger(__name__)

LEFT_MARGIN = 10
RIGHT_MARGIN = 10
DEFAULT_TOP = 10
LINE_SPACING = 1.2


# Characters the option parser (inner level) and the filtergraph parser
# (outer level) treat specially outside quotes.
_OPTION_SPECIALS = "\\':"
_GRAPH_SPECIALS = "\\'[],;"


def _backslash_escape(value: str, specials: str) -> str:
    return "".join(f"\\{ch}" if ch in specials else ch for ch in value)


def escape_value(value: str) -> str:
    """Escape a filter option value for use inside ``-filter_complex``.

    The value is unescaped twice by ffmpeg: once when the graph is split into
    filters and once when the filter's options are parsed. Escaping with
    backslashes at both levels (no quoting) survives both passes.
    """
    return _backslash_escape(_backslash_escape(value, _OPTION_SPECIALS), _GRAPH_SPECIALS)


def wrap_lines(text: str, max_chars: int) -> list[str]:
    """Greedily pack whitespace-separated words into lines of at most max_chars.

    A word longer than ``max_chars`` is kept whole on its own line.
    Whitespace-only input yields ``[""]``.
    """
    words = text.split()
    if not words:
        return [""]

    lines: list[str] = []
    current = ""
    for word in words:
        candidate = f"{current} {word}" if current else word
        if current and len(candidate) > max_chars:
            lines.append(current)
            current = word
        else:
            current = candidate
    lines.append(current)
    return lines


def line_height(font_size: float) -> int:
    return round(font_size * LINE_SPACING)


def format_number(value: float | str) -> str:
    if isinstance(value, str):
        return value
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


@dataclass
class TextPlan:
    """Stages and side files produced for one text layer."""

    stages: list[GraphStage] = field(default_factory=list)
    resources: list[StagedResource] = field(default_factory=list)

    @property
    def output(self) -> Optional[str]:
        return self.stages[-1].output if self.stages else None


class TextRenderer:
    """Service for turning text layers into drawtext stages."""

    def __init__(self, font_resolver: FontResolver, default_max_line_length: int = 40):
        self.font_resolver = font_resolver
        self.default_max_line_length = default_max_line_length

    def plan(
        self,
        layer: Layer,
        input_label: str,
        scratch: ScratchArea,
        max_line_length: Optional[int] = None,
    ) -> TextPlan:
        """Build the drawtext stages for a text layer.

        Text never appears inside the filter graph: every stage reads its text
        from a side file in the scratch area, with expansion disabled.

        Args:
            layer: Text layer to draw
            input_label: Label of the canvas so far
            scratch: Request scratch area the side files are reserved in
            max_line_length: Wrap width override; falls back to the layer style,
                then to the renderer default

        Returns:
            TextPlan. Empty when the wrapped text has no content.
        """
        style = layer.style
        max_chars = style.max_line_length or max_line_length or self.default_max_line_length
        lines = wrap_lines(str(layer.value), max_chars)
        if lines == [""]:
            logger.info(f"[TEXT] Layer #{layer.index} has no drawable text, skipping")
            return TextPlan()

        font = self.font_resolver.resolve(style.font_style)
        base_y = layer.position.y if layer.position.y is not None else DEFAULT_TOP

        if layer.align is TextAlign.LEFT:
            return self._plan_block(layer, lines, font, base_y, input_label, scratch)
        return self._plan_lines(layer, lines, font, base_y, input_label, scratch)

    def _plan_block(
        self,
        layer: Layer,
        lines: list[str],
        font: FontRef,
        base_y: float,
        input_label: str,
        scratch: ScratchArea,
    ) -> TextPlan:
        x = layer.position.x if layer.position.x is not None else LEFT_MARGIN
        plan = TextPlan()
        self._add_stage(
            plan,
            layer,
            font,
            "\n".join(lines),
            input_label,
            f"t{layer.index}",
            x=format_number(x),
            y=format_number(base_y),
            scratch=scratch,
            file_prefix=f"txt_{layer.index}",
        )
        return plan

    def _plan_lines(
        self,
        layer: Layer,
        lines: list[str],
        font: FontRef,
        base_y: float,
        input_label: str,
        scratch: ScratchArea,
    ) -> TextPlan:
        if layer.align is TextAlign.CENTER:
            x_expr = "(w-text_w)/2"
        else:
            x_expr = f"w-text_w-{RIGHT_MARGIN}"

        step = line_height(layer.style.font_size)
        plan = TextPlan()
        current = input_label
        for i, line in enumerate(lines):
            current = self._add_stage(
                plan,
                layer,
                font,
                line,
                current,
                f"t{layer.index}_{i}",
                x=x_expr,
                y=format_number(base_y + i * step),
                scratch=scratch,
                file_prefix=f"txt_{layer.index}_{i}",
            )
        return plan

    def _add_stage(
        self,
        plan: TextPlan,
        layer: Layer,
        font: FontRef,
        text: str,
        input_label: str,
        output_label: str,
        *,
        x: str,
        y: str,
        scratch: ScratchArea,
        file_prefix: str,
    ) -> str:
        text_path = scratch.reserve(file_prefix, ".txt")
        params = [
            ("textfile", escape_value(str(text_path))),
            ("expansion", "none"),
            *self._style_params(layer, font),
            ("x", x),
            ("y", y),
        ]
        plan.stages.append(GraphStage("drawtext", [input_label], output_label, params))
        plan.resources.append(StagedResource(path=text_path, data=text.encode("utf-8")))
        return output_label

    def _style_params(self, layer: Layer, font: FontRef) -> list[tuple[str, str]]:
        if font.fontfile is not None:
            font_param = ("fontfile", escape_value(font.fontfile))
        else:
            font_param = ("font", escape_value(font.family))
        return [
            font_param,
            ("fontcolor", escape_value(layer.style.font_color)),
            ("fontsize", format_number(layer.style.font_size)),
        ]
