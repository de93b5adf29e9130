"""Multi-layer compositing with FFmpeg filter_complex.

Layers are composited in request order onto a canvas, which is either a
generated solid-color background or an existing video stream:

    [0:v] --(scale)--> [base] --overlay/drawtext--> [v0] --> [t1_0] --> ... --> [out]

Labels are keyed by layer index (and line index for per-line text), so a
graph never contains two stages producing the same label.
"""

import logging
from typing import Optional

from layercast.exceptions import NoUsableLayersError
from layercast.render.graph import FilterGraph, GraphInput, GraphStage, StagedResource
from layercast.render.layers import Canvas, Layer, LayerKind
from layercast.render.scratch import ScratchArea
from layercast.render.text_renderer import TextRenderer, format_number

logger = logging.getLogger(__name__)


class LayerCompositor:
    """Service for building single-pass composition graphs."""

    def __init__(self, text_renderer: TextRenderer):
        self.text_renderer = text_renderer

    def build(
        self,
        canvas: Canvas,
        layers: list[Layer],
        scratch: ScratchArea,
        *,
        max_line_length: Optional[int] = None,
        loop_base: bool = False,
    ) -> FilterGraph:
        """Build the filter graph compositing ``layers`` onto ``canvas``.

        Args:
            canvas: Generated background or base media
            layers: Layers in stacking order (first = bottom)
            scratch: Request scratch area used to name staged files
            max_line_length: Default wrap width for text layers
            loop_base: Loop the base media input (secondary audio drives length)

        Returns:
            FilterGraph ending in ``[out]``; nothing is written to disk yet

        Raises:
            NoUsableLayersError: ``layers`` is empty
        """
        if not layers:
            raise NoUsableLayersError()

        graph = FilterGraph(input_label="0:v")
        if canvas.is_generated:
            graph.add_input(GraphInput(lavfi=canvas.lavfi_source()))
        else:
            graph.add_input(GraphInput(path=canvas.base_path, loop=loop_base))
        current = graph.input_label

        if not canvas.is_generated and canvas.scale_base:
            current = graph.add_stage(
                self._generate_scale_filter(current, "base", canvas.width, canvas.height)
            )

        for layer in layers:
            if layer.kind is LayerKind.IMAGE:
                current = self._add_image_layer(graph, layer, canvas, current, scratch)
            else:
                plan = self.text_renderer.plan(
                    layer, current, scratch, max_line_length=max_line_length
                )
                for stage in plan.stages:
                    current = graph.add_stage(stage)
                graph.resources.extend(plan.resources)

        graph.add_stage(GraphStage("copy", [current], graph.output_label))
        graph.validate()

        logger.info(
            f"[GRAPH] {len(layers)} layer(s) -> {len(graph.stages)} stage(s), "
            f"{len(graph.inputs)} input(s), canvas {canvas.size}"
        )
        return graph

    def _add_image_layer(
        self,
        graph: FilterGraph,
        layer: Layer,
        canvas: Canvas,
        current: str,
        scratch: ScratchArea,
    ) -> str:
        image_path = scratch.reserve(f"img_{layer.index}", ".png")
        graph.resources.append(StagedResource(path=image_path, data=layer.value))
        input_idx = graph.add_input(GraphInput(path=image_path))

        target = self._target_size(layer, canvas)
        if target is None:
            # Canvas height only known at run time: scale against the canvas stream
            stage = self._generate_scale2ref_filter(
                f"{input_idx}:v", current, f"s{layer.index}", f"r{layer.index}"
            )
            scaled = graph.add_stage(stage)
            current = stage.extra_outputs[0]
        else:
            width, height = target
            scaled = graph.add_stage(
                self._generate_scale_filter(f"{input_idx}:v", f"s{layer.index}", width, height)
            )
        x = layer.position.x if layer.position.x is not None else 0
        y = layer.position.y if layer.position.y is not None else 0
        return graph.add_stage(
            self._generate_overlay_filter(current, scaled, f"v{layer.index}", x, y)
        )

    def _target_size(
        self, layer: Layer, canvas: Canvas
    ) -> Optional[tuple[float, float]]:
        """Scale policy: both sizes given -> exact; one -> keep aspect; none -> canvas height.

        Returns None when the image must match the height of a canvas whose
        size is unknown (an unscaled base video).
        """
        width, height = layer.size.width, layer.size.height
        if width is not None and height is not None:
            return width, height
        if width is not None:
            return width, -1
        if height is not None:
            return -1, height
        if canvas.height is None:
            return None
        return -1, canvas.height

    def _generate_scale_filter(
        self,
        input_label: str,
        output_label: str,
        width: float,
        height: float,
    ) -> GraphStage:
        """Generate scale filter stage."""
        return GraphStage(
            "scale",
            [input_label],
            output_label,
            [(None, format_number(width)), (None, format_number(height))],
        )

    def _generate_scale2ref_filter(
        self,
        input_label: str,
        ref_label: str,
        output_label: str,
        ref_output_label: str,
    ) -> GraphStage:
        """Generate scale2ref stage fitting the image to the reference height.

        In scale2ref ``ih`` is the reference height and ``main_w``/``main_h``
        the image's own size; the width keeps the image aspect ratio.
        """
        return GraphStage(
            "scale2ref",
            [input_label, ref_label],
            output_label,
            [("w", "main_w*ih/main_h"), ("h", "ih")],
            extra_outputs=[ref_output_label],
        )

    def _generate_overlay_filter(
        self,
        base_label: str,
        overlay_label: str,
        output_label: str,
        x: float,
        y: float,
    ) -> GraphStage:
        """Generate overlay filter stage."""
        return GraphStage(
            "overlay",
            [base_label, overlay_label],
            output_label,
            [(None, format_number(x)), (None, format_number(y))],
        )
