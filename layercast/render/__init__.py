from layercast.render.command_builder import CommandBuilder, OutputKind, OutputOptions
from layercast.render.graph import FilterGraph, GraphStage
from layercast.render.layer_compositor import LayerCompositor
from layercast.render.layers import Canvas, Layer, parse_elements
from layercast.render.pipeline import RenderJob, RenderPipeline, ResponseMode
from layercast.render.scratch import ScratchArea
from layercast.render.text_renderer import TextRenderer

__all__ = [
    "Canvas",
    "CommandBuilder",
    "FilterGraph",
    "GraphStage",
    "Layer",
    "LayerCompositor",
    "OutputKind",
    "OutputOptions",
    "RenderJob",
    "RenderPipeline",
    "ResponseMode",
    "ScratchArea",
    "TextRenderer",
    "parse_elements",
]
