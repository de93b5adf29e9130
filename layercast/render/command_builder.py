"""FFmpeg argument vector assembly.

Commands are built as ``list[str]`` and executed without a shell; the filter
graph travels as a single argument.
"""

import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from layercast.render.graph import FilterGraph, GraphInput


class OutputKind(Enum):
    IMAGE = "image"
    VIDEO = "video"


@dataclass
class OutputOptions:
    """Output parameters for one composition."""

    kind: OutputKind = OutputKind.IMAGE
    video_args: list[str] = field(default_factory=list)
    audio_args: list[str] = field(default_factory=list)
    # Hard trim in seconds; wins over -shortest
    duration: Optional[float] = None
    # Secondary audio track that replaces the base media's own audio
    audio_path: Optional[Path] = None
    # Base media input (stream 0) carries its own audio that may be passed through
    has_base_media: bool = False
    faststart: bool = True


class CommandBuilder:
    """Turns a filter graph and output options into an ffmpeg invocation."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        self.ffmpeg_path = ffmpeg_path

    def build(self, graph: FilterGraph, output_path: Path, options: OutputOptions) -> list[str]:
        """Build the ffmpeg command.

        Args:
            graph: Validated filter graph
            output_path: Destination file
            options: Output parameters

        Returns:
            FFmpeg command as list[str]
        """
        cmd = [self.ffmpeg_path, "-y"]

        for graph_input in graph.inputs:
            cmd.extend(graph_input.args())

        audio_index: Optional[int] = None
        if options.audio_path is not None:
            audio_index = len(graph.inputs)
            cmd.extend(GraphInput(path=options.audio_path).args())

        cmd.extend(["-filter_complex", graph.render()])
        cmd.extend(["-map", f"[{graph.output_label}]"])

        if options.kind is OutputKind.IMAGE:
            cmd.extend(["-frames:v", "1"])
            cmd.append(str(output_path))
            return cmd

        # Secondary audio overrides the base media's audio; otherwise pass the
        # base audio through only if it exists.
        if audio_index is not None:
            cmd.extend(["-map", f"{audio_index}:a"])
        elif options.has_base_media:
            cmd.extend(["-map", "0:a?"])

        cmd.extend(options.video_args)
        cmd.extend(options.audio_args)
        if options.faststart:
            cmd.extend(["-movflags", "+faststart"])

        if options.duration is not None and options.duration > 0:
            cmd.extend(["-t", f"{options.duration:g}"])
        elif audio_index is not None:
            cmd.append("-shortest")

        cmd.append(str(output_path))
        return cmd

    @staticmethod
    def render(cmd: list[str]) -> str:
        """Shell-quoted form of ``cmd``, for logging only."""
        return shlex.join(cmd)
