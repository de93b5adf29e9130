"""Tests for ffmpeg command assembly."""

from pathlib import Path

import pytest

from layercast.render.command_builder import CommandBuilder, OutputKind, OutputOptions
from layercast.render.graph import FilterGraph, GraphInput, GraphStage

VIDEO_ARGS = ["-c:v", "libx264"]
AUDIO_ARGS = ["-c:a", "aac"]


def _graph(base: GraphInput, image_inputs: int = 0) -> FilterGraph:
    graph = FilterGraph(input_label="0:v")
    graph.add_input(base)
    for i in range(image_inputs):
        graph.add_input(GraphInput(path=Path(f"/scratch/img_{i}.png")))
    graph.add_stage(GraphStage("copy", ["0:v"], "out"))
    return graph


def _video_options(**kwargs) -> OutputOptions:
    return OutputOptions(kind=OutputKind.VIDEO, video_args=VIDEO_ARGS, audio_args=AUDIO_ARGS, **kwargs)


@pytest.fixture
def builder():
    return CommandBuilder("/usr/bin/ffmpeg")


class TestImageCommand:
    """Tests for single-frame image output."""

    def test_generated_canvas_image(self, builder):
        """Test the full vector for a PNG composition."""
        graph = _graph(GraphInput(lavfi="color=c=black:s=1080x1080"), image_inputs=1)
        cmd = builder.build(graph, Path("/out/output_1.png"), OutputOptions())
        assert cmd == [
            "/usr/bin/ffmpeg", "-y",
            "-f", "lavfi", "-i", "color=c=black:s=1080x1080",
            "-i", "/scratch/img_0.png",
            "-filter_complex", "[0:v]copy[out]",
            "-map", "[out]",
            "-frames:v", "1",
            "/out/output_1.png",
        ]

    def test_no_audio_mapping(self, builder):
        """Test that a generated canvas maps no audio."""
        graph = _graph(GraphInput(lavfi="color=c=black:s=10x10"))
        cmd = builder.build(graph, Path("/out/a.png"), OutputOptions())
        assert not any(arg.endswith(":a") or arg.endswith(":a?") for arg in cmd)


class TestVideoCommand:
    """Tests for video output."""

    def test_base_audio_passthrough(self, builder):
        """Test that base media audio is optional-mapped."""
        graph = _graph(GraphInput(path=Path("/scratch/in.mp4")))
        cmd = builder.build(graph, Path("/out/v.mp4"), _video_options(has_base_media=True))
        assert cmd[cmd.index("-map", cmd.index("-map") + 1) + 1] == "0:a?"
        assert "-shortest" not in cmd
        assert "-t" not in cmd
        assert cmd[-1] == "/out/v.mp4"
        assert "-movflags" in cmd

    def test_secondary_audio(self, builder):
        """Test that a secondary track is appended last and drives -shortest."""
        graph = _graph(GraphInput(path=Path("/c/video.mp4"), loop=True), image_inputs=2)
        cmd = builder.build(
            graph,
            Path("/out/v.mp4"),
            _video_options(has_base_media=True, audio_path=Path("/c/audio.mp3")),
        )
        assert cmd[2:6] == ["-stream_loop", "-1", "-i", "/c/video.mp4"]
        audio_at = cmd.index("/c/audio.mp3")
        assert cmd[audio_at - 1] == "-i"
        assert audio_at < cmd.index("-filter_complex")
        assert "3:a" in cmd
        assert "0:a?" not in cmd
        assert "-shortest" in cmd
        assert cmd[-1] == "/out/v.mp4"

    def test_explicit_length_wins(self, builder):
        """Test that -t replaces -shortest."""
        graph = _graph(GraphInput(path=Path("/c/video.mp4"), loop=True))
        cmd = builder.build(
            graph,
            Path("/out/v.mp4"),
            _video_options(audio_path=Path("/c/audio.mp3"), duration=7.5),
        )
        assert cmd[cmd.index("-t") + 1] == "7.5"
        assert "-shortest" not in cmd

    def test_codec_args_order(self, builder):
        """Test codec args follow the maps."""
        graph = _graph(GraphInput(path=Path("/scratch/in.mp4")))
        cmd = builder.build(graph, Path("/out/v.mp4"), _video_options())
        assert cmd.index("[out]") < cmd.index("-c:v") < cmd.index("-c:a")
        assert "-frames:v" not in cmd

    def test_filter_graph_is_single_argument(self, builder):
        """Test user text stays inside one argv element."""
        graph = FilterGraph(input_label="0:v")
        graph.add_input(GraphInput(lavfi="color=c=black:s=10x10"))
        graph.add_stage(GraphStage("drawtext", ["0:v"], "t0", [("text", "'a; rm -rf / $(x)'")]))
        graph.add_stage(GraphStage("copy", ["t0"], "out"))
        cmd = builder.build(graph, Path("/out/a.png"), OutputOptions())
        assert cmd[cmd.index("-filter_complex") + 1] == graph.render()

    def test_render_quotes_for_logging(self, builder):
        """Test shell-quoted rendering."""
        assert CommandBuilder.render(["ffmpeg", "-i", "a b.mp4"]) == "ffmpeg -i 'a b.mp4'"
