"""Tests for the composition use cases.

The render pipeline is replaced with a recorder so each test can inspect the
job (graph, options, response mode) a request turns into.
"""

import base64

import pytest

from layercast.exceptions import (
    BaseMediaNotFoundError,
    InvalidPayloadError,
    NoUsableLayersError,
)
from layercast.render.command_builder import CommandBuilder, OutputKind
from layercast.render.pipeline import RenderResult, ResponseMode
from layercast.schemas.compose import ComposeImageRequest, ComposeVideoRequest, CreateVideoRequest
from layercast.services.compose_service import ComposeService
from layercast.services.container_service import ContainerService


class RecordingPipeline:
    def __init__(self, settings):
        self.settings = settings
        self.jobs = []

    async def run(self, job):
        self.jobs.append(job)
        output_path = self.settings.output_dir + "/" + job.output_name
        if job.mode is ResponseMode.LINK:
            return RenderResult(
                request_id=job.request_id,
                mode=job.mode,
                output_path=output_path,
                url=f"{self.settings.public_base_url}/output/{job.output_name}",
            )
        return RenderResult(
            request_id=job.request_id, mode=job.mode, output_path=output_path, content=b"DATA"
        )


@pytest.fixture
def pipeline(settings):
    return RecordingPipeline(settings)


@pytest.fixture
def containers(settings):
    return ContainerService(settings)


@pytest.fixture
def service(settings, pipeline, containers):
    return ComposeService(settings, pipeline=pipeline, container_service=containers)


@pytest.fixture
def container_with_media(containers):
    container_id, _ = containers.create()
    containers.save_upload(container_id, "video", "clip.mp4", b"video")
    containers.save_upload(container_id, "audio", "track.mp3", b"audio")
    return container_id


def _cmd(job):
    return CommandBuilder("ffmpeg").build(job.graph, "/out/x", job.options)


class TestComposeImage:
    """Tests for compose_image."""

    @pytest.mark.asyncio
    async def test_text_on_square_canvas(self, service, pipeline):
        """Test one text element on the default 1:1 canvas."""
        request = ComposeImageRequest(
            elements=[{"Type": "Text", "Value": "Hello World", "xpos": 10, "ypos": 10, "FontSize": 48}]
        )
        result = await service.compose_image(request, "abc")

        assert result.media_type == "image/png"
        assert result.content == b"DATA"
        assert result.skipped == 0
        job = pipeline.jobs[0]
        assert job.mode is ResponseMode.EPHEMERAL
        assert job.options.kind is OutputKind.IMAGE
        assert job.output_name == "output_abc.png"
        assert job.graph.inputs[0].lavfi == "color=c=black:s=1080x1080"
        assert [s.operation for s in job.graph.stages] == ["drawtext", "copy"]

    @pytest.mark.asyncio
    async def test_image_profile_wrap_width(self, service, pipeline):
        """Test image compositions wrap at 30 characters by default."""
        text = "aaaaaaaaa bbbbbbbbb ccccccccc ddddddddd"
        await service.compose_image(ComposeImageRequest(elements=[{"Type": "Text", "Value": text}]), "r")
        block = pipeline.jobs[0].graph.resources[0].data.decode()
        assert block.split("\n") == ["aaaaaaaaa bbbbbbbbb ccccccccc", "ddddddddd"]

    @pytest.mark.asyncio
    async def test_skipped_count(self, service):
        """Test malformed elements are counted."""
        request = ComposeImageRequest(elements=[{"Type": "Text"}, {"Type": "Text", "Value": "ok"}])
        result = await service.compose_image(request, "r")
        assert result.skipped == 1

    @pytest.mark.asyncio
    async def test_no_layers(self, service, pipeline):
        """Test no pipeline run when nothing is usable."""
        with pytest.raises(NoUsableLayersError):
            await service.compose_image(ComposeImageRequest(elements=[{"Type": "Text"}]), "r")
        assert pipeline.jobs == []


class TestComposeVideo:
    """Tests for compose_video."""

    @pytest.mark.asyncio
    async def test_inline_video(self, service, pipeline):
        """Test the inline video is staged as input 0 with optional audio passthrough."""
        video = base64.b64encode(b"fake-mp4").decode()
        request = ComposeVideoRequest(video=video, elements=[{"Type": "Text", "Value": "Hi"}])
        result = await service.compose_video(request, "v1")

        assert result.media_type == "video/mp4"
        job = pipeline.jobs[0]
        base = job.graph.resources[0]
        assert base.data == b"fake-mp4"
        assert base.path.name.startswith("in_")
        assert job.graph.inputs[0].path == base.path
        assert job.output_name == "out_v1.mp4"
        cmd = _cmd(job)
        assert "0:a?" in cmd
        assert "-frames:v" not in cmd

    @pytest.mark.asyncio
    async def test_ratio_scales_base(self, service, pipeline):
        """Test a ratio adds a base scale stage."""
        video = base64.b64encode(b"fake-mp4").decode()
        request = ComposeVideoRequest(video=video, elements=[{"Type": "Text", "Value": "Hi"}], ratio="16:9")
        await service.compose_video(request, "v1")
        assert pipeline.jobs[0].graph.stages[0].render() == "[0:v]scale=1920:1080[base]"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("video", [None, "", "%%%not-base64%%%"])
    async def test_invalid_video(self, service, pipeline, video):
        """Test a missing or undecodable video is rejected before running."""
        request = ComposeVideoRequest(video=video, elements=[{"Type": "Text", "Value": "Hi"}])
        with pytest.raises(InvalidPayloadError):
            await service.compose_video(request, "v1")
        assert pipeline.jobs == []


class TestCreateVideo:
    """Tests for create_video."""

    @pytest.mark.asyncio
    async def test_audio_drives_length(self, service, pipeline, container_with_media, containers):
        """Test the base loops and -shortest trims to the secondary audio."""
        request = CreateVideoRequest(
            containerId=container_with_media, elements=[{"Type": "Text", "Value": "Hi"}]
        )
        result = await service.create_video(request, "r1")

        assert result.url == f"http://testserver/output/{container_with_media}_r1.mp4"
        assert result.container_id == container_with_media
        job = pipeline.jobs[0]
        assert job.mode is ResponseMode.LINK
        cmd = _cmd(job)
        video_path = str(containers.base_path / container_with_media / "video.mp4")
        assert cmd[cmd.index(video_path) - 3: cmd.index(video_path)] == ["-stream_loop", "-1", "-i"]
        assert "-shortest" in cmd
        assert "-t" not in cmd
        assert job.graph.stages[0].render() == "[0:v]scale=1080:1920[base]"

    @pytest.mark.asyncio
    async def test_explicit_length_wins(self, service, pipeline, container_with_media):
        """Test an explicit length replaces -shortest."""
        request = CreateVideoRequest(
            containerId=int(container_with_media),
            elements=[{"Type": "Text", "Value": "Hi"}],
            length=3,
        )
        await service.create_video(request, "r1")
        cmd = _cmd(pipeline.jobs[0])
        assert cmd[cmd.index("-t") + 1] == "3"
        assert "-shortest" not in cmd

    @pytest.mark.asyncio
    async def test_without_audio(self, service, pipeline, containers):
        """Test base audio passthrough and no loop without a secondary track."""
        container_id, _ = containers.create()
        containers.save_upload(container_id, "video", "clip.mp4", b"video")
        request = CreateVideoRequest(containerId=container_id, elements=[{"Type": "Text", "Value": "Hi"}])
        await service.create_video(request, "r1")
        cmd = _cmd(pipeline.jobs[0])
        assert "-stream_loop" not in cmd
        assert "0:a?" in cmd
        assert "-shortest" not in cmd

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"containerId": ""},
            {"containerId": "1", "length": 0},
            {"containerId": "1", "length": -2},
        ],
    )
    async def test_invalid_payload(self, service, payload):
        """Test missing ids and non-positive lengths."""
        request = CreateVideoRequest(elements=[{"Type": "Text", "Value": "Hi"}], **payload)
        with pytest.raises(InvalidPayloadError):
            await service.create_video(request, "r1")

    @pytest.mark.asyncio
    async def test_container_without_video(self, service, containers):
        """Test a container with no base video."""
        container_id, _ = containers.create()
        request = CreateVideoRequest(containerId=container_id, elements=[{"Type": "Text", "Value": "Hi"}])
        with pytest.raises(BaseMediaNotFoundError):
            await service.create_video(request, "r1")
