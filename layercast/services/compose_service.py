"""Composition use cases behind the HTTP endpoints.

Every call validates its payload before anything touches the disk; a request
that fails validation never creates scratch files or spawns ffmpeg.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from layercast.config import Settings
from layercast.exceptions import InvalidPayloadError
from layercast.render.command_builder import OutputKind, OutputOptions
from layercast.render.fonts import get_font_resolver
from layercast.render.graph import StagedResource
from layercast.render.layer_compositor import LayerCompositor
from layercast.render.layers import Canvas, canvas_size, decode_media, parse_elements
from layercast.render.pipeline import RenderJob, RenderPipeline, ResponseMode
from layercast.render.scratch import ScratchArea
from layercast.render.text_renderer import TextRenderer
from layercast.schemas.compose import ComposeImageRequest, ComposeVideoRequest, CreateVideoRequest
from layercast.services.container_service import ContainerService

logger = logging.getLogger(__name__)


@dataclass
class ComposeResult:
    """What an endpoint hands back to its caller."""

    request_id: str
    media_type: str
    content: Optional[bytes] = None
    url: Optional[str] = None
    container_id: Optional[str] = None
    skipped: int = 0


class ComposeService:
    """Builds and runs image/video compositions."""

    def __init__(
        self,
        settings: Settings,
        pipeline: Optional[RenderPipeline] = None,
        container_service: Optional[ContainerService] = None,
    ):
        self.settings = settings
        text_renderer = TextRenderer(
            get_font_resolver(settings),
            default_max_line_length=settings.video_max_line_length,
        )
        self.compositor = LayerCompositor(text_renderer)
        self.pipeline = pipeline or RenderPipeline(settings)
        self.containers = container_service or ContainerService(settings)

    def _scratch(self, request_id: str) -> ScratchArea:
        return ScratchArea(self.settings.scratch_dir, request_id)

    def _video_options(self, **kwargs) -> OutputOptions:
        return OutputOptions(
            kind=OutputKind.VIDEO,
            video_args=list(self.settings.video_codec_args),
            audio_args=list(self.settings.audio_codec_args),
            **kwargs,
        )

    async def compose_image(self, request: ComposeImageRequest, request_id: str) -> ComposeResult:
        """Composite layers onto a generated canvas and return a PNG."""
        parsed = parse_elements(request.elements)
        canvas = Canvas.from_ratio(request.ratio, color=self.settings.canvas_color)
        logger.info(
            f"[COMPOSE] image {request_id}: {len(parsed.layers)} layer(s), "
            f"{parsed.skipped} skipped, canvas {canvas.size}"
        )

        scratch = self._scratch(request_id)
        graph = self.compositor.build(
            canvas,
            parsed.layers,
            scratch,
            max_line_length=self.settings.image_max_line_length,
        )
        job = RenderJob(
            request_id=request_id,
            graph=graph,
            options=OutputOptions(kind=OutputKind.IMAGE),
            output_name=f"output_{request_id}.png",
            scratch=scratch,
            mode=ResponseMode.EPHEMERAL,
        )
        result = await self.pipeline.run(job)
        return ComposeResult(
            request_id=request_id,
            media_type="image/png",
            content=result.content,
            skipped=parsed.skipped,
        )

    async def compose_video(self, request: ComposeVideoRequest, request_id: str) -> ComposeResult:
        """Composite layers onto an inline base64 video and return the MP4."""
        video = decode_media(request.video)
        if video is None:
            raise InvalidPayloadError("video", "must be base64-encoded video data")
        parsed = parse_elements(request.elements)

        scratch = self._scratch(request_id)
        base_path = scratch.reserve("in", ".mp4")
        if request.ratio:
            width, height = canvas_size(request.ratio)
            canvas = Canvas(width=width, height=height, base_path=base_path, scale_base=True)
        else:
            canvas = Canvas(base_path=base_path)
        logger.info(
            f"[COMPOSE] video {request_id}: {len(parsed.layers)} layer(s), "
            f"{parsed.skipped} skipped, canvas {canvas.size}"
        )

        graph = self.compositor.build(canvas, parsed.layers, scratch)
        graph.resources.insert(0, StagedResource(path=base_path, data=video))
        job = RenderJob(
            request_id=request_id,
            graph=graph,
            options=self._video_options(has_base_media=True),
            output_name=f"out_{request_id}.mp4",
            scratch=scratch,
            mode=ResponseMode.EPHEMERAL,
        )
        result = await self.pipeline.run(job)
        return ComposeResult(
            request_id=request_id,
            media_type="video/mp4",
            content=result.content,
            skipped=parsed.skipped,
        )

    async def create_video(self, request: CreateVideoRequest, request_id: str) -> ComposeResult:
        """Composite layers onto a container's uploaded video and publish a link.

        The container's audio track, if any, replaces the video's own audio and
        the video loops until the audio ends, unless ``length`` trims it first.
        """
        if request.container_id is None or str(request.container_id).strip() == "":
            raise InvalidPayloadError("containerId")
        if request.length is not None and request.length <= 0:
            raise InvalidPayloadError("length", "must be a positive number of seconds")
        container_id = str(request.container_id).strip()
        parsed = parse_elements(request.elements)
        video_path, audio_path = self.containers.find_media(container_id)

        width, height = canvas_size(request.ratio)
        canvas = Canvas(width=width, height=height, base_path=video_path, scale_base=True)
        logger.info(
            f"[COMPOSE] container video {request_id}: container={container_id}, "
            f"{len(parsed.layers)} layer(s), {parsed.skipped} skipped, "
            f"audio={'yes' if audio_path else 'no'}, length={request.length}"
        )

        scratch = self._scratch(request_id)
        graph = self.compositor.build(
            canvas,
            parsed.layers,
            scratch,
            max_line_length=self.settings.video_max_line_length,
            loop_base=audio_path is not None,
        )
        job = RenderJob(
            request_id=request_id,
            graph=graph,
            options=self._video_options(
                has_base_media=True,
                audio_path=audio_path,
                duration=request.length,
            ),
            output_name=f"{container_id}_{request_id}.mp4",
            scratch=scratch,
            mode=ResponseMode.LINK,
        )
        result = await self.pipeline.run(job)
        return ComposeResult(
            request_id=request_id,
            media_type="video/mp4",
            url=result.url,
            container_id=container_id,
            skipped=parsed.skipped,
        )
