"""Composition endpoints."""

from fastapi import APIRouter, Response

from layercast.api.deps import Composer, Context
from layercast.schemas.compose import (
    ComposeImageRequest,
    ComposeVideoRequest,
    CreateVideoRequest,
    CreateVideoResponse,
)

router = APIRouter()

SKIPPED_HEADER = "X-Skipped-Elements"


@router.post("/composeimage", response_class=Response)
async def compose_image(payload: ComposeImageRequest, composer: Composer, context: Context) -> Response:
    """Render the elements onto a solid canvas and return the PNG."""
    result = await composer.compose_image(payload, context.request_id)
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={SKIPPED_HEADER: str(result.skipped)},
    )


@router.post("/composevideo", response_class=Response)
async def compose_video(payload: ComposeVideoRequest, composer: Composer, context: Context) -> Response:
    """Overlay the elements on an inline base64 video and return the MP4."""
    result = await composer.compose_video(payload, context.request_id)
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={SKIPPED_HEADER: str(result.skipped)},
    )


@router.post("/createvideo", response_model=CreateVideoResponse)
async def create_video(
    payload: CreateVideoRequest, composer: Composer, context: Context
) -> CreateVideoResponse:
    """Overlay the elements on a container's video and return a link to the result."""
    result = await composer.create_video(payload, context.request_id)
    return CreateVideoResponse(
        container_id=result.container_id,
        request_id=result.request_id,
        url=result.url,
        skipped_elements=result.skipped,
    )
