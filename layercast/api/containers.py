"""Upload container endpoints."""

from fastapi import APIRouter, File, UploadFile, status

from layercast.api.deps import Containers
from layercast.schemas.compose import ContainerResponse, UploadResponse

router = APIRouter()


@router.post("/container", response_model=ContainerResponse, status_code=status.HTTP_201_CREATED)
async def create_container(containers: Containers) -> ContainerResponse:
    container_id, _ = containers.create()
    return ContainerResponse(container_id=container_id)


@router.post("/container/{container_id}/video", response_model=UploadResponse)
async def upload_video(
    container_id: str, containers: Containers, file: UploadFile = File(...)
) -> UploadResponse:
    """Store the base video of a container (saved as video.<ext>)."""
    data = await file.read()
    saved = containers.save_upload(container_id, "video", file.filename, data)
    return UploadResponse(container_id=container_id, file_name=saved.name)


@router.post("/container/{container_id}/audio", response_model=UploadResponse)
async def upload_audio(
    container_id: str, containers: Containers, file: UploadFile = File(...)
) -> UploadResponse:
    """Store the audio track of a container (saved as audio.<ext>)."""
    data = await file.read()
    saved = containers.save_upload(container_id, "audio", file.filename, data)
    return UploadResponse(container_id=container_id, file_name=saved.name)
