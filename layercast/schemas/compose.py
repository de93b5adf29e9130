from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ComposeImageRequest(BaseModel):
    # ``elements`` stays untyped: malformed entries are skipped by the layer
    # parser instead of failing the whole request.
    model_config = ConfigDict(extra="ignore")

    elements: Any = Field(default_factory=list)
    ratio: str | None = "1:1"


class ComposeVideoRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    video: str | None = None  # base64, data URI prefix allowed
    elements: Any = Field(default_factory=list)
    ratio: str | None = None  # scale the base video to this canvas when set


class CreateVideoRequest(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    container_id: str | int | None = Field(default=None, alias="containerId")
    elements: Any = Field(default_factory=list)
    ratio: str | None = "9:16"
    length: float | None = None  # output duration in seconds


class CreateVideoResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    container_id: str = Field(serialization_alias="containerId")
    request_id: str = Field(serialization_alias="requestId")
    url: str
    skipped_elements: int = Field(default=0, serialization_alias="skippedElements")


class ContainerResponse(BaseModel):
    container_id: str = Field(serialization_alias="containerId")


class UploadResponse(BaseModel):
    container_id: str = Field(serialization_alias="containerId")
    file_name: str = Field(serialization_alias="fileName")
