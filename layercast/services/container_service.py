"""Upload containers: per-upload directories holding a base video and optional audio."""

import logging
import time
from pathlib import Path
from typing import Literal, Optional

from layercast.config import Settings
from layercast.exceptions import (
    BaseMediaNotFoundError,
    ContainerNotFoundError,
    InvalidContainerIdError,
    InvalidPayloadError,
)

logger = logging.getLogger(__name__)

MediaKind = Literal["video", "audio"]

DEFAULT_EXTENSIONS: dict[str, str] = {"video": ".mp4", "audio": ".mp3"}
MAX_CREATE_ATTEMPTS = 100


class ContainerService:
    """Local directory storage for uploaded base media."""

    def __init__(self, settings: Settings) -> None:
        self.base_path = Path(settings.container_dir)

    def _container_path(self, container_id: object) -> Path:
        container_id = str(container_id).strip()
        if not container_id.isdigit():
            raise InvalidContainerIdError(container_id)
        return self.base_path / container_id

    def _existing_container(self, container_id: object) -> Path:
        path = self._container_path(container_id)
        if not path.is_dir():
            raise ContainerNotFoundError(str(container_id))
        return path

    def create(self) -> tuple[str, Path]:
        """Create a new, empty container and return its id and path."""
        self.base_path.mkdir(parents=True, exist_ok=True)
        candidate = int(time.time() * 1000)
        for _ in range(MAX_CREATE_ATTEMPTS):
            path = self.base_path / str(candidate)
            try:
                path.mkdir()
            except FileExistsError:
                candidate += 1
                continue
            logger.info(f"[CONTAINER] Created {candidate}")
            return str(candidate), path
        raise RuntimeError("Could not allocate a unique container id")

    def save_upload(
        self,
        container_id: object,
        kind: MediaKind,
        filename: Optional[str],
        data: bytes,
    ) -> Path:
        """Save an uploaded file as ``<kind><ext>``, replacing any previous one.

        Raises:
            InvalidContainerIdError: ``container_id`` is not numeric
            ContainerNotFoundError: Container does not exist
            InvalidPayloadError: No filename or empty file
        """
        path = self._existing_container(container_id)
        if not filename:
            raise InvalidPayloadError("file", "is missing a filename")
        if not data:
            raise InvalidPayloadError("file", "is empty")

        ext = Path(filename).suffix.lower() or DEFAULT_EXTENSIONS[kind]
        # Only one file per kind: drop earlier uploads with another extension
        for previous in path.glob(f"{kind}.*"):
            previous.unlink(missing_ok=True)

        target = path / f"{kind}{ext}"
        target.write_bytes(data)
        logger.info(f"[CONTAINER] Saved {target.name} ({len(data)} bytes) to {container_id}")
        return target

    def find_media(self, container_id: object) -> tuple[Path, Optional[Path]]:
        """Locate the base video and optional audio track of a container.

        Returns:
            (video_path, audio_path or None)

        Raises:
            ContainerNotFoundError: Container does not exist
            BaseMediaNotFoundError: Container has no video file
        """
        path = self._existing_container(container_id)
        videos = sorted(path.glob("video.*"))
        if not videos:
            raise BaseMediaNotFoundError(str(container_id))
        audios = sorted(path.glob("audio.*"))
        return videos[0], audios[0] if audios else None
