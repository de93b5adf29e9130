"""Custom exceptions for the layercast service.

Every error raised by the composition core derives from ``LayercastError`` and
carries a machine-readable code plus the HTTP status the API layer maps it to.
"""

from dataclasses import dataclass
from pathlib import Path

from layercast.schemas.envelope import ErrorInfo


class LayercastError(Exception):
    """Base exception for all layercast application errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"
    retryable: bool = False

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)

    def to_error_info(self) -> ErrorInfo:
        """Convert exception to ErrorInfo for API response."""
        return ErrorInfo(code=self.code, message=self.message, retryable=self.retryable)


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(LayercastError):
    """Base class for validation errors."""

    code = "VALIDATION_ERROR"
    status_code = 400
    message = "Invalid request"


class InvalidElementsError(ValidationError):
    """The ``elements`` field is not an array."""

    code = "INVALID_ELEMENTS"
    message = "'elements' must be an array"


class NoUsableLayersError(ValidationError):
    """No element survived parsing."""

    code = "NO_USABLE_LAYERS"
    message = "No usable elements: at least one valid Text or Image element is required"

    def __init__(self, skipped: int = 0):
        message = self.message
        if skipped:
            message = f"{self.message} ({skipped} malformed element(s) skipped)"
        self.skipped = skipped
        super().__init__(message)


class InvalidPayloadError(ValidationError):
    """A required top-level field is missing or malformed."""

    code = "INVALID_PAYLOAD"

    def __init__(self, field: str, reason: str = "is missing or invalid"):
        self.field = field
        super().__init__(f"'{field}' {reason}")


class InvalidContainerIdError(ValidationError):
    """Container id is not a plain numeric identifier."""

    code = "INVALID_CONTAINER_ID"

    def __init__(self, container_id: object):
        super().__init__(f"Invalid containerId: {container_id!r}")


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class NotFoundError(LayercastError):
    """Base class for resource not found errors."""

    code = "NOT_FOUND"
    status_code = 404
    message = "Resource not found"


class ContainerNotFoundError(NotFoundError):
    """Upload container does not exist."""

    code = "CONTAINER_NOT_FOUND"

    def __init__(self, container_id: str):
        self.container_id = container_id
        super().__init__(f"Container not found: {container_id}")


class BaseMediaNotFoundError(NotFoundError):
    """Container exists but holds no base video."""

    code = "BASE_MEDIA_NOT_FOUND"

    def __init__(self, container_id: str):
        self.container_id = container_id
        super().__init__(f"Missing video file in container: {container_id}")


# =============================================================================
# Processing Errors (500/504)
# =============================================================================


class ProcessingError(LayercastError):
    """FFmpeg failed or its output could not be read back.

    ``stderr`` holds the captured diagnostics. It is logged but never sent to
    the caller.
    """

    code = "PROCESSING_ERROR"
    status_code = 500
    message = "Media processing failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        stderr: str = "",
        returncode: int | None = None,
    ):
        self.stderr = stderr
        self.returncode = returncode
        super().__init__(message)


class ProcessTimeoutError(ProcessingError):
    """FFmpeg exceeded its deadline and was killed."""

    code = "PROCESSING_TIMEOUT"
    status_code = 504
    message = "Media processing timed out"
    retryable = True

    def __init__(self, timeout_s: float, *, stderr: str = ""):
        self.timeout_s = timeout_s
        super().__init__(f"Media processing timed out after {timeout_s:g}s", stderr=stderr)


class OutputReadError(ProcessingError):
    """FFmpeg reported success but the artifact is unreadable."""

    code = "OUTPUT_READ_ERROR"
    message = "Processed output could not be read"


# =============================================================================
# Cleanup
# =============================================================================


@dataclass(frozen=True)
class CleanupWarning:
    """A scratch file that could not be removed. Logged, never raised."""

    path: Path
    reason: str

    def __str__(self) -> str:
        return f"could not remove {self.path}: {self.reason}"
