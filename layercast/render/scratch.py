"""Per-request scratch file staging."""

import itertools
import logging
import time
from pathlib import Path

from layercast.exceptions import CleanupWarning

logger = logging.getLogger(__name__)


class ScratchArea:
    """Request-scoped view of the shared scratch directory.

    Names embed a millisecond timestamp, the request id and a per-request
    counter, so concurrent requests never collide in the shared directory.
    Every reserved path is removed by ``cleanup()``.
    """

    def __init__(self, root: str | Path, request_id: str):
        self.root = Path(root)
        self.request_id = request_id
        self._stamp = int(time.time() * 1000)
        self._counter = itertools.count()
        self._paths: list[Path] = []

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def reserve(self, prefix: str, suffix: str) -> Path:
        """Return a fresh, unique path and track it for cleanup."""
        name = f"{prefix}_{self._stamp}_{self.request_id}_{next(self._counter)}{suffix}"
        path = self.root / name
        self._paths.append(path)
        return path

    def ensure(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def write(self, path: Path, data: bytes) -> None:
        if path not in self._paths:
            self._paths.append(path)
        path.write_bytes(data)

    def cleanup(self) -> list[CleanupWarning]:
        """Remove every tracked file. Failures are returned, not raised."""
        warnings: list[CleanupWarning] = []
        for path in self._paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                warnings.append(CleanupWarning(path=path, reason=str(e)))
        self._paths.clear()
        return warnings
