"""
Execution pipeline for one composition request.

This module runs a built filter graph end to end:
1. Ensure scratch and output directories exist
2. Write staged resources (images, text blocks, base media) to scratch
3. Run ffmpeg as a child process with a deadline
4. Read the artifact back (ephemeral mode) or publish its URL (link mode)
5. Remove every scratch file, whatever happened before

Request lifecycle:
    received -> validated -> staged -> executing -> succeeded|failed -> cleaned_up
No step is retried; a failed request must be resubmitted by the caller.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from time import perf_counter
from typing import Optional

from layercast.config import Settings
from layercast.exceptions import (
    CleanupWarning,
    LayercastError,
    OutputReadError,
    ProcessingError,
    ProcessTimeoutError,
)
from layercast.render.command_builder import CommandBuilder, OutputOptions
from layercast.render.graph import FilterGraph
from layercast.render.scratch import ScratchArea

logger = logging.getLogger(__name__)

# Keep only the end of ffmpeg's stderr; the actual error is at the bottom
STDERR_TAIL_CHARS = 4000


class RenderStatus(Enum):
    """Lifecycle states of a render job."""

    RECEIVED = "received"
    VALIDATED = "validated"
    STAGED = "staged"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CLEANED_UP = "cleaned_up"


class ResponseMode(Enum):
    """How the produced artifact is handed back."""

    EPHEMERAL = "ephemeral"  # bytes in memory, file deleted
    LINK = "link"  # file kept under output_dir, URL returned


@dataclass
class RenderJob:
    """Everything needed to execute one composition."""

    request_id: str
    graph: FilterGraph
    options: OutputOptions
    output_name: str
    scratch: ScratchArea
    mode: ResponseMode = ResponseMode.EPHEMERAL
    status: RenderStatus = RenderStatus.RECEIVED


@dataclass
class RenderResult:
    """Output of a successful render."""

    request_id: str
    mode: ResponseMode
    output_path: Path
    content: Optional[bytes] = None
    url: Optional[str] = None
    elapsed_ms: int = 0
    cleanup_warnings: list[CleanupWarning] = field(default_factory=list)


class RenderPipeline:
    """Runs render jobs against the shared scratch and output directories."""

    def __init__(self, settings: Settings, command_builder: Optional[CommandBuilder] = None):
        self.settings = settings
        self.output_dir = Path(settings.output_dir)
        self.timeout_s = settings.process_timeout_s
        self.command_builder = command_builder or CommandBuilder(settings.ffmpeg_path)

    def _transition(self, job: RenderJob, status: RenderStatus) -> None:
        logger.debug(f"[RENDER] {job.request_id}: {job.status.value} -> {status.value}")
        job.status = status

    def public_url(self, name: str) -> str:
        return f"{self.settings.public_base_url.rstrip('/')}/output/{name}"

    async def run(self, job: RenderJob) -> RenderResult:
        """Execute a render job.

        Args:
            job: Job with a validated graph and a fresh scratch area

        Returns:
            RenderResult with bytes (ephemeral) or a URL (link)

        Raises:
            ProcessingError: ffmpeg failed, timed out, or its output is unreadable
        """
        start_time = perf_counter()
        output_path = self.output_dir / job.output_name
        self._transition(job, RenderStatus.VALIDATED)

        result: Optional[RenderResult] = None
        try:
            self._stage(job)
            cmd = self.command_builder.build(job.graph, output_path, job.options)
            logger.info(f"[FFMPEG] {job.request_id}: {self.command_builder.render(cmd)}")

            self._transition(job, RenderStatus.EXECUTING)
            await self._execute(cmd, job)

            result = self._collect(job, output_path)
            self._transition(job, RenderStatus.SUCCEEDED)
        except LayercastError as e:
            self._transition(job, RenderStatus.FAILED)
            logger.error(f"[RENDER] {job.request_id} failed: {e.message}")
            raise
        except asyncio.CancelledError:
            self._transition(job, RenderStatus.FAILED)
            logger.warning(f"[RENDER] {job.request_id} cancelled")
            raise
        finally:
            warnings = job.scratch.cleanup()
            if job.mode is ResponseMode.EPHEMERAL or result is None:
                warnings.extend(self._remove_output(output_path))
            for warning in warnings:
                logger.warning(f"[CLEANUP] {job.request_id}: {warning}")
            self._transition(job, RenderStatus.CLEANED_UP)

        result.cleanup_warnings = warnings
        result.elapsed_ms = int((perf_counter() - start_time) * 1000)
        logger.info(
            f"[RENDER] {job.request_id} done in {result.elapsed_ms}ms "
            f"({job.mode.value}, {len(job.graph.stages)} stages)"
        )
        return result

    def _stage(self, job: RenderJob) -> None:
        """Create directories and write every staged resource."""
        try:
            job.scratch.ensure()
            self.output_dir.mkdir(parents=True, exist_ok=True)
            for resource in job.graph.resources:
                job.scratch.write(resource.path, resource.data)
        except OSError as e:
            raise ProcessingError(f"Failed to stage input files: {e.strerror or e}") from e
        self._transition(job, RenderStatus.STAGED)

    async def _execute(self, cmd: list[str], job: RenderJob) -> None:
        """Run ffmpeg without blocking the event loop."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ProcessingError(f"Could not start ffmpeg: {e.strerror or e}") from e

        try:
            _, stderr_output = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            await self._kill(proc)
            logger.error(f"[FFMPEG] {job.request_id}: killed after {self.timeout_s:g}s")
            raise ProcessTimeoutError(self.timeout_s)
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        stderr_text = (stderr_output or b"").decode("utf-8", errors="replace")[-STDERR_TAIL_CHARS:]
        if proc.returncode != 0:
            logger.error(
                f"[FFMPEG] {job.request_id}: exit code {proc.returncode}\n{stderr_text}"
            )
            raise ProcessingError(stderr=stderr_text, returncode=proc.returncode)
        if stderr_text:
            logger.debug(f"[FFMPEG] {job.request_id} stderr:\n{stderr_text}")

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()

    def _collect(self, job: RenderJob, output_path: Path) -> RenderResult:
        """Read back (ephemeral) or publish (link) the produced artifact."""
        if job.mode is ResponseMode.LINK:
            if not output_path.is_file() or output_path.stat().st_size == 0:
                raise OutputReadError(f"Output was not produced: {output_path.name}")
            return RenderResult(
                request_id=job.request_id,
                mode=job.mode,
                output_path=output_path,
                url=self.public_url(output_path.name),
            )

        try:
            content = output_path.read_bytes()
        except OSError as e:
            raise OutputReadError(f"Output could not be read: {output_path.name}") from e
        if not content:
            raise OutputReadError(f"Output is empty: {output_path.name}")
        return RenderResult(
            request_id=job.request_id,
            mode=job.mode,
            output_path=output_path,
            content=content,
        )

    @staticmethod
    def _remove_output(output_path: Path) -> list[CleanupWarning]:
        try:
            output_path.unlink(missing_ok=True)
        except OSError as e:
            return [CleanupWarning(path=output_path, reason=str(e))]
        return []
