"""
Pytest fixtures for layercast tests.

Every test gets its own Settings pointing at temporary scratch, output and
container directories, so nothing touches /tmp/layercast.

CI/CD Note:
Tests that run a real ffmpeg binary are marked with @pytest.mark.requires_ffmpeg
Run `pytest -m "not requires_ffmpeg"` to skip these tests explicitly.
"""

import base64
import io
import shutil
from pathlib import Path

import pytest
from PIL import Image

from layercast.config import Settings
from layercast.render.fonts import NamedStyleFontResolver
from layercast.render.scratch import ScratchArea
from layercast.render.text_renderer import TextRenderer


def pytest_configure(config):
    """Register custom markers for CI/CD test filtering."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring an ffmpeg binary on PATH (skipped otherwise)"
    )


def _ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None


def pytest_collection_modifyitems(config, items):
    """Skip tests marked requires_ffmpeg when no ffmpeg binary is installed."""
    if _ffmpeg_available():
        return
    skip_ffmpeg = pytest.mark.skip(reason="ffmpeg not available on PATH")
    for item in items:
        if "requires_ffmpeg" in item.keywords:
            item.add_marker(skip_ffmpeg)


def make_png(width: int = 4, height: int = 4, color: str = "red") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated to a temporary directory tree."""
    return Settings(
        scratch_dir=str(tmp_path / "scratch"),
        output_dir=str(tmp_path / "output"),
        container_dir=str(tmp_path / "containers"),
        public_base_url="http://testserver",
        process_timeout_s=5.0,
    )


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def png_b64(png_bytes: bytes) -> str:
    """A small valid PNG, base64 encoded."""
    return base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture
def scratch(settings: Settings) -> ScratchArea:
    return ScratchArea(settings.scratch_dir, "req1")


@pytest.fixture
def text_renderer() -> TextRenderer:
    return TextRenderer(
        NamedStyleFontResolver("/fonts", "Default.ttf", platform="linux"),
        default_max_line_length=40,
    )
