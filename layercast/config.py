from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LAYERCAST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "Layercast API"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    # Hard deadline for one ffmpeg invocation; the process is killed after this
    process_timeout_s: float = 120.0

    # Directories (shared across requests, filenames are request-unique)
    scratch_dir: str = "/tmp/layercast/temp"
    output_dir: str = "/tmp/layercast/output"
    container_dir: str = "/tmp/layercast/containers"

    # Link-response mode: URL prefix under which output_dir is served
    public_base_url: str = "http://localhost:8000"

    # Fonts
    fonts_dir: str = "/usr/share/fonts/truetype/dejavu"
    default_font: str = "DejaVuSans.ttf"
    font_policy: Literal["platform-default", "named-style", "checked"] = "named-style"

    # Composition defaults
    image_max_line_length: int = 30
    video_max_line_length: int = 40
    canvas_color: str = "black"

    # Video encode settings
    video_codec_args: list[str] = [
        "-c:v", "libx264",
        "-profile:v", "baseline",
        "-level", "3.1",
        "-pix_fmt", "yuv420p",
        "-r", "30",
        "-crf", "23",
        "-preset", "veryfast",
    ]
    audio_codec_args: list[str] = ["-c:a", "aac", "-b:a", "128k", "-ar", "48000"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
