"""Layer-based image and video composition over ffmpeg."""

__version__ = "0.1.0"
