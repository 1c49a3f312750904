"""Media processing adapters."""

from .ffmpeg import FfmpegToolchain, MediaToolchain, build_concat_manifest

__all__ = ["FfmpegToolchain", "MediaToolchain", "build_concat_manifest"]
