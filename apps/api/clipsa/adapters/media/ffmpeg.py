"""ffmpeg-backed media operations used by the stitcher."""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from clipsa.errors import ExternalToolFailure

logger = logging.getLogger(__name__)

_STDERR_TAIL_CHARS = 2000


class MediaToolchain(ABC):
    @abstractmethod
    def concat(self, manifest_path: Path, output_path: Path) -> None:
        """Concatenate the files listed in a concat manifest without re-encoding."""

    @abstractmethod
    def mux(self, video_path: Path, audio_path: Path, output_path: Path) -> None:
        """Combine a video stream with an audio track, trimmed to the shorter input."""


class FfmpegToolchain(MediaToolchain):
    def __init__(self, binary: str = "ffmpeg") -> None:
        self._binary = binary

    def concat(self, manifest_path: Path, output_path: Path) -> None:
        self._run(
            "concat",
            [
                "-f", "concat",
                "-safe", "0",
                "-i", str(manifest_path),
                "-c", "copy",
                str(output_path),
            ],
        )

    def mux(self, video_path: Path, audio_path: Path, output_path: Path) -> None:
        self._run(
            "mux",
            [
                "-i", str(video_path),
                "-i", str(audio_path),
                "-c:v", "copy",
                "-c:a", "aac",
                "-shortest",
                str(output_path),
            ],
        )

    def _run(self, step: str, args: list[str]) -> None:
        cmd = [self._binary, "-y", "-hide_banner", "-loglevel", "error", *args]
        try:
            subprocess.run(cmd, check=True, capture_output=True, text=True)
        except FileNotFoundError as exc:
            raise ExternalToolFailure(f"ffmpeg binary not found: {self._binary}") from exc
        except subprocess.CalledProcessError as exc:
            stderr = (exc.stderr or "")[-_STDERR_TAIL_CHARS:]
            logger.error("ffmpeg.failed step=%s returncode=%s stderr=%s", step, exc.returncode, stderr)
            raise ExternalToolFailure(f"ffmpeg {step} failed with exit code {exc.returncode}") from exc


def build_concat_manifest(paths: list[Path]) -> str:
    """Render a concat demuxer manifest listing paths in the given order."""
    lines = []
    for path in paths:
        escaped = str(path).replace("'", "'\\''")
        lines.append(f"file '{escaped}'")
    return "\n".join(lines) + "\n"


__all__ = ["FfmpegToolchain", "MediaToolchain", "build_concat_manifest"]
