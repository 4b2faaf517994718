"""
Media probing with ffprobe.

The runner only needs the input duration (to turn media time into a completion
fraction); width and height come along for callers that want them.
"""

import json
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Union

from ffmpeg_transcoder.exceptions import ProbeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MediaProbe:
    """Media metadata extracted from ffprobe."""

    duration: float
    width: int
    height: int


class FFprobeProber:
    """Reads duration and dimensions of a media file with ffprobe."""

    def __init__(self, ffprobe_binary: str = "ffprobe", timeout: int = 30):
        self.ffprobe_binary = ffprobe_binary
        self.timeout = timeout

    def probe(self, path: Union[str, Path]) -> MediaProbe:
        """
        Probe a media file.

        Args:
            path: Path to the media file

        Returns:
            MediaProbe with duration (seconds), width and height

        Raises:
            ProbeError: If ffprobe is missing, times out, fails or prints bad JSON
        """
        cmd = [
            self.ffprobe_binary,
            "-v",
            "error",
            "-show_format",
            "-show_streams",
            "-of",
            "json",
            str(path),
        ]
        logger.debug(f"Probing media: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=True,
            )
        except subprocess.TimeoutExpired:
            raise ProbeError(f"ffprobe timeout after {self.timeout}s for {path}")
        except subprocess.CalledProcessError as e:
            raise ProbeError(f"ffprobe failed for {path}: {(e.stderr or '').strip()}")
        except FileNotFoundError:
            raise ProbeError(
                f"ffprobe not found at: {self.ffprobe_binary}. "
                "Please install ffmpeg or set FFMPEG_FFPROBE_BINARY."
            )

        try:
            probe_data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ProbeError(f"Failed to parse ffprobe output: {e}")

        video_stream = next(
            (s for s in probe_data.get("streams", []) if s.get("codec_type") == "video"),
            {},
        )
        format_info = probe_data.get("format", {})

        try:
            return MediaProbe(
                duration=float(format_info.get("duration", 0) or 0),
                width=int(video_stream.get("width", 0) or 0),
                height=int(video_stream.get("height", 0) or 0),
            )
        except (TypeError, ValueError) as e:
            raise ProbeError(f"Invalid metadata values from ffprobe: {e}")
