"""
FFmpeg progress parser.

Classifies each line of FFmpeg output independently: a line that matches the
progress status format becomes a ``ProgressEvent``, anything else is passed on
as a ``LogLine``. There is no state carried from one line to the next.
"""

import logging
import math
import re
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """Snapshot of transcoding progress taken from one status line."""

    completion: float  # 0.0-1.0, inf when the duration is unknown
    frame: int
    fps: float
    quality: float
    is_final: bool
    size_bytes: int
    media_time: float  # seconds of media processed
    bit_rate: int  # bits per second
    elapsed: timedelta  # wall clock since process start


@dataclass(frozen=True)
class LogLine:
    """Any output line that is not a progress status line."""

    text: str


ParsedLine = Union[ProgressEvent, LogLine]


class ProgressParser:
    """
    Turns FFmpeg output lines into progress events or log lines.

    The status line format is kept in ``PROGRESS_PATTERN`` alone, e.g.::

        frame=  120 fps= 30.0 q=-1.0 Lsize=    512kB time=00:00:04.00 bitrate= 838.8kbits/s
    """

    PROGRESS_PATTERN = re.compile(
        r"frame=\s*(?P<frame>\d+) "
        r"fps=\s*(?P<fps>[0-9.]+) "
        r"q=(?P<quality>[-0-9.]+) "
        r"(?P<final>L?)size=\s*(?P<size_kb>\d+)kB "
        r"time=(?P<hours>\d{2}):(?P<minutes>\d{2}):(?P<seconds>\d{2})[.](?P<fraction>\d+) "
        r"bitrate=\s*(?P<bitrate_kbps>[0-9.]+)kbits/s.*"
    )

    def __init__(
        self,
        duration: Optional[float] = None,
        started_at: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize progress parser.

        Args:
            duration: Effective media duration in seconds (None or 0 if unknown)
            started_at: Process start time as returned by ``clock``
            clock: Monotonic clock used for the elapsed wall-clock time
        """
        self.duration = duration
        self._clock = clock
        self.started_at = clock() if started_at is None else started_at

    def parse(self, line: str) -> ParsedLine:
        """
        Classify a single line of FFmpeg output.

        Args:
            line: Output line, with or without its trailing newline

        Returns:
            ProgressEvent for a status line, LogLine for everything else
        """
        line = line.rstrip("\r\n")
        match = self.PROGRESS_PATTERN.fullmatch(line)
        if match is None:
            return LogLine(line)

        try:
            return self._build_event(match)
        except ValueError as e:
            # e.g. "fps=1.2.3" satisfies the character class but not float()
            logger.debug(f"Treating malformed status line as log output: {e}")
            return LogLine(line)

    def _build_event(self, match: "re.Match[str]") -> ProgressEvent:
        media_time = (
            int(match.group("hours")) * 3600
            + int(match.group("minutes")) * 60
            + int(match.group("seconds"))
            + int(match.group("fraction")) / 100.0
        )
        return ProgressEvent(
            completion=self.completion_for(media_time),
            frame=int(match.group("frame")),
            fps=float(match.group("fps")),
            quality=float(match.group("quality")),
            is_final=match.group("final") == "L",
            size_bytes=int(match.group("size_kb")) * 1000,
            media_time=media_time,
            bit_rate=round(float(match.group("bitrate_kbps")) * 1000),
            elapsed=timedelta(seconds=max(self._clock() - self.started_at, 0.0)),
        )

    def completion_for(self, media_time: float) -> float:
        """Fraction of the effective duration covered by ``media_time``."""
        if self.duration:
            return media_time / self.duration
        return math.inf if media_time > 0 else 0.0
