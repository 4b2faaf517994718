"""Progress and log sinks for transcoding runs."""

import logging
from typing import Callable, Optional

from ffmpeg_transcoder.progress_parser import LogLine, ProgressEvent

logger = logging.getLogger(__name__)


class TranscodeMonitor:
    """
    Receives progress events and log lines from a running transcode.

    Callbacks are invoked from the output reader thread, one line at a time and
    in the order FFmpeg printed them. Subclasses override what they need.
    """

    def on_progress(self, event: ProgressEvent) -> None:
        pass

    def on_log(self, line: LogLine) -> None:
        pass


class CallbackMonitor(TranscodeMonitor):
    """Monitor that forwards to plain callables."""

    def __init__(
        self,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None,
        on_log: Optional[Callable[[LogLine], None]] = None,
    ):
        self._on_progress = on_progress
        self._on_log = on_log

    def on_progress(self, event: ProgressEvent) -> None:
        if self._on_progress is not None:
            self._on_progress(event)

    def on_log(self, line: LogLine) -> None:
        if self._on_log is not None:
            self._on_log(line)


class LoggingMonitor(TranscodeMonitor):
    """Monitor that writes progress at INFO and tool output at DEBUG."""

    def __init__(self, target: Optional[logging.Logger] = None):
        self.logger = target or logger

    def on_progress(self, event: ProgressEvent) -> None:
        self.logger.info(
            f"Progress: {event.completion:.1%} frame={event.frame} fps={event.fps} "
            f"time={event.media_time:.2f}s bitrate={event.bit_rate}b/s"
            + (" (final)" if event.is_final else ""),
            extra={"frame": event.frame, "completion": event.completion},
        )

    def on_log(self, line: LogLine) -> None:
        self.logger.debug(line.text)
