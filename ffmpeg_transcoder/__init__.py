"""
FFmpeg Transcoder

Immutable FFmpeg command building, process execution with a dedicated output
reader, and progress parsing of FFmpeg's status lines.

Version: 1.0.0
"""

__version__ = "1.0.0"

from ffmpeg_transcoder.command_builder import (
    Argument,
    Command,
    ScaleFilter,
    VideoFilter,
    assemble_command,
    format_time,
)
from ffmpeg_transcoder.config import TranscoderConfig
from ffmpeg_transcoder.exceptions import (
    ConfigurationError,
    ExecutionFailure,
    ProbeError,
    TranscodeCancelled,
    TranscoderError,
)
from ffmpeg_transcoder.monitor import CallbackMonitor, LoggingMonitor, TranscodeMonitor
from ffmpeg_transcoder.probe import FFprobeProber, MediaProbe
from ffmpeg_transcoder.process_runner import (
    OutcomeStatus,
    TranscodeOutcome,
    TranscodeResult,
    TranscodeRunner,
)
from ffmpeg_transcoder.progress_parser import LogLine, ProgressEvent, ProgressParser

__all__ = [
    "Argument",
    "Command",
    "ScaleFilter",
    "VideoFilter",
    "assemble_command",
    "format_time",
    "TranscoderConfig",
    "ConfigurationError",
    "ExecutionFailure",
    "ProbeError",
    "TranscodeCancelled",
    "TranscoderError",
    "CallbackMonitor",
    "LoggingMonitor",
    "TranscodeMonitor",
    "FFprobeProber",
    "MediaProbe",
    "OutcomeStatus",
    "TranscodeOutcome",
    "TranscodeResult",
    "TranscodeRunner",
    "LogLine",
    "ProgressEvent",
    "ProgressParser",
]
