"""
FFmpeg transcoder exceptions.

Errors raised while building a command, probing the input or running the
transcoder process.
"""

from typing import Optional


class TranscoderError(Exception):
    """Base error for the transcoder package."""


class ConfigurationError(TranscoderError, ValueError):
    """Raised when a command is malformed or incomplete before anything is spawned."""


class ProbeError(TranscoderError):
    """Raised when an input file cannot be inspected with ffprobe."""


class ExecutionFailure(TranscoderError):
    """
    Raised when the transcoder process exits with a non-zero code.

    FFmpeg usually prints its fatal error as the last line of output, so the
    last observed log line is kept alongside the exit code.
    """

    def __init__(self, command_line: str, exit_code: int, last_line: Optional[str] = None):
        self.command_line = command_line
        self.exit_code = exit_code
        self.last_line = last_line
        super().__init__(
            f"Failed transcoding ({command_line}). Received result: {exit_code}. {last_line or ''}".rstrip()
        )


class TranscodeCancelled(TranscoderError):
    """Raised when a run is cancelled or exceeds its timeout."""

    def __init__(
        self,
        command_line: str,
        reason: str = "cancelled",
        last_line: Optional[str] = None,
    ):
        self.command_line = command_line
        self.reason = reason
        self.last_line = last_line
        super().__init__(f"Transcoding {reason} ({command_line}). {last_line or ''}".rstrip())
