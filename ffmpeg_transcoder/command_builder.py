"""
FFmpeg command builder.

Builds FFmpeg commands as immutable values: every builder call returns a new
``Command`` with one argument appended and leaves the original untouched, so a
partially configured command can be shared and extended safely.

Example:
    >>> command = (
    ...     Command()
    ...     .input("in.mov")
    ...     .video_codec("libx264")
    ...     .video_bit_rate(2_500_000)
    ...     .overwrite()
    ...     .output("out.mp4")
    ... )
    >>> assemble_command(command, nice_priority=10)[:3]
    ['nice', '--adjustment=10', 'ffmpeg']
"""

import logging
import math
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple, Union

from ffmpeg_transcoder.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

INPUT_FLAG = "-i"
DURATION_FLAG = "-t"


def format_time(seconds: float) -> str:
    """
    Render seconds as zero-padded ``HH:MM:SS``.

    Fractional seconds are truncated, so 59.4 renders as ``00:00:59``. Hours
    keep counting past 24.
    """
    whole = int(seconds)
    hours, remainder = divmod(whole, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


@dataclass(frozen=True)
class MediaFile:
    """A file token; always rendered as an absolute path."""

    path: Path

    def __str__(self) -> str:
        return os.path.abspath(self.path)


@dataclass(frozen=True)
class TimeValue:
    """A time token rendered as ``HH:MM:SS``."""

    seconds: float

    def __str__(self) -> str:
        return format_time(self.seconds)


class VideoFilter(ABC):
    """Base class for video filters; ``value`` is the filter expression."""

    @property
    @abstractmethod
    def value(self) -> str:
        ...


@dataclass(frozen=True)
class ScaleFilter(VideoFilter):
    """Scale filter, e.g. ``scale=1280:720`` (-1 keeps the aspect ratio)."""

    width: int
    height: int

    @property
    def value(self) -> str:
        return f"scale={self.width}:{self.height}"


def render_token(token: Any) -> str:
    """
    Render a single token as command-line text.

    Raises:
        ConfigurationError: If the token has no command-line representation
    """
    if token is None or isinstance(token, bool):
        raise ConfigurationError(f"Cannot use {token!r} as a command-line token")
    if isinstance(token, (MediaFile, TimeValue)):
        return str(token)
    if isinstance(token, Enum):
        return str(token.value)
    if isinstance(token, VideoFilter):
        return token.value
    if isinstance(token, int):
        return str(token)
    if isinstance(token, float):
        if not math.isfinite(token):
            raise ConfigurationError(f"Cannot use non-finite number {token!r} as a token")
        return repr(token)
    if isinstance(token, str):
        return token
    raise ConfigurationError(
        f"Cannot use {type(token).__name__} value {token!r} as a command-line token"
    )


@dataclass(frozen=True)
class Argument:
    """One ordered token group of a command, e.g. ``("-i", MediaFile(...))``."""

    tokens: Tuple[Any, ...]

    def __post_init__(self) -> None:
        if not self.tokens:
            raise ConfigurationError("An argument needs at least one token")
        for token in self.tokens:
            render_token(token)

    @property
    def flag(self) -> Any:
        """Leading token (the flag name, or the file for a positional output)."""
        return self.tokens[0]

    @property
    def values(self) -> Tuple[Any, ...]:
        return self.tokens[1:]

    def render(self) -> List[str]:
        return [render_token(token) for token in self.tokens]


def _require_int(name: str, value: Any, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _require_number(name: str, value: Any, allow_negative: bool = False) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ConfigurationError(f"{name} must be finite, got {value!r}")
    if not allow_negative and value < 0:
        raise ConfigurationError(f"{name} cannot be negative, got {value}")
    return float(value)


def _parse_seconds(value: Any) -> Optional[float]:
    """Seconds from a duration token added via ``duration`` or ``with_args``."""
    if isinstance(value, TimeValue):
        return value.seconds
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    text = render_token(value)
    try:
        seconds = 0.0
        for part in text.split(":"):
            seconds = seconds * 60 + float(part)
        return seconds
    except ValueError:
        logger.debug(f"Unrecognised duration token: {text}")
        return None


def _require_text(name: str, value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"{name} cannot be empty")
    return value


def _require_path(name: str, path: Any) -> MediaFile:
    if isinstance(path, MediaFile):
        return path
    if not isinstance(path, (str, os.PathLike)) or not str(path).strip():
        raise ConfigurationError(f"{name} cannot be empty")
    return MediaFile(Path(path))


@dataclass(frozen=True)
class Command:
    """
    Immutable, ordered list of FFmpeg arguments.

    Order matters to FFmpeg (input options must precede the ``-i`` they apply
    to), so arguments are rendered exactly in the order they were added.
    """

    arguments: Tuple[Argument, ...] = ()

    @property
    def tokens(self) -> Tuple[str, ...]:
        """All tokens rendered as strings, without the binary."""
        return tuple(text for argument in self.arguments for text in argument.render())

    def command_line(self, binary: str = "ffmpeg") -> str:
        """Space-separated command text (useful for logging)."""
        return " ".join((binary,) + self.tokens)

    def with_args(self, *tokens: Any) -> "Command":
        """Return a new command with ``tokens`` appended as one argument."""
        return Command(self.arguments + (Argument(tuple(tokens)),))

    def find_arg(self, flag: str) -> Optional[Argument]:
        """Return the first argument whose leading token equals ``flag``."""
        for argument in self.arguments:
            if argument.flag == flag:
                return argument
        return None

    @property
    def input_file(self) -> Optional[Path]:
        argument = self.find_arg(INPUT_FLAG)
        if argument is None or not argument.values:
            return None
        value = argument.values[0]
        if isinstance(value, MediaFile):
            return value.path
        return Path(render_token(value))

    @property
    def explicit_duration(self) -> Optional[float]:
        argument = self.find_arg(DURATION_FLAG)
        if argument is None or not argument.values:
            return None
        return _parse_seconds(argument.values[0])

    # Files

    def input(self, path: PathLike) -> "Command":
        return self.with_args(INPUT_FLAG, _require_path("input file", path))

    def output(self, path: PathLike) -> "Command":
        return self.with_args(_require_path("output file", path))

    # Timing

    def input_delay(self, seconds: float) -> "Command":
        """Offset the following input; FFmpeg gets whole seconds, rounded half up."""
        seconds = _require_number("input delay", seconds, allow_negative=True)
        return self.with_args("-itsoffset", int(math.floor(seconds + 0.5)))

    def start(self, seconds: float) -> "Command":
        return self.with_args("-ss", TimeValue(_require_number("start", seconds)))

    def duration(self, seconds: float) -> "Command":
        return self.with_args(DURATION_FLAG, TimeValue(_require_number("duration", seconds)))

    def time_range(self, start: float, duration: float) -> "Command":
        return self.start(start).duration(duration)

    def video_frames(self, frame_count: int) -> "Command":
        return self.with_args("-vframes", _require_int("frame count", frame_count, 0))

    # Codecs and rates

    def video_codec(self, codec: Union[str, Enum]) -> "Command":
        return self.with_args("-codec:v", _require_text("video codec", codec))

    def audio_codec(self, codec: Union[str, Enum]) -> "Command":
        return self.with_args("-codec:a", _require_text("audio codec", codec))

    def copy_codecs(self) -> "Command":
        return self.with_args("-c", "copy")

    def video_profile(self, profile: Union[str, Enum]) -> "Command":
        return self.with_args("-profile:v", _require_text("video profile", profile))

    def preset(self, preset: Union[str, Enum]) -> "Command":
        return self.with_args("-preset", _require_text("preset", preset))

    def video_bit_rate(self, bit_rate: int) -> "Command":
        return self.with_args("-b:v", _require_int("video bit rate", bit_rate, 1))

    def audio_bit_rate(self, bit_rate: int) -> "Command":
        return self.with_args("-b:a", _require_int("audio bit rate", bit_rate, 1))

    def max_rate(self, bit_rate: int) -> "Command":
        return self.with_args("-maxrate", _require_int("max rate", bit_rate, 1))

    def buffer_size(self, size: int) -> "Command":
        return self.with_args("-bufsize", _require_int("buffer size", size, 1))

    def audio_quality(self, quality: int) -> "Command":
        return self.with_args("-qscale:a", _require_int("audio quality", quality, 0))

    def disable_audio(self) -> "Command":
        return self.with_args("-an")

    # Filters, format, mapping

    def video_filters(self, filters: Iterable[Union[VideoFilter, str]]) -> "Command":
        """Append a ``-vf`` filter chain, e.g. ``[ScaleFilter(1280, 720), "fps=30"]``."""
        chain = []
        for item in filters:
            if isinstance(item, VideoFilter):
                chain.append(item.value)
            else:
                chain.append(_require_text("video filter", item))
        if not chain:
            raise ConfigurationError("video filter chain cannot be empty")
        return self.with_args("-vf", ",".join(chain))

    def force_format(self, format_name: str) -> "Command":
        return self.with_args("-f", _require_text("format", format_name))

    def map_stream(self, input_id: int, output_id: Optional[int] = None) -> "Command":
        input_id = _require_int("input stream id", input_id, 0)
        if output_id is None:
            return self.with_args("-map", input_id)
        output_id = _require_int("output stream id", output_id, 0)
        return self.with_args("-map", f"{input_id}:{output_id}")

    def map_metadata(self, input_id: int) -> "Command":
        return self.with_args("-map_metadata", _require_int("metadata input id", input_id, -1))

    def id3v2_version(self, version: int) -> "Command":
        return self.with_args("-id3v2_version", _require_int("id3v2 version", version, 0))

    # Process behaviour

    def threads(self, thread_count: int) -> "Command":
        return self.with_args("-threads", _require_int("thread count", thread_count, 0))

    def pass_number(self, number: int) -> "Command":
        return self.with_args("-pass", _require_int("pass number", number, 1))

    def overwrite(self) -> "Command":
        return self.with_args("-y")

    def no_overwrite(self) -> "Command":
        return self.with_args("-n")


def assemble_command(
    command: Command,
    binary: str = "ffmpeg",
    nice_priority: Optional[int] = None,
    nice_binary: str = "nice",
) -> List[str]:
    """
    Flatten a command into the argument vector for subprocess.

    Args:
        command: Built command
        binary: FFmpeg executable
        nice_priority: Niceness adjustment; wraps the call in ``nice`` when set
        nice_binary: nice executable

    Returns:
        List of command arguments for subprocess
    """
    cmd = [binary, *command.tokens]
    if nice_priority is not None:
        if isinstance(nice_priority, bool) or not isinstance(nice_priority, int):
            raise ConfigurationError(f"nice priority must be an integer, got {nice_priority!r}")
        cmd = [nice_binary, f"--adjustment={nice_priority}"] + cmd
    logger.debug(f"Assembled FFmpeg command: {' '.join(cmd)}")
    return cmd
