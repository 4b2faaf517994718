"""
FFmpeg transcoder configuration.

Settings are read from environment variables prefixed with ``FFMPEG_`` (and an
optional ``.env`` file), e.g. ``FFMPEG_NICE_PRIORITY=5``.
"""

from typing import Optional

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class TranscoderConfig(BaseSettings):
    """Transcoder configuration from environment variables."""

    # Binaries
    ffmpeg_binary: str = Field(
        default="ffmpeg",
        description="Path to FFmpeg binary",
    )

    ffprobe_binary: str = Field(
        default="ffprobe",
        description="Path to ffprobe binary (used to look up input duration)",
    )

    nice_binary: str = Field(
        default="nice",
        description="Path to the nice wrapper used for priority adjustment",
    )

    # Process priority
    nice_priority: Optional[int] = Field(
        default=10,
        description="Niceness adjustment passed to nice (None disables the wrapper)",
        ge=-20,
        le=19,
    )

    # Process management
    probe_timeout: int = Field(
        default=30,
        description="Timeout for ffprobe calls (seconds)",
        ge=1,
        le=600,
    )

    terminate_timeout: float = Field(
        default=10.0,
        description="Grace period after SIGTERM before a cancelled process is killed (seconds)",
        ge=0.5,
        le=300.0,
    )

    poll_interval: float = Field(
        default=0.25,
        description="How often a waiting run checks for cancellation (seconds)",
        gt=0.0,
        le=5.0,
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Python log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = ConfigDict(
        env_prefix="FFMPEG_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra fields from environment
    )


def get_config() -> TranscoderConfig:
    """
    Get transcoder configuration from environment variables.

    Returns:
        TranscoderConfig: Configuration instance
    """
    return TranscoderConfig()
