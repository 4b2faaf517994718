"""
Command-line transcoding with progress output.

Usage:
    ffmpeg-transcode input.mov output.mp4 --video-codec libx264 --video-bitrate 2500000
    ffmpeg-transcode input.mov clip.mp4 --start 60 --duration 30 --overwrite --no-nice
    python -m ffmpeg_transcoder input.mkv output.webm --json-logs --log-level DEBUG
"""

import argparse
import logging
import sys
from typing import List, Optional

from ffmpeg_transcoder.command_builder import Command, ScaleFilter
from ffmpeg_transcoder.config import get_config
from ffmpeg_transcoder.exceptions import ConfigurationError
from ffmpeg_transcoder.logging_setup import configure_logging
from ffmpeg_transcoder.monitor import LoggingMonitor
from ffmpeg_transcoder.process_runner import OutcomeStatus, TranscodeRunner

logger = logging.getLogger(__name__)

EXIT_CONFIGURATION_ERROR = 2
EXIT_CANCELLED = 130


def parse_scale(value: str) -> ScaleFilter:
    """Parse ``WIDTHxHEIGHT`` (e.g. ``1280x720`` or ``-1x720``)."""
    try:
        width, height = value.lower().split("x")
        return ScaleFilter(int(width), int(height))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid scale format: {value} (expected WIDTHxHEIGHT)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ffmpeg-transcode", description="Transcode a media file with FFmpeg"
    )

    parser.add_argument("input", help="Input media file")
    parser.add_argument("output", help="Output media file")
    parser.add_argument("--video-codec", help="Video codec, e.g. libx264")
    parser.add_argument("--audio-codec", help="Audio codec, e.g. aac")
    parser.add_argument("--video-bitrate", type=int, help="Video bit rate in bits/s")
    parser.add_argument("--audio-bitrate", type=int, help="Audio bit rate in bits/s")
    parser.add_argument("--start", type=float, help="Start offset in seconds")
    parser.add_argument("--duration", type=float, help="Duration to transcode in seconds")
    parser.add_argument("--threads", type=int, help="Encoder thread count")
    parser.add_argument("--preset", help="Encoder preset, e.g. veryfast")
    parser.add_argument("--scale", type=parse_scale, help="Output size as WIDTHxHEIGHT")
    parser.add_argument("--format", dest="force_format", help="Force output container format")
    parser.add_argument("--no-audio", action="store_true", help="Drop audio streams")
    parser.add_argument("--overwrite", action="store_true", help="Overwrite the output file")

    priority = parser.add_mutually_exclusive_group()
    priority.add_argument("--nice", type=int, help="Niceness adjustment (default from config)")
    priority.add_argument("--no-nice", action="store_true", help="Run FFmpeg without nice")

    parser.add_argument("--timeout", type=float, help="Give up after this many seconds")
    parser.add_argument("--json-logs", action="store_true", help="Log JSON lines")
    parser.add_argument("--log-level", help="Log level (default from config)")

    return parser


def build_command(args: argparse.Namespace) -> Command:
    """Translate parsed CLI options into an FFmpeg command (input options first)."""
    command = Command()
    if args.overwrite:
        command = command.overwrite()
    if args.start is not None:
        command = command.start(args.start)
    command = command.input(args.input)
    if args.duration is not None:
        command = command.duration(args.duration)
    if args.threads is not None:
        command = command.threads(args.threads)
    if args.scale is not None:
        command = command.video_filters([args.scale])
    if args.video_codec:
        command = command.video_codec(args.video_codec)
    if args.preset:
        command = command.preset(args.preset)
    if args.video_bitrate is not None:
        command = command.video_bit_rate(args.video_bitrate)
    if args.no_audio:
        command = command.disable_audio()
    else:
        if args.audio_codec:
            command = command.audio_codec(args.audio_codec)
        if args.audio_bitrate is not None:
            command = command.audio_bit_rate(args.audio_bitrate)
    if args.force_format:
        command = command.force_format(args.force_format)
    return command.output(args.output)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    config = get_config()

    try:
        configure_logging(args.log_level or config.log_level, json_format=args.json_logs)
    except ValueError as e:
        print(e, file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR

    try:
        command = build_command(args)
    except ConfigurationError as e:
        logger.error(f"Invalid options: {e}")
        return EXIT_CONFIGURATION_ERROR

    if args.no_nice:
        nice_priority = None
    elif args.nice is not None:
        nice_priority = args.nice
    else:
        nice_priority = config.nice_priority

    runner = TranscodeRunner(config=config)
    try:
        outcome = runner.run(
            command,
            monitor=LoggingMonitor(),
            nice_priority=nice_priority,
            timeout=args.timeout,
        )
    except KeyboardInterrupt:
        logger.warning("Interrupted, FFmpeg terminated")
        return EXIT_CANCELLED

    if outcome.status == OutcomeStatus.SUCCEEDED:
        logger.info(f"Wrote {args.output}")
        return 0
    if outcome.status == OutcomeStatus.CONFIGURATION_ERROR:
        return EXIT_CONFIGURATION_ERROR
    if outcome.status == OutcomeStatus.CANCELLED:
        logger.error(str(outcome.error))
        return EXIT_CANCELLED

    exit_code = outcome.result.exit_code if outcome.result else 1
    return exit_code if exit_code > 0 else 1


if __name__ == "__main__":
    sys.exit(main())
