"""
FFmpeg process runner.

Runs one FFmpeg process per call, streams its combined output through the
progress parser to an optional monitor and reports how the run ended.
"""

import asyncio
import logging
import subprocess
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import IO, Any, Optional, Tuple

import psutil

from ffmpeg_transcoder.command_builder import Command, assemble_command
from ffmpeg_transcoder.config import TranscoderConfig
from ffmpeg_transcoder.exceptions import (
    ConfigurationError,
    ExecutionFailure,
    ProbeError,
    TranscodeCancelled,
    TranscoderError,
)
from ffmpeg_transcoder.monitor import TranscodeMonitor
from ffmpeg_transcoder.probe import FFprobeProber
from ffmpeg_transcoder.progress_parser import ProgressEvent, ProgressParser

logger = logging.getLogger(__name__)

# Marks "use the configured nice priority"; None means "no nice wrapper".
_CONFIG_DEFAULT: Any = object()


class OutcomeStatus(str, Enum):
    """How a transcoding run ended."""

    SUCCEEDED = "succeeded"
    CONFIGURATION_ERROR = "configuration_error"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class TranscodeResult:
    """
    Final state of a transcoding process.

    ``last_line`` is the last non-blank, non-progress line FFmpeg printed
    (None if it printed none); blank lines do not overwrite it.
    """

    exit_code: int
    command_line: str
    last_line: Optional[str] = None
    elapsed: timedelta = timedelta(0)
    progress_events: int = 0

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


@dataclass
class TranscodeOutcome:
    """Result of ``TranscodeRunner.run``; branch on ``status`` or call ``unwrap``."""

    status: OutcomeStatus
    result: Optional[TranscodeResult] = None
    error: Optional[TranscoderError] = None

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.SUCCEEDED

    def unwrap(self) -> TranscodeResult:
        """
        Return the result of a successful run.

        Raises:
            TranscoderError: The configuration, execution or cancellation error
        """
        if self.error is not None:
            raise self.error
        if self.result is None:
            raise TranscoderError(
                f"Outcome {self.status.value} carries neither a result nor an error"
            )
        return self.result


class _OutputReader:
    """
    Drains the process output on a dedicated thread.

    The last non-progress line is only written by the reader thread; callers
    read ``last_line`` after ``join`` has returned. Blank and whitespace-only
    lines are still passed to the monitor but never replace ``last_line``, so
    a trailing empty line cannot hide FFmpeg's final error message.
    """

    def __init__(
        self,
        stream: IO[str],
        parser: ProgressParser,
        monitor: Optional[TranscodeMonitor] = None,
    ):
        self._stream = stream
        self._parser = parser
        self._monitor = monitor
        self._last_line: Optional[str] = None
        self.progress_events = 0
        self._thread = threading.Thread(target=self._drain, name="ffmpeg-output", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def join(self) -> None:
        self._thread.join()

    @property
    def last_line(self) -> Optional[str]:
        return self._last_line

    def _drain(self) -> None:
        try:
            for raw_line in iter(self._stream.readline, ""):
                self._dispatch(raw_line)
        except (OSError, ValueError) as e:
            # Stream closed underneath us after the process was killed
            logger.debug(f"Output stream closed: {e}")

    def _dispatch(self, raw_line: str) -> None:
        parsed = self._parser.parse(raw_line)

        if isinstance(parsed, ProgressEvent):
            self.progress_events += 1
            if self._monitor is not None:
                self._notify(self._monitor.on_progress, parsed)
            return

        logger.debug(parsed.text)
        if parsed.text.strip():
            self._last_line = parsed.text
        if self._monitor is not None:
            self._notify(self._monitor.on_log, parsed)

    @staticmethod
    def _notify(callback, value) -> None:
        # Keep draining even if the monitor fails, or FFmpeg blocks on a full pipe
        try:
            callback(value)
        except Exception as e:
            logger.error(f"Transcode monitor raised: {e}", exc_info=True)


class TranscodeRunner:
    """
    Executes built FFmpeg commands.

    Features:
    - Looks up the input duration with ffprobe unless ``-t`` is set
    - Optional ``nice`` wrapper for lower process priority
    - Streams progress events and log lines to a monitor
    - Cancellation via ``threading.Event`` or a timeout
    - Independent state per call, so runs can execute in parallel
    """

    def __init__(
        self,
        config: Optional[TranscoderConfig] = None,
        prober: Optional[Any] = None,
    ):
        """
        Initialize the runner.

        Args:
            config: Transcoder configuration (creates default if not provided)
            prober: Object with ``probe(path) -> MediaProbe`` (ffprobe if not provided)
        """
        if config is None:
            from ffmpeg_transcoder.config import get_config

            config = get_config()

        self.config = config

        if prober is None:
            prober = FFprobeProber(config.ffprobe_binary, config.probe_timeout)

        self.prober = prober

    def execute(
        self,
        command: Command,
        monitor: Optional[TranscodeMonitor] = None,
        nice_priority: Optional[int] = _CONFIG_DEFAULT,
        cancel_event: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> TranscodeResult:
        """
        Run a command and raise on anything but success.

        Raises:
            ConfigurationError: If the command has no input file
            ExecutionFailure: If FFmpeg exits with a non-zero code
            TranscodeCancelled: If the run was cancelled or timed out
        """
        return self.run(command, monitor, nice_priority, cancel_event, timeout).unwrap()

    def run(
        self,
        command: Command,
        monitor: Optional[TranscodeMonitor] = None,
        nice_priority: Optional[int] = _CONFIG_DEFAULT,
        cancel_event: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> TranscodeOutcome:
        """
        Run a command to completion.

        Args:
            command: Built FFmpeg command
            monitor: Optional sink for progress events and log lines
            nice_priority: Niceness adjustment; defaults to the configured value,
                None runs FFmpeg without the nice wrapper
            cancel_event: Set it to terminate the process
            timeout: Terminate the process after this many seconds

        Returns:
            TranscodeOutcome describing how the run ended
        """
        command_line = command.command_line(self.config.ffmpeg_binary)

        input_file = command.input_file
        if input_file is None:
            return self._configuration_error(f"No input file defined for {command_line}")

        if nice_priority is _CONFIG_DEFAULT:
            nice_priority = self.config.nice_priority

        try:
            cmd = assemble_command(
                command,
                binary=self.config.ffmpeg_binary,
                nice_priority=nice_priority,
                nice_binary=self.config.nice_binary,
            )
        except ConfigurationError as e:
            return self._configuration_error(str(e))

        duration = self._effective_duration(command, input_file)

        logger.info(f"Starting FFmpeg: {input_file}")
        logger.debug(f"Command: {' '.join(cmd)}")

        started = time.monotonic()
        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            error = ExecutionFailure(command_line, -1, str(e))
            logger.error(f"Failed to start FFmpeg: {e}")
            return TranscodeOutcome(
                status=OutcomeStatus.FAILED,
                result=TranscodeResult(exit_code=-1, command_line=command_line, last_line=str(e)),
                error=error,
            )

        logger.debug(f"FFmpeg process spawned (PID: {process.pid})")

        parser = ProgressParser(duration=duration, started_at=started)
        reader = _OutputReader(process.stdout, parser, monitor)
        reader.start()

        try:
            exit_code, cancel_reason = self._wait(process, cancel_event, timeout, started)
        except BaseException:
            # KeyboardInterrupt and friends: don't leave FFmpeg running
            self._terminate_process(process)
            reader.join()
            raise

        # Output must be fully drained before the exit code is final
        reader.join()
        if process.stdout is not None:
            process.stdout.close()

        result = TranscodeResult(
            exit_code=exit_code,
            command_line=command_line,
            last_line=reader.last_line,
            elapsed=timedelta(seconds=time.monotonic() - started),
            progress_events=reader.progress_events,
        )

        if cancel_reason is not None:
            logger.warning(f"FFmpeg {cancel_reason} (PID: {process.pid})")
            return TranscodeOutcome(
                status=OutcomeStatus.CANCELLED,
                result=result,
                error=TranscodeCancelled(command_line, cancel_reason, reader.last_line),
            )

        if exit_code != 0:
            error = ExecutionFailure(command_line, exit_code, reader.last_line)
            logger.error(str(error))
            return TranscodeOutcome(status=OutcomeStatus.FAILED, result=result, error=error)

        logger.info(f"FFmpeg finished successfully in {result.elapsed.total_seconds():.1f}s")
        return TranscodeOutcome(status=OutcomeStatus.SUCCEEDED, result=result)

    async def run_async(
        self,
        command: Command,
        monitor: Optional[TranscodeMonitor] = None,
        nice_priority: Optional[int] = _CONFIG_DEFAULT,
        timeout: Optional[float] = None,
    ) -> TranscodeOutcome:
        """
        Run a command in a worker thread.

        Cancelling the awaiting task terminates FFmpeg before the
        ``CancelledError`` propagates.
        """
        cancel_event = threading.Event()
        task = asyncio.ensure_future(
            asyncio.to_thread(self.run, command, monitor, nice_priority, cancel_event, timeout)
        )
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            cancel_event.set()
            await task
            raise

    async def execute_async(
        self,
        command: Command,
        monitor: Optional[TranscodeMonitor] = None,
        nice_priority: Optional[int] = _CONFIG_DEFAULT,
        timeout: Optional[float] = None,
    ) -> TranscodeResult:
        """Async counterpart of ``execute``."""
        outcome = await self.run_async(command, monitor, nice_priority, timeout)
        return outcome.unwrap()

    def _configuration_error(self, message: str) -> TranscodeOutcome:
        logger.error(message)
        return TranscodeOutcome(
            status=OutcomeStatus.CONFIGURATION_ERROR,
            error=ConfigurationError(message),
        )

    def _effective_duration(self, command: Command, input_file: Path) -> Optional[float]:
        """Explicit ``-t`` duration if set and non-zero, else the probed input duration."""
        explicit = command.explicit_duration
        if explicit:
            return explicit

        try:
            info = self.prober.probe(input_file)
        except ProbeError as e:
            logger.warning(f"Could not probe {input_file}, completion will be unknown: {e}")
            return None

        logger.debug(f"Probed {input_file}: duration={info.duration}s {info.width}x{info.height}")
        return info.duration or None

    def _wait(
        self,
        process: subprocess.Popen,
        cancel_event: Optional[threading.Event],
        timeout: Optional[float],
        started: float,
    ) -> Tuple[int, Optional[str]]:
        """Wait for exit; returns the exit code and a cancel reason, if any."""
        deadline = None if timeout is None else started + timeout

        while True:
            # An exit that already happened wins over a late cancel or deadline
            exit_code = process.poll()
            if exit_code is not None:
                return exit_code, None

            if cancel_event is not None and cancel_event.is_set():
                return self._terminate_process(process), "cancelled"

            wait_for = self.config.poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return self._terminate_process(process), "timed out"
                wait_for = min(wait_for, remaining)

            try:
                return process.wait(timeout=wait_for), None
            except subprocess.TimeoutExpired:
                continue

    def _terminate_process(self, process: subprocess.Popen) -> int:
        """Terminate FFmpeg and anything it spawned, killing after the grace period."""
        if process.poll() is not None:
            return process.returncode

        try:
            children = psutil.Process(process.pid).children(recursive=True)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            children = []

        logger.debug(f"Gracefully terminating process {process.pid}")
        process.terminate()
        for child in children:
            try:
                child.terminate()
            except psutil.NoSuchProcess:
                pass

        try:
            return process.wait(timeout=self.config.terminate_timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Process {process.pid} did not terminate gracefully, force killing")
            process.kill()
            for child in children:
                try:
                    child.kill()
                except psutil.NoSuchProcess:
                    pass
            return process.wait()
