"""
Test doubles for the transcoder: a scripted Popen, a stub prober and a
recording monitor.
"""

import io
import subprocess
import threading
from pathlib import Path
from typing import List, Optional

from ffmpeg_transcoder.monitor import TranscodeMonitor
from ffmpeg_transcoder.probe import MediaProbe
from ffmpeg_transcoder.progress_parser import LogLine, ProgressEvent


SAMPLE_OUTPUT = (
    "ffmpeg version 6.0 Copyright (c) 2000-2023 the FFmpeg developers\n"
    "Stream mapping:\n"
    "  Stream #0:0 -> #0:0 (h264 (native) -> h264 (libx264))\n"
    "frame=   60 fps= 30.0 q=28.0 size=     256kB time=00:00:02.00 bitrate=1048.6kbits/s\n"
    "frame=  120 fps= 30.0 q=-1.0 Lsize=     512kB time=00:00:04.00 bitrate= 838.8kbits/s\n"
    "video:480kB audio:30kB subtitle:0kB other streams:0kB global headers:0kB muxing overhead: 0.4%\n"
)

FAILURE_OUTPUT = (
    "ffmpeg version 6.0 Copyright (c) 2000-2023 the FFmpeg developers\n"
    "Input #0, mov,mp4,m4a,3gp,3g2,mj2, from 'in.mov':\n"
    "/srv/out/out.mp4: Permission denied\n"
)


class _BlockingStream:
    """Output stream that yields its lines, then blocks until the process ends."""

    def __init__(self, lines: List[str], finished: threading.Event):
        self._lines = list(lines)
        self._finished = finished

    def readline(self) -> str:
        if self._lines:
            return self._lines.pop(0)
        self._finished.wait()
        return ""

    def close(self) -> None:
        pass


class FakeProcess:
    """Scripted stand-in for a ``subprocess.Popen`` instance."""

    def __init__(self, args, output: str = "", returncode: int = 0, hang: bool = False):
        self.args = args
        self.pid = 4242
        self.returncode: Optional[int] = None
        self.terminated = False
        self.killed = False
        self._exit_code = returncode
        self._finished = threading.Event()

        if hang:
            self.stdout = _BlockingStream(output.splitlines(keepends=True), self._finished)
        else:
            self._finished.set()
            self.stdout = io.StringIO(output)

    def poll(self) -> Optional[int]:
        if self._finished.is_set():
            self.returncode = self._exit_code
        return self.returncode

    def wait(self, timeout: Optional[float] = None) -> int:
        if not self._finished.wait(timeout):
            raise subprocess.TimeoutExpired(self.args, timeout)
        self.returncode = self._exit_code
        return self.returncode

    def terminate(self) -> None:
        self.terminated = True
        self._exit_code = -15
        self._finished.set()

    def kill(self) -> None:
        self.killed = True
        self._exit_code = -9
        self._finished.set()


class FakePopen:
    """Callable replacing ``subprocess.Popen``; records every spawn."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.process: Optional[FakeProcess] = None
        self._output = ""
        self._returncode = 0
        self._hang = False
        self._error: Optional[Exception] = None

    def script(
        self,
        output: str = "",
        returncode: int = 0,
        hang: bool = False,
        error: Optional[Exception] = None,
    ) -> None:
        self._output = output
        self._returncode = returncode
        self._hang = hang
        self._error = error

    def __call__(self, args, **kwargs) -> FakeProcess:
        self.calls.append((list(args), kwargs))
        if self._error is not None:
            raise self._error
        self.process = FakeProcess(args, self._output, self._returncode, self._hang)
        return self.process


class StubProber:
    """Prober returning a fixed duration and recording lookups."""

    def __init__(self, duration: float = 8.0, error: Optional[Exception] = None):
        self.duration = duration
        self.error = error
        self.calls: List[Path] = []

    def probe(self, path) -> MediaProbe:
        self.calls.append(path)
        if self.error is not None:
            raise self.error
        return MediaProbe(duration=self.duration, width=1280, height=720)


class RecordingMonitor(TranscodeMonitor):
    """Monitor that keeps everything it receives."""

    def __init__(self):
        self.events: List[ProgressEvent] = []
        self.lines: List[LogLine] = []
        self.threads: set = set()

    def on_progress(self, event: ProgressEvent) -> None:
        self.threads.add(threading.current_thread().name)
        self.events.append(event)

    def on_log(self, line: LogLine) -> None:
        self.threads.add(threading.current_thread().name)
        self.lines.append(line)


