"""
Pytest configuration and fixtures for FFmpeg transcoder tests.

Process tests never start a real FFmpeg: ``fake_popen`` replaces
``subprocess.Popen`` with a scripted process.
"""

import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest

from ffmpeg_transcoder.command_builder import Command
from ffmpeg_transcoder.config import TranscoderConfig
from ffmpeg_transcoder.process_runner import TranscodeRunner
from ffmpeg_transcoder.tests.fakes import FakePopen, RecordingMonitor, StubProber


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def input_file(temp_dir: Path) -> Path:
    """Create a test input file."""
    path = temp_dir / "input.mov"
    path.touch()  # Create empty file for testing
    return path


@pytest.fixture
def output_file(temp_dir: Path) -> Path:
    return temp_dir / "output.mp4"


@pytest.fixture
def test_config() -> TranscoderConfig:
    """Create a test configuration (no nice wrapper, fast polling)."""
    return TranscoderConfig(
        ffmpeg_binary="ffmpeg",
        ffprobe_binary="ffprobe",
        nice_priority=None,
        probe_timeout=5,
        terminate_timeout=1.0,
        poll_interval=0.01,
    )


@pytest.fixture
def prober() -> StubProber:
    return StubProber(duration=8.0)


@pytest.fixture
def runner(test_config: TranscoderConfig, prober: StubProber) -> TranscodeRunner:
    """Create a runner with a stub prober."""
    return TranscodeRunner(config=test_config, prober=prober)


@pytest.fixture
def monitor() -> RecordingMonitor:
    return RecordingMonitor()


@pytest.fixture
def basic_command(input_file: Path, output_file: Path) -> Command:
    return Command().input(input_file).video_codec("libx264").overwrite().output(output_file)


@pytest.fixture
def fake_popen() -> Generator[FakePopen, None, None]:
    """Replace subprocess.Popen (and psutil lookups) for the duration of a test."""
    factory = FakePopen()
    with patch("subprocess.Popen", factory), patch(
        "ffmpeg_transcoder.process_runner.psutil.Process"
    ) as mock_psutil_process:
        mock_psutil_process.return_value.children.return_value = []
        yield factory
