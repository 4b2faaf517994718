"""
Tests for transcode monitors.
"""

import logging
from datetime import timedelta

from ffmpeg_transcoder.monitor import CallbackMonitor, LoggingMonitor, TranscodeMonitor
from ffmpeg_transcoder.progress_parser import LogLine, ProgressEvent


def make_event(**overrides) -> ProgressEvent:
    values = dict(
        completion=0.5,
        frame=120,
        fps=30.0,
        quality=-1.0,
        is_final=True,
        size_bytes=512000,
        media_time=4.0,
        bit_rate=838800,
        elapsed=timedelta(seconds=2),
    )
    values.update(overrides)
    return ProgressEvent(**values)


class TestTranscodeMonitor:
    def test_base_monitor_ignores_everything(self):
        monitor = TranscodeMonitor()

        assert monitor.on_progress(make_event()) is None
        assert monitor.on_log(LogLine("Stream mapping:")) is None


class TestCallbackMonitor:
    """Test forwarding to callables."""

    def test_forwards_progress_and_lines(self):
        events, lines = [], []
        monitor = CallbackMonitor(on_progress=events.append, on_log=lines.append)
        event = make_event()

        monitor.on_progress(event)
        monitor.on_log(LogLine("Stream mapping:"))

        assert events == [event]
        assert lines == [LogLine("Stream mapping:")]

    def test_missing_callbacks_are_skipped(self):
        events = []
        monitor = CallbackMonitor(on_progress=events.append)

        monitor.on_log(LogLine("ignored"))
        monitor.on_progress(make_event())

        assert len(events) == 1


class TestLoggingMonitor:
    """Test logging sink."""

    def test_progress_logged_at_info(self, caplog):
        target = logging.getLogger("ffmpeg_transcoder.tests.monitor")
        monitor = LoggingMonitor(target)

        with caplog.at_level(logging.INFO, logger=target.name):
            monitor.on_progress(make_event())

        record = caplog.records[0]
        assert record.levelno == logging.INFO
        assert "50.0%" in record.getMessage()
        assert "(final)" in record.getMessage()
        assert record.frame == 120
        assert record.completion == 0.5

    def test_lines_logged_at_debug(self, caplog):
        target = logging.getLogger("ffmpeg_transcoder.tests.monitor")
        monitor = LoggingMonitor(target)

        with caplog.at_level(logging.DEBUG, logger=target.name):
            monitor.on_log(LogLine("Stream mapping:"))

        assert caplog.records[0].levelno == logging.DEBUG
        assert caplog.records[0].getMessage() == "Stream mapping:"

    def test_unknown_completion_is_formatted(self, caplog):
        monitor = LoggingMonitor()

        with caplog.at_level(logging.INFO, logger="ffmpeg_transcoder.monitor"):
            monitor.on_progress(make_event(completion=float("inf"), is_final=False))

        assert "inf%" in caplog.records[0].getMessage()
