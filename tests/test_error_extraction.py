"""
LogTrace - Error Extraction Tests
=================================

Unit tests for error classification, stack trace extraction and error
correlation.
"""

from datetime import timezone

import pytest

from logtrace.api.schemas import ErrorEntry, LogEntry, StackFrame
from logtrace.constants import FrameStyle, LogLevel, Severity
from logtrace.core.error_classifier import ErrorClassifier
from logtrace.core.error_correlator import ErrorCorrelator, parse_timestamp
from logtrace.core.log_parser import LogParser
from logtrace.core.stack_extractor import (
    StackTraceExtractor,
    is_new_log_entry,
    parse_frame_line,
)


def make_entries(lines):
    """Build raw LogEntry objects for extractor tests."""
    return [
        LogEntry(message=line.strip(), line_number=i, raw_line=line)
        for i, line in enumerate(lines, 1)
    ]


def make_error(line_number, message="failed", timestamp=None, error_type=None, frames=None):
    return ErrorEntry(
        message=message,
        line_number=line_number,
        raw_line=message,
        timestamp=timestamp,
        error_type=error_type,
        stack_frames=frames or [],
    )


class TestErrorClassifier:
    """Tests for error line classification."""

    @pytest.fixture
    def classifier(self):
        return ErrorClassifier()

    def test_error_level_is_error(self, classifier):
        """Test that ERROR and FATAL entries are errors."""
        entry = LogEntry(level=LogLevel.FATAL, message="shutting down", line_number=1, raw_line="x")

        assert classifier.is_error(entry)

    @pytest.mark.parametrize("message", [
        "Connection refused to host:5432",
        "Request failed after retries",
        "segmentation fault in worker",
        "Out of memory while allocating buffer",
        "permission denied: /var/data",
        "assertion failed: x > 0",
    ])
    def test_indicator_phrases(self, classifier, message):
        """Test that indicator phrases mark info lines as errors."""
        entry = LogEntry(level=LogLevel.INFO, message=message, line_number=1, raw_line=message)

        assert classifier.is_error(entry)

    def test_plain_info_is_not_error(self, classifier):
        """Test that ordinary lines are not errors."""
        entry = LogEntry(level=LogLevel.INFO, message="Started in 2.3s", line_number=1, raw_line="x")

        assert not classifier.is_error(entry)

    def test_extract_error_type(self, classifier):
        """Test error type extraction across naming conventions."""
        assert classifier.extract_error_type(
            "java.lang.NullPointerException: name is null"
        ) == "NullPointerException"
        assert classifier.extract_error_type("KeyError: 'user'") == "KeyError"
        assert classifier.extract_error_type("TypeError: x is undefined") == "TypeError"
        assert classifier.extract_error_type("something went wrong") is None

    def test_promoted_level_is_recorded(self, classifier):
        """Test that an indicator-only error keeps its original level."""
        entry = LogEntry(level=LogLevel.WARN, message="Request timeout", line_number=4, raw_line="x")

        error = classifier.to_error_entry(entry)

        assert error.level == LogLevel.ERROR
        assert error.source_level == LogLevel.WARN

    def test_error_entry_rejects_non_error_level(self):
        """Test that error entries only carry ERROR or FATAL."""
        with pytest.raises(ValueError):
            ErrorEntry(level=LogLevel.INFO, message="x", line_number=1, raw_line="x")


class TestFrameGrammars:
    """Tests for the individual stack frame grammars."""

    def test_java_frame(self):
        """Test a Java frame."""
        frame = parse_frame_line("\tat com.example.UserService.getUser(UserService.java:42)")

        assert frame.style == FrameStyle.JAVA
        assert frame.class_name == "com.example.UserService"
        assert frame.method_name == "getUser"
        assert frame.file_name == "UserService.java"
        assert frame.line_number == 42

    def test_java_module_frame(self):
        """Test a Java 9+ frame with a module prefix."""
        frame = parse_frame_line("at java.base/java.lang.Thread.run(Thread.java:833)")

        assert frame.class_name == "java.lang.Thread"
        assert frame.method_name == "run"
        assert frame.line_number == 833

    def test_java_native_frame(self):
        """Test a frame without a source location."""
        frame = parse_frame_line("at sun.reflect.NativeMethodAccessorImpl.invoke0(Native Method)")

        assert frame.method_name == "invoke0"
        assert frame.file_name is None
        assert frame.line_number is None

    def test_python_frame(self):
        """Test a Python traceback frame."""
        frame = parse_frame_line('  File "/app/worker.py", line 12, in run')

        assert frame.style == FrameStyle.PYTHON
        assert frame.file_name == "/app/worker.py"
        assert frame.line_number == 12
        assert frame.method_name == "run"
        assert frame.class_name is None

    def test_csharp_frame(self):
        """Test that a C# frame is not taken by the Java grammar."""
        frame = parse_frame_line(
            r"   at MyApp.Services.UserService.GetUser(Int32 id) in C:\src\UserService.cs:line 42"
        )

        assert frame.style == FrameStyle.CSHARP
        assert frame.class_name == "MyApp.Services.UserService"
        assert frame.method_name == "GetUser"
        assert frame.file_name == r"C:\src\UserService.cs"
        assert frame.line_number == 42

    def test_javascript_frame(self):
        """Test a Node.js frame."""
        frame = parse_frame_line("    at UserService.getUser (/app/src/user.js:10:5)")

        assert frame.style == FrameStyle.JAVASCRIPT
        assert frame.class_name == "UserService"
        assert frame.method_name == "getUser"
        assert frame.file_name == "/app/src/user.js"
        assert frame.line_number == 10

    def test_javascript_anonymous_frame(self):
        """Test a Node.js frame without a function name."""
        frame = parse_frame_line("    at /app/src/index.js:7:15")

        assert frame.file_name == "/app/src/index.js"
        assert frame.line_number == 7
        assert frame.method_name is None

    def test_prose_is_not_a_frame(self):
        """Test that ordinary text matches no grammar."""
        assert parse_frame_line("at least one retry is left") is None

    def test_new_entry_heuristic(self):
        """Test the new log entry heuristic."""
        assert is_new_log_entry("2024-01-01 10:00:00,000 [INFO] x - y")
        assert is_new_log_entry("10:00:00 something")
        assert is_new_log_entry("WARN low disk")
        assert is_new_log_entry("WARNING low disk")
        assert not is_new_log_entry("Traceback (most recent call last):")
        assert not is_new_log_entry("Information only")
        assert not is_new_log_entry("at com.example.Foo.bar(Foo.java:1)")


class TestStackTraceExtractor:
    """Tests for stack trace scanning."""

    @pytest.fixture
    def extractor(self):
        return StackTraceExtractor()

    def test_java_trace_stops_at_new_entry(self, extractor):
        """Test that two frames then a timestamped line yield two frames."""
        entries = make_entries([
            "2024-01-01 10:00:00,123 [ERROR] com.example.Svc - Request failed",
            "\tat com.example.Svc.handle(Svc.java:42)",
            "\tat com.example.Main.main(Main.java:10)",
            "2024-01-01 10:00:01,000 [INFO] com.example.Svc - recovered",
            "\tat com.example.Other.run(Other.java:1)",
        ])

        frames = extractor.extract(entries, 0)

        assert len(frames) == 2
        assert [f.method_name for f in frames] == ["handle", "main"]

    def test_trailing_prose_ends_trace(self, extractor):
        """Test that a non-frame line after frames ends the trace."""
        entries = make_entries([
            "ERROR request failed",
            "java.lang.IllegalStateException: boom",
            "\tat com.example.Svc.handle(Svc.java:42)",
            "\t... 12 more",
            "\tat com.example.Main.main(Main.java:10)",
        ])

        scan = extractor.scan(entries, 0)

        assert len(scan.frames) == 1
        assert scan.consumed == [2]

    def test_python_traceback(self, extractor):
        """Test that source lines under Python frames do not end the trace."""
        entries = make_entries([
            "2024-01-01 10:00:00,123 [ERROR] app.worker - Task failed",
            "Traceback (most recent call last):",
            '  File "/app/worker.py", line 12, in run',
            "    result = process(item)",
            '  File "/app/processor.py", line 40, in process',
            '    raise ValueError("bad item")',
            "ValueError: bad item",
            "2024-01-01 10:00:01,000 [INFO] app.worker - next",
        ])

        scan = extractor.scan(entries, 0)

        assert [f.file_name for f in scan.frames] == ["/app/worker.py", "/app/processor.py"]
        assert scan.consumed == [2, 3, 4, 5]

    def test_lookahead_bound(self):
        """Test that frames beyond the lookahead are not collected."""
        extractor = StackTraceExtractor(lookahead=3)
        entries = make_entries(
            ["ERROR failed"] + [f"\tat com.example.A.m{i}(A.java:{i})" for i in range(10)]
        )

        assert len(extractor.extract(entries, 0)) == 3

    def test_context_lines(self, extractor):
        """Test context clipping at both ends."""
        entries = make_entries([f"line {i}" for i in range(10)])

        assert len(extractor.context_lines(entries, 5)) == 7
        assert len(extractor.context_lines(entries, 0)) == 4
        assert len(extractor.context_lines(entries, 9)) == 4

    def test_embedded_json_trace(self, extractor):
        """Test frames carried in a JSON stack field."""
        entry = LogEntry(
            message="boom",
            line_number=1,
            raw_line="{}",
            metadata={
                "stack": "Error: boom\n    at handler (/app/api.js:5:3)\n    at /app/index.js:1:1"
            },
        )

        frames = extractor.extract_embedded(entry)

        assert [f.file_name for f in frames] == ["/app/api.js", "/app/index.js"]


class TestErrorCorrelator:
    """Tests for severity, relations and timeline position."""

    @pytest.fixture
    def correlator(self):
        return ErrorCorrelator()

    def test_critical_precedes_high(self, correlator):
        """Test that critical markers win over high markers."""
        error = make_error(1, message="critical nullpointer dereference")

        assert correlator.classify_severity(error) == Severity.CRITICAL

    def test_severity_levels(self, correlator):
        """Test the remaining severity levels."""
        frame = StackFrame(raw_line="at a.B.c(B.java:1)")

        assert correlator.classify_severity(make_error(1, "segmentation fault")) == Severity.HIGH
        assert correlator.classify_severity(make_error(1, "x", frames=[frame] * 11)) == Severity.HIGH
        assert correlator.classify_severity(make_error(1, "x", frames=[frame])) == Severity.MEDIUM
        assert correlator.classify_severity(make_error(1, "x")) == Severity.LOW

    def test_close_timestamps_are_related(self, correlator):
        """Test that errors 2000 ms apart are related both ways."""
        a = make_error(1, timestamp="2024-01-01 10:00:00.000", error_type="KeyError")
        b = make_error(5, timestamp="2024-01-01 10:00:02.000", error_type="ValueError")

        correlator.correlate([a, b], 10)

        assert a.related_error_lines == [5]
        assert b.related_error_lines == [1]

    def test_unrelated_errors(self, correlator):
        """Test that distant errors with nothing in common are unrelated."""
        a = make_error(
            1, timestamp="2024-01-01 10:00:00.000", error_type="KeyError",
            frames=[StackFrame(class_name="a.A", file_name="A.java", raw_line="x")],
        )
        b = make_error(
            5, timestamp="2024-01-01 10:00:06.000", error_type="ValueError",
            frames=[StackFrame(class_name="b.B", file_name="B.java", raw_line="y")],
        )

        correlator.correlate([a, b], 10)

        assert a.related_error_lines == []
        assert b.related_error_lines == []

    def test_shared_type_or_frame_relates(self, correlator):
        """Test relations through error type and shared frames."""
        a = make_error(1, error_type="KeyError")
        b = make_error(2, error_type="KeyError")
        c = make_error(3, frames=[StackFrame(file_name="Svc.java", raw_line="x")])
        d = make_error(4, frames=[StackFrame(file_name="Svc.java", raw_line="y")])

        correlator.correlate([a, b, c, d], 4)

        assert a.related_error_lines == [2]
        assert c.related_error_lines == [4]
        assert d.related_error_lines == [3]

    def test_matches_pairwise_definition(self, correlator):
        """Test the indexed relation against a direct pairwise check."""
        errors = [
            make_error(
                i + 1,
                timestamp=f"2024-01-01T10:00:{(i * 7) % 60:02d}Z",
                error_type=["KeyError", "ValueError", None][i % 3],
                frames=[StackFrame(file_name=f"F{i % 4}.py", raw_line="x")] if i % 2 else [],
            )
            for i in range(12)
        ]

        def related(a, b):
            ta, tb = parse_timestamp(a.timestamp), parse_timestamp(b.timestamp)
            if abs((ta - tb).total_seconds()) * 1000 <= 5000:
                return True
            if a.error_type and a.error_type == b.error_type:
                return True
            files_a = {f.file_name for f in a.stack_frames}
            return any(f.file_name in files_a for f in b.stack_frames)

        correlator.correlate(errors, 12)

        for a in errors:
            expected = [b.line_number for b in errors if b is not a and related(a, b)]
            assert a.related_error_lines == expected

    def test_timeline_position(self, correlator):
        """Test timeline position and its clamp."""
        assert correlator.timeline_position(make_error(5), 10) == 0.5
        assert correlator.timeline_position(make_error(12), 10) == 1.0
        assert correlator.timeline_position(make_error(1), 0) is None

    def test_parse_timestamp_variants(self):
        """Test the supported timestamp shapes."""
        iso = parse_timestamp("2024-01-01T10:00:00.5+02:00")
        spring = parse_timestamp("2024-01-01 08:00:00.500")
        log4j = parse_timestamp("2024-01-01 08:00:00,500")
        apache = parse_timestamp("01/Jan/2024:08:00:00 +0000")
        epoch_ms = parse_timestamp("1704096000500")

        assert iso == spring == log4j == epoch_ms
        assert apache.tzinfo is not None
        assert spring.tzinfo == timezone.utc
        assert parse_timestamp("not a time") is None
        assert parse_timestamp(None) is None


class TestErrorPipeline:
    """Tests for error extraction through the full parser."""

    def test_frame_lines_are_not_errors(self):
        """Test that a frame mentioning an error is not its own error entry."""
        lines = [
            "2024-01-01 10:00:00,123 [ERROR] com.example.Svc - Request failed",
            "\tat com.example.Logger.error(Logger.java:42)",
            "\tat com.example.Svc.handle(Svc.java:10)",
            "2024-01-01 10:00:01,000 [INFO] com.example.Svc - recovered",
        ]

        result = LogParser().parse_lines(lines)

        assert len(result.error_entries) == 1
        error = result.error_entries[0]
        assert len(error.stack_frames) == 2
        assert error.severity == Severity.MEDIUM
        assert len(error.context_lines) == 4
        assert error.timeline_position == 0.25

    def test_json_embedded_trace(self):
        """Test that JSON logs use the trace in their stack field."""
        lines = [
            '{"level": "INFO", "message": "up"}',
            '{"level": "ERROR", "message": "TypeError: x is undefined", '
            '"stack": "TypeError: x is undefined\\n    at render (/app/view.js:3:9)"}',
        ]

        result = LogParser().parse_lines(lines)

        error = result.error_entries[0]
        assert error.error_type == "TypeError"
        assert error.stack_frames[0].file_name == "/app/view.js"

    def test_python_traceback_after_error_line(self):
        """Test that a Traceback header does not cut off the Python frames."""
        lines = [
            "2024-01-01 10:00:00,123 [ERROR] app.worker - Task failed",
            "Traceback (most recent call last):",
            '  File "/app/worker.py", line 12, in run',
            "    result = process(item)",
            "ValueError: bad item",
            "2024-01-01 10:00:01,000 [INFO] app.worker - next",
        ]

        result = LogParser().parse_lines(lines)

        error = result.error_entries[0]
        assert error.line_number == 1
        assert len(error.stack_frames) == 1
        frame = error.stack_frames[0]
        assert frame.file_name == "/app/worker.py"
        assert frame.line_number == 12
        assert frame.method_name == "run"
        assert frame.style == FrameStyle.PYTHON
