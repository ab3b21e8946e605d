"""
LogTrace - Log Parser
=====================

Runs the log side of the pipeline for one file:
read -> detect format -> parse entries -> classify errors ->
extract stack traces -> correlate errors.

Whole-file and streaming reads feed the same session, so both modes
produce the same ParsedLogResult for the same file.
"""

import threading
from pathlib import Path
from typing import Callable, Optional

from logtrace.api.schemas import ErrorEntry, LogEntry, ParsedLogResult
from logtrace.config import get_settings
from logtrace.constants import LogFormat
from logtrace.core.entry_parser import EntryParser
from logtrace.core.error_classifier import ErrorClassifier
from logtrace.core.error_correlator import ErrorCorrelator
from logtrace.core.errors import LineParseError
from logtrace.core.format_detector import FormatDetector
from logtrace.core.log_reader import LogFileReader
from logtrace.core.stack_extractor import StackTraceExtractor
from logtrace.utils.logging import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[int, list[ErrorEntry]], None]


class _ParseSession:
    """
    Incremental parsing state for one log.

    Lines are buffered until the detector's sample is full, then parsed.
    An error candidate is finalized once its whole lookahead window has
    been parsed (or the input ended), so its stack trace is complete even
    when the trace spans several batches.
    """

    def __init__(self, parser: "LogParser"):
        self.parser = parser
        self.format: Optional[LogFormat] = None
        self.entries: list[LogEntry] = []
        self.error_entries: list[ErrorEntry] = []
        self.parse_errors: list[str] = []
        self.total_lines = 0

        self._buffer: list[str] = []
        self._buffered_non_blank = 0
        self._candidates: list[int] = []
        self._next_candidate = 0
        self._consumed: set[int] = set()

    def feed(self, lines: list[str], is_final: bool) -> None:
        """Consume one batch of raw lines."""
        if self.format is None:
            self._buffer.extend(lines)
            self._buffered_non_blank += sum(1 for line in lines if line.strip())
            if self._buffered_non_blank < self.parser.detector.sample_size and not is_final:
                return
            self.format = self.parser.detector.detect(self._buffer)
            lines, self._buffer = self._buffer, []
            logger.debug(f"Detected log format: {self.format.value}")

        for line in lines:
            self._parse_line(line)

        self._finalize(is_final)

    def result(self) -> ParsedLogResult:
        return ParsedLogResult(
            entries=self.entries,
            error_entries=self.error_entries,
            format=self.format or LogFormat.TEXT,
            total_lines=self.total_lines,
            parse_errors=self.parse_errors,
        )

    def _parse_line(self, line: str) -> None:
        self.total_lines += 1
        if not line.strip():
            return

        try:
            entry = self.parser.entry_parser.parse(line, self.total_lines, self.format)
        except LineParseError as e:
            self.parse_errors.append(str(e))
            logger.warning(
                f"Keeping unparsed line: {e.reason}",
                extra={"line_number": e.line_number}
            )
            entry = LogEntry(message=line, line_number=self.total_lines, raw_line=line)

        self.entries.append(entry)
        if self.parser.classifier.is_error(entry):
            self._candidates.append(len(self.entries) - 1)

    def _finalize(self, is_final: bool) -> None:
        window = max(self.parser.extractor.lookahead, self.parser.extractor.context_radius)

        while self._next_candidate < len(self._candidates):
            index = self._candidates[self._next_candidate]
            if not is_final and index + window >= len(self.entries):
                break
            self._next_candidate += 1

            if index in self._consumed:
                continue
            self.error_entries.append(self._build_error_entry(index))

        if is_final:
            self.parser.correlator.correlate(self.error_entries, len(self.entries))

    def _build_error_entry(self, index: int) -> ErrorEntry:
        extractor = self.parser.extractor
        entry = self.entries[index]

        scan = extractor.scan(self.entries, index)
        self._consumed.update(scan.consumed)
        frames = scan.frames or extractor.extract_embedded(entry)

        error_entry = self.parser.classifier.to_error_entry(entry)
        error_entry.stack_frames = frames
        error_entry.context_lines = extractor.context_lines(self.entries, index)
        return error_entry


class LogParser:
    """
    Parses log files into entries and correlated error entries.

    Components are configured from settings unless given explicitly.
    """

    def __init__(
        self,
        max_file_size_mb: Optional[float] = None,
        encoding: Optional[str] = None,
        chunk_size: Optional[int] = None,
        reader: Optional[LogFileReader] = None,
    ):
        settings = get_settings()
        self.settings = settings
        self.reader = reader or LogFileReader(
            max_file_size_mb=max_file_size_mb,
            encoding=encoding,
            chunk_size=chunk_size,
        )
        self.detector = FormatDetector(settings.detection_sample_size)
        self.entry_parser = EntryParser()
        self.classifier = ErrorClassifier()
        self.extractor = StackTraceExtractor(
            lookahead=settings.stack_lookahead,
            context_radius=settings.context_radius,
        )
        self.correlator = ErrorCorrelator(related_window_ms=settings.related_window_ms)

    def parse_lines(self, lines: list[str]) -> ParsedLogResult:
        """Parse lines already held in memory."""
        session = _ParseSession(self)
        session.feed(lines, True)
        return session.result()

    def parse_file(
        self,
        file_path: str | Path,
        stream_mode: Optional[bool] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ParsedLogResult:
        """
        Parse a log file.

        Args:
            file_path: Log file to parse
            stream_mode: Use the streaming reader; defaults to settings
            on_progress: Streaming only, see parse_file_stream
            cancel_event: Streaming only, see parse_file_stream

        Raises:
            FileAccessError: the file failed validation or could not be read
        """
        if stream_mode is None:
            stream_mode = self.settings.stream_mode
        if stream_mode:
            return self.parse_file_stream(file_path, on_progress, cancel_event)

        lines = self.reader.read_lines(file_path)
        if not lines:
            logger.warning(f"Log file is empty: {file_path}")

        result = self.parse_lines(lines)
        self._log_result(file_path, result)
        return result

    def parse_file_stream(
        self,
        file_path: str | Path,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ParsedLogResult:
        """
        Parse a log file in bounded-memory chunks.

        Args:
            file_path: Log file to parse
            on_progress: Called after every chunk and at end of stream with
                the cumulative line count and the error entries finalized so far
            cancel_event: Stops reading between chunks when set

        Raises:
            FileAccessError: the file failed validation or could not be read
            StreamCancelledError: cancel_event was set
        """
        session = _ParseSession(self)

        def on_batch(lines: list[str], is_final: bool) -> None:
            session.feed(lines, is_final)
            if on_progress is not None:
                on_progress(session.total_lines, list(session.error_entries))

        self.reader.read_stream(file_path, on_batch, cancel_event=cancel_event)

        result = session.result()
        self._log_result(file_path, result)
        return result

    def get_file_info(self, file_path: str | Path) -> dict:
        """Size, timestamps and extension of a log file."""
        return self.reader.get_file_info(file_path)

    @staticmethod
    def _log_result(file_path: str | Path, result: ParsedLogResult) -> None:
        logger.info(
            f"Parsed {result.total_lines} lines from {file_path}, "
            f"found {len(result.error_entries)} errors",
            extra={
                "format": result.format.value,
                "total_lines": result.total_lines,
                "entry_count": len(result.entries),
                "error_count": len(result.error_entries),
                "parse_error_count": len(result.parse_errors),
            }
        )
