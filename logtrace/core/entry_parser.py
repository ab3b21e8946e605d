"""
LogTrace - Entry Parser
=======================

Turns one raw log line into a LogEntry for a detected dialect:
- level from keyword aliases, whatever the dialect
- timestamp from the dialect's prefix pattern, or a generic ISO-like one
- message with the timestamp/level/logger prefix stripped
"""

import json
import re
from typing import Any, NamedTuple, Optional

from logtrace.api.schemas import LogEntry
from logtrace.constants import LogFormat, LogLevel
from logtrace.core.errors import LineParseError
from logtrace.utils.logging import get_logger

logger = get_logger(__name__)


class DialectRule(NamedTuple):
    """Timestamp and prefix-stripping patterns of one text dialect."""
    timestamp: re.Pattern
    message: Optional[re.Pattern]


GENERIC_TIMESTAMP = re.compile(
    r"(\d{4}-\d{2}-\d{2}[ T]\d{2}:\d{2}:\d{2}(?:[.,]\d{1,9})?(?:Z|[+-]\d{2}:?\d{2})?)"
)

DIALECT_RULES: dict[LogFormat, DialectRule] = {
    LogFormat.SPRING: DialectRule(
        timestamp=re.compile(r"^(\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2}\.\d{3})"),
        message=re.compile(
            r"^\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2}\.\d{3}\s+[A-Z]+\s+\d+\s+---\s+\[.*?\]\s+[\w.$]+\s*:\s*(.*)$"
        ),
    ),
    LogFormat.LOG4J: DialectRule(
        timestamp=re.compile(r"^(\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2},\d{3})"),
        message=re.compile(
            r"^\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2},\d{3}\s+\[?[A-Z]+\]?\s+[\w.$]+\s*[-:]\s*(.*)$"
        ),
    ),
    LogFormat.COMMON: DialectRule(timestamp=re.compile(r"\[([^\]]+)\]"), message=None),
    LogFormat.COMBINED: DialectRule(timestamp=re.compile(r"\[([^\]]+)\]"), message=None),
}

JSON_TIMESTAMP_KEYS = ("timestamp", "time", "@timestamp")
JSON_LEVEL_KEYS = ("level", "severity", "loglevel")
JSON_MESSAGE_KEYS = ("message", "msg")


class EntryParser:
    """
    Parses single log lines for a given dialect.

    JSON lines that do not decode fall back to plain-text handling.
    Unexpected failures raise LineParseError so the caller can record the
    line and keep going.
    """

    LEVEL_MAPPINGS = {
        "trace": LogLevel.TRACE,
        "debug": LogLevel.DEBUG,
        "info": LogLevel.INFO,
        "information": LogLevel.INFO,
        "warn": LogLevel.WARN,
        "warning": LogLevel.WARN,
        "error": LogLevel.ERROR,
        "err": LogLevel.ERROR,
        "fatal": LogLevel.FATAL,
        "critical": LogLevel.FATAL,
        "crit": LogLevel.FATAL,
        "panic": LogLevel.FATAL,
    }

    LEVEL_PATTERN = re.compile(
        r"\b(trace|debug|information|info|warning|warn|error|err|fatal|critical|crit|panic)\b",
        re.IGNORECASE,
    )

    def extract_level(self, text: str) -> Optional[LogLevel]:
        """Level named by the first level keyword in the text, if any."""
        match = self.LEVEL_PATTERN.search(text)
        if not match:
            return None
        return self.LEVEL_MAPPINGS[match.group(1).lower()]

    def extract_timestamp(self, line: str, fmt: LogFormat) -> Optional[str]:
        """Timestamp text of a line in the given dialect."""
        if fmt == LogFormat.JSON:
            data = self._decode_json(line)
            if data is not None:
                return self._json_timestamp(data)

        rule = DIALECT_RULES.get(fmt)
        if rule is not None:
            match = rule.timestamp.search(line)
            if match:
                return match.group(1)

        match = GENERIC_TIMESTAMP.search(line)
        return match.group(1) if match else None

    def extract_message(self, line: str, fmt: LogFormat) -> str:
        """Message of a text line with its dialect prefix stripped."""
        rule = DIALECT_RULES.get(fmt)
        if rule is not None and rule.message is not None:
            match = rule.message.match(line)
            if match:
                return match.group(1).strip() or line
        return line.strip() or line

    def parse(self, line: str, line_number: int, fmt: LogFormat) -> LogEntry:
        """
        Parse one raw line.

        Args:
            line: Raw line without its line terminator
            line_number: 1-based position in the file
            fmt: Dialect detected for the file

        Returns:
            Parsed LogEntry

        Raises:
            LineParseError: the line could not be parsed at all
        """
        try:
            if fmt == LogFormat.JSON:
                data = self._decode_json(line)
                if data is not None:
                    return self._parse_json(data, line, line_number)
                logger.debug(
                    "JSON line did not decode, parsing as text",
                    extra={"line_number": line_number}
                )
            return self._parse_text(line, line_number, fmt)
        except (TypeError, ValueError) as e:
            raise LineParseError(line_number, str(e)) from e

    def _parse_text(self, line: str, line_number: int, fmt: LogFormat) -> LogEntry:
        return LogEntry(
            timestamp=self.extract_timestamp(line, fmt),
            level=self.extract_level(line),
            message=self.extract_message(line, fmt),
            line_number=line_number,
            raw_line=line,
        )

    def _parse_json(self, data: dict[str, Any], line: str, line_number: int) -> LogEntry:
        level_value = self._first_value(data, JSON_LEVEL_KEYS)
        message_value = self._first_value(data, JSON_MESSAGE_KEYS)

        return LogEntry(
            timestamp=self._json_timestamp(data),
            level=self.extract_level(str(level_value)) if level_value is not None else None,
            message=str(message_value) if message_value is not None else line,
            line_number=line_number,
            raw_line=line,
            metadata=data,
        )

    def _json_timestamp(self, data: dict[str, Any]) -> Optional[str]:
        value = self._first_value(data, JSON_TIMESTAMP_KEYS)
        return str(value) if value is not None else None

    @staticmethod
    def _first_value(data: dict[str, Any], keys: tuple[str, ...]) -> Any:
        for key in keys:
            value = data.get(key)
            if value not in (None, ""):
                return value
        return None

    @staticmethod
    def _decode_json(line: str) -> Optional[dict[str, Any]]:
        try:
            data = json.loads(line)
        except (ValueError, RecursionError):
            return None
        return data if isinstance(data, dict) else None
