"""
LogTrace - Error Classifier
===========================

Decides which log entries are errors and names their error type.
"""

import re
from typing import Optional

from logtrace.api.schemas import ErrorEntry, LogEntry
from logtrace.constants import ERROR_LEVELS, LogLevel


class ErrorClassifier:
    """
    Classifies log entries as errors.

    An entry is an error when its level is ERROR/FATAL or its message
    carries one of the indicator phrases below.
    """

    ERROR_INDICATORS = [
        re.compile(r"\b(exception|error|err|fail|failed|failure)\b", re.IGNORECASE),
        re.compile(r"\b(null\s*pointer|segmentation\s*fault|access\s*violation)\b", re.IGNORECASE),
        re.compile(r"\b(timeout|connection\s*refused|connection\s*reset)\b", re.IGNORECASE),
        re.compile(r"\b(out\s*of\s*memory|memory\s*leak|stack\s*overflow)\b", re.IGNORECASE),
        re.compile(r"\b(file\s*not\s*found|permission\s*denied|access\s*denied)\b", re.IGNORECASE),
        re.compile(r"\b(syntax\s*error|parse\s*error|compilation\s*error)\b", re.IGNORECASE),
        re.compile(r"\b(database\s*error|sql\s*error|query\s*failed)\b", re.IGNORECASE),
        re.compile(r"\b(network\s*error|socket\s*error|http\s*error)\b", re.IGNORECASE),
        re.compile(r"\b(assertion\s*failed|assertion\s*error)\b", re.IGNORECASE),
        re.compile(r"\bcritical\b", re.IGNORECASE),
        re.compile(r"\bfatal\b", re.IGNORECASE),
    ]

    # Java, Python, C# and JavaScript all name errors <Capitalized>...Exception/Error
    ERROR_TYPE_PATTERN = re.compile(r"\b([A-Z][A-Za-z0-9]*(?:Exception|Error))\b")
    BARE_ERROR_PATTERN = re.compile(r"\b(Error)\b")

    def is_error(self, entry: LogEntry) -> bool:
        """Check whether an entry is an error line."""
        if entry.level in ERROR_LEVELS:
            return True
        return any(pattern.search(entry.message) for pattern in self.ERROR_INDICATORS)

    def extract_error_type(self, message: str) -> Optional[str]:
        """First exception/error class name in a message."""
        match = self.ERROR_TYPE_PATTERN.search(message) or self.BARE_ERROR_PATTERN.search(message)
        return match.group(1) if match else None

    def to_error_entry(self, entry: LogEntry) -> ErrorEntry:
        """
        Build an ErrorEntry from an error line.

        Lines detected through indicator phrases keep their own level in
        `source_level` and are reported at ERROR.
        """
        level = entry.level if entry.level in ERROR_LEVELS else LogLevel.ERROR
        return ErrorEntry(
            timestamp=entry.timestamp,
            level=level,
            source_level=entry.level if entry.level != level else None,
            message=entry.message,
            line_number=entry.line_number,
            raw_line=entry.raw_line,
            metadata=entry.metadata,
            error_type=self.extract_error_type(entry.message),
        )
