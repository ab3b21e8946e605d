"""
LogTrace - Errors
=================

Exception taxonomy for the parsing and locating pipelines.

FileAccessError and its subclasses are fatal to one ingestion call and are
raised before any content is parsed. LineParseError, ProjectIndexError and
MatchError are scoped to a single line, tree or file and are recorded or
logged by the component that catches them.
"""

from typing import Optional


class LogTraceError(Exception):
    """Base class for all LogTrace errors."""


class FileAccessError(LogTraceError):
    """A log file cannot be ingested."""

    def __init__(self, path: str, message: str):
        super().__init__(message)
        self.path = path


class LogFileNotFoundError(FileAccessError):
    """The log file does not exist."""

    def __init__(self, path: str):
        super().__init__(path, f"Log file not found: {path}")


class NotARegularFileError(FileAccessError):
    """The path exists but is not a regular file."""

    def __init__(self, path: str):
        super().__init__(path, f"Path is not a regular file: {path}")


class FileTooLargeError(FileAccessError):
    """The log file exceeds the configured size cap."""

    def __init__(self, path: str, size_mb: float, limit_mb: float):
        super().__init__(
            path,
            f"Log file too large ({size_mb:.2f}MB), limit is {limit_mb}MB: {path}"
        )
        self.size_mb = size_mb
        self.limit_mb = limit_mb


class FilePermissionError(FileAccessError):
    """The log file cannot be read due to permissions."""

    def __init__(self, path: str):
        super().__init__(path, f"Permission denied reading log file: {path}")


class FileReadError(FileAccessError):
    """Any other OS level failure while reading the log file."""

    def __init__(self, path: str, reason: str):
        super().__init__(path, f"Failed to read log file {path}: {reason}")


class StreamCancelledError(LogTraceError):
    """A streaming read was cancelled between chunks."""

    def __init__(self, path: str, lines_read: int):
        super().__init__(f"Streaming read of {path} cancelled after {lines_read} lines")
        self.path = path
        self.lines_read = lines_read


class LineParseError(LogTraceError):
    """A single log line could not be parsed."""

    def __init__(self, line_number: int, reason: str):
        super().__init__(f"Line {line_number}: {reason}")
        self.line_number = line_number
        self.reason = reason


class ProjectIndexError(LogTraceError):
    """Scanning a project tree failed."""

    def __init__(self, root: str, reason: str):
        super().__init__(f"Failed to index project {root}: {reason}")
        self.root = root


class MatchError(LogTraceError):
    """Reading or scanning one candidate source file failed."""

    def __init__(self, path: str, reason: Optional[str] = None):
        super().__init__(f"Failed to scan {path}" + (f": {reason}" if reason else ""))
        self.path = path
