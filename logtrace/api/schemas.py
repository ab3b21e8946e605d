"""
LogTrace - Schemas
==================

Pydantic models for parsed logs, error entries, project indexes and code
locations, plus the request/response bodies of the HTTP API.
"""

from datetime import datetime
from typing import Optional, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator

from logtrace.constants import (
    ERROR_LEVELS,
    FrameStyle,
    LogFormat,
    LogLevel,
    ProgrammingLanguage,
    Severity,
)


# =============================================================================
# LOG ENTRIES
# =============================================================================

class LogEntry(BaseModel):
    """One non-blank line of a log file."""

    timestamp: Optional[str] = Field(
        None,
        description="Timestamp text as it appears in the line"
    )
    level: Optional[LogLevel] = Field(
        None,
        description="Log level, when one could be recognised"
    )
    message: str = Field(
        ...,
        description="Message with the timestamp/level/logger prefix stripped"
    )
    line_number: int = Field(
        ...,
        ge=1,
        description="1-based line number in the source file"
    )
    raw_line: str = Field(
        ...,
        description="The line exactly as read"
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Decoded fields of a JSON log line"
    )


class StackFrame(BaseModel):
    """One call site parsed from a stack trace."""

    class_name: Optional[str] = None
    method_name: Optional[str] = None
    file_name: Optional[str] = None
    line_number: Optional[int] = None
    raw_line: str = Field(..., description="The frame line as logged")
    style: Optional[FrameStyle] = Field(
        None,
        description="Grammar that recognised the frame"
    )


class ErrorEntry(LogEntry):
    """A log entry identified as an error, with its trace and annotations."""

    level: LogLevel = Field(
        default=LogLevel.ERROR,
        description="ERROR or FATAL"
    )
    source_level: Optional[LogLevel] = Field(
        None,
        description="Level the line carried before it was promoted to ERROR"
    )
    error_type: Optional[str] = Field(
        None,
        description="Exception/error class name found in the message"
    )
    stack_frames: list[StackFrame] = Field(default_factory=list)
    context_lines: list[LogEntry] = Field(
        default_factory=list,
        description="Entries surrounding the error line"
    )

    # Set by the error correlator
    severity: Optional[Severity] = None
    related_error_lines: list[int] = Field(default_factory=list)
    timeline_position: Optional[float] = Field(None, gt=0.0, le=1.0)

    @field_validator("level")
    @classmethod
    def _error_level_only(cls, value: LogLevel) -> LogLevel:
        if value not in ERROR_LEVELS:
            raise ValueError(f"error entries must be ERROR or FATAL, got {value.value}")
        return value


class ParsedLogResult(BaseModel):
    """Everything parsed out of one log file."""

    entries: list[LogEntry] = Field(default_factory=list)
    error_entries: list[ErrorEntry] = Field(default_factory=list)
    format: LogFormat = LogFormat.TEXT
    total_lines: int = Field(0, ge=0)
    parse_errors: list[str] = Field(default_factory=list)


# =============================================================================
# PROJECT INDEX
# =============================================================================

class SourceFile(BaseModel):
    """A classified source file inside an indexed project."""

    model_config = ConfigDict(frozen=True)

    absolute_path: str
    relative_path: str
    extension: str
    size_bytes: int = Field(..., ge=0)
    language: ProgrammingLanguage


class ProjectIndex(BaseModel):
    """Immutable snapshot of a project's source files."""

    model_config = ConfigDict(frozen=True)

    root_path: str
    files: tuple[SourceFile, ...] = ()
    created_at: datetime = Field(default_factory=datetime.now)
    language_counts: dict[ProgrammingLanguage, int] = Field(default_factory=dict)

    @property
    def total_files(self) -> int:
        return len(self.files)

    @property
    def languages(self) -> list[ProgrammingLanguage]:
        return list(self.language_counts)


# =============================================================================
# CODE LOCATIONS
# =============================================================================

class CodeLocation(BaseModel):
    """A candidate source location for a stack frame."""

    file_path: str
    line_number: Optional[int] = None
    class_name: Optional[str] = None
    method_name: Optional[str] = None
    confidence: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Match certainty, higher is stronger"
    )
    match_reason: str = Field(..., description="Why this location was proposed")

    @property
    def dedup_key(self) -> tuple[str, Optional[int], Optional[str]]:
        return (self.file_path, self.line_number, self.method_name)


class LocationResult(BaseModel):
    """Ranked code locations for one error entry."""

    locations: list[CodeLocation] = Field(default_factory=list)
    related_files: list[str] = Field(default_factory=list)
    search_time_ms: float = Field(0.0, ge=0.0)
    index_used: bool = False


# =============================================================================
# API BODIES
# =============================================================================

class ParseRequest(BaseModel):
    """Request to parse a log file on the server's filesystem."""

    log_path: str = Field(..., description="Path of the log file")
    stream_mode: Optional[bool] = Field(
        None,
        description="Force streaming (True) or whole-file (False) reading"
    )


class LocateRequest(BaseModel):
    """Request to parse a log file and locate its errors in a project."""

    log_path: str = Field(..., description="Path of the log file")
    project_root: Optional[str] = Field(
        None,
        description="Project to search; detected from the log path when omitted"
    )
    fuzzy_match: Optional[bool] = None
    max_results: Optional[int] = Field(None, ge=1, le=200)


class ErrorLocation(BaseModel):
    """An error entry paired with its candidate locations."""

    error: ErrorEntry
    location: LocationResult


class LocateResponse(BaseModel):
    """Response of a locate request."""

    project_root: str
    format: LogFormat
    total_lines: int
    error_count: int
    parse_errors: list[str] = Field(default_factory=list)
    results: list[ErrorLocation] = Field(default_factory=list)


class IndexRequest(BaseModel):
    """Request to index a project tree."""

    root_path: str
    max_file_size_mb: Optional[float] = Field(None, gt=0)


class IndexSummary(BaseModel):
    """Summary of a built project index."""

    root_path: str
    total_files: int
    language_counts: dict[str, int] = Field(default_factory=dict)
    created_at: datetime
