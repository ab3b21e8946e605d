"""
LogTrace - Code Locator
=======================

Locates the source of parsed errors inside a project.

Responsibilities:
- Index the project (or fall back to a filesystem search when that fails)
- Detect the project root from a log file's location
- Match each error's stack frames to code locations
- Build frames from the error message when no trace was logged
"""

import os
import re
from pathlib import Path
from typing import Optional, Sequence

from logtrace.api.schemas import ErrorEntry, LocationResult, ProjectIndex, StackFrame
from logtrace.core.errors import LogTraceError, ProjectIndexError
from logtrace.core.language_detector import EXTENSION_MAP, display_name
from logtrace.core.project_indexer import ProjectIndexer
from logtrace.core.source_matcher import SourceMatcher
from logtrace.utils.logging import get_logger

logger = get_logger(__name__)

# "failed in UserService.java:42"
MESSAGE_FILE_REFERENCE = re.compile(
    r"\b([\w.-]+(?:%s)):(\d+)\b"
    % "|".join(re.escape(ext) for ext in sorted(EXTENSION_MAP, key=len, reverse=True))
)
# com.example.UserService
MESSAGE_QUALIFIED_CLASS = re.compile(r"\b((?:[a-z_]\w*\.)+[A-Z]\w*)\b")
# UserService
MESSAGE_CLASS = re.compile(r"\b([A-Z][a-z0-9]+(?:[A-Z][a-z0-9]*)+)\b")
ERROR_SUFFIX = re.compile(r"(?:Exception|Error)$")


class CodeLocator:
    """
    Finds candidate code locations for error entries.

    Usage:
        locator = CodeLocator()
        locator.initialize("/path/to/project")
        results = locator.locate_error_sources(parsed.error_entries)
    """

    def __init__(
        self,
        indexer: Optional[ProjectIndexer] = None,
        matcher: Optional[SourceMatcher] = None,
    ):
        self.indexer = indexer or ProjectIndexer()
        self.matcher = matcher or SourceMatcher()
        self.project_root: Optional[str] = None
        self.project_index: Optional[ProjectIndex] = None

    def initialize(self, project_root: str | Path) -> None:
        """
        Index a project for subsequent lookups.

        Indexing failures are not fatal: the locator keeps working against
        the filesystem directly.
        """
        self.project_root = os.path.abspath(project_root)
        logger.info(f"Initializing code locator: {self.project_root}")

        try:
            self.project_index = self.indexer.build_index(self.project_root)
        except ProjectIndexError as e:
            logger.warning(f"{e}, falling back to filesystem search")
            self.project_index = None

        self.matcher.set_project_index(self.project_index)

    def auto_detect_project_root(self, log_path: Optional[str | Path] = None) -> str:
        """
        Detect and initialize the project that owns a log file.

        The search starts in the log file's directory (or the working
        directory) and falls back to that start directory when no project
        marker is found above it.
        """
        start = os.getcwd()
        if log_path:
            log_dir = os.path.dirname(os.path.abspath(log_path))
            if os.path.isdir(log_dir):
                start = log_dir

        detected = self.indexer.find_project_root(start)
        if detected:
            logger.info(f"Detected project root: {detected}")
        else:
            logger.info(f"No project root found, using {start}")
            detected = start

        self.initialize(detected)
        return detected

    def locate_error_sources(
        self,
        errors: Sequence[ErrorEntry],
        fuzzy_match: Optional[bool] = None,
        max_results: Optional[int] = None,
    ) -> dict[int, LocationResult]:
        """
        Locate every error entry in the project.

        Returns:
            Location results keyed by the error entry's line number

        Raises:
            LogTraceError: the locator has not been initialized
        """
        if self.project_root is None:
            raise LogTraceError(
                "Code locator is not initialized, call initialize() or auto_detect_project_root() first"
            )

        logger.info(f"Locating sources for {len(errors)} errors")
        results: dict[int, LocationResult] = {}

        for error in errors:
            frames = error.stack_frames or self.extract_stack_from_message(error.message)
            if not frames:
                results[error.line_number] = LocationResult(index_used=self.project_index is not None)
                continue

            try:
                results[error.line_number] = self.matcher.find_locations(
                    frames,
                    self.project_root,
                    max_results=max_results,
                    fuzzy_match=fuzzy_match,
                )
            except Exception as e:
                logger.warning(
                    f"Failed to locate error at line {error.line_number}: {e}",
                    exc_info=True
                )
                results[error.line_number] = LocationResult()

        return results

    @staticmethod
    def extract_stack_from_message(message: str) -> list[StackFrame]:
        """
        Synthetic frames for an error logged without a stack trace.

        Picks up a `File.ext:line` reference and the first class-like name
        in the message. Exception and error type names are ignored.
        """
        frames: list[StackFrame] = []

        file_ref = MESSAGE_FILE_REFERENCE.search(message)
        if file_ref:
            frames.append(StackFrame(
                file_name=file_ref.group(1),
                line_number=int(file_ref.group(2)),
                raw_line=message,
            ))

        class_name = None
        for pattern in (MESSAGE_QUALIFIED_CLASS, MESSAGE_CLASS):
            for match in pattern.finditer(message):
                candidate = match.group(1)
                if not ERROR_SUFFIX.search(candidate):
                    class_name = candidate
                    break
            if class_name:
                break

        if class_name:
            frames.append(StackFrame(class_name=class_name, raw_line=message))

        return frames

    def get_project_stats(self) -> dict:
        """File and per-language totals of the current index."""
        if self.project_index is None:
            return {"total_files": 0, "languages": {}, "has_index": False}

        return {
            "total_files": self.project_index.total_files,
            "languages": {
                display_name(language): count
                for language, count in self.project_index.language_counts.items()
            },
            "has_index": True,
        }

    def refresh_index(self) -> None:
        """Re-index the current project."""
        if self.project_root is not None:
            self.initialize(self.project_root)
