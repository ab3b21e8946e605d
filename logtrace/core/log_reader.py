"""
LogTrace - Log File Reader
==========================

Validates log files and reads them either whole or as a bounded-memory
stream of line batches.
"""

import codecs
import os
import re
import stat
import threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from logtrace.config import get_settings
from logtrace.core.errors import (
    FilePermissionError,
    FileReadError,
    FileTooLargeError,
    LogFileNotFoundError,
    NotARegularFileError,
    StreamCancelledError,
)
from logtrace.utils.logging import get_logger

logger = get_logger(__name__)

LINE_SPLIT = re.compile(r"\r?\n")

BatchCallback = Callable[[list[str], bool], None]


def split_lines(text: str) -> list[str]:
    """Split text on LF / CRLF; a trailing terminator adds no empty line."""
    if not text:
        return []
    lines = LINE_SPLIT.split(text)
    if lines and lines[-1] == "":
        lines.pop()
    return lines


class LogFileReader:
    """
    Reads log files after validating them.

    Validation runs in a fixed order (existence, regular file, size cap)
    and each failure raises its own FileAccessError subclass before any
    content is read.
    """

    def __init__(
        self,
        max_file_size_mb: Optional[float] = None,
        encoding: Optional[str] = None,
        chunk_size: Optional[int] = None,
    ):
        """
        Initialize the reader.

        Args:
            max_file_size_mb: Size cap in MB, defaults to settings
            encoding: Text encoding, defaults to settings
            chunk_size: Streaming chunk size in bytes, defaults to settings
        """
        settings = get_settings()
        self.max_file_size_mb = max_file_size_mb or settings.max_file_size_mb
        self.encoding = encoding or settings.encoding
        self.chunk_size = chunk_size or settings.stream_chunk_size

    def validate_file(self, file_path: str | Path) -> os.stat_result:
        """
        Check that a path is a readable-sized regular file.

        Returns:
            The stat result of the file
        """
        path = str(file_path)
        stats = self._stat(path)

        if not stat.S_ISREG(stats.st_mode):
            raise NotARegularFileError(path)

        size_mb = stats.st_size / (1024 * 1024)
        if size_mb > self.max_file_size_mb:
            raise FileTooLargeError(path, size_mb, self.max_file_size_mb)

        return stats

    def read_lines(self, file_path: str | Path) -> list[str]:
        """Read a whole file into an ordered list of lines."""
        self.validate_file(file_path)
        path = str(file_path)

        try:
            with open(path, "r", encoding=self.encoding, errors="replace", newline="") as f:
                content = f.read()
        except PermissionError:
            raise FilePermissionError(path) from None
        except OSError as e:
            raise FileReadError(path, e.strerror or str(e)) from e

        lines = split_lines(content)
        logger.debug(f"Read {len(lines)} lines from {path}", extra={"line_count": len(lines)})
        return lines

    def read_stream(
        self,
        file_path: str | Path,
        on_batch: BatchCallback,
        cancel_event: Optional[threading.Event] = None,
    ) -> int:
        """
        Stream a file as batches of complete lines.

        Reads fixed-size byte chunks and decodes them incrementally. At most
        one incomplete trailing line is carried between chunks. `on_batch`
        receives the complete lines of every chunk with is_final=False, and
        once more at end of stream with the final partial line (possibly no
        lines) and is_final=True.

        Args:
            file_path: Log file to read
            on_batch: Callback receiving (lines, is_final)
            cancel_event: Checked between chunks; when set, reading stops

        Returns:
            Number of lines delivered

        Raises:
            StreamCancelledError: cancel_event was set before the end of stream
        """
        self.validate_file(file_path)
        path = str(file_path)

        decoder = codecs.getincrementaldecoder(self.encoding)(errors="replace")
        pending = ""
        delivered = 0

        try:
            with open(path, "rb") as f:
                while True:
                    if cancel_event is not None and cancel_event.is_set():
                        raise StreamCancelledError(path, delivered)

                    chunk = f.read(self.chunk_size)
                    if not chunk:
                        break

                    # a CR ending the chunk stays in `pending`, so a CRLF split
                    # across chunks is still recognised on the next split
                    pending += decoder.decode(chunk)
                    lines = LINE_SPLIT.split(pending)
                    pending = lines.pop()

                    on_batch(lines, False)
                    delivered += len(lines)
        except PermissionError:
            raise FilePermissionError(path) from None
        except OSError as e:
            raise FileReadError(path, e.strerror or str(e)) from e

        pending += decoder.decode(b"", final=True)
        final_lines = split_lines(pending)
        on_batch(final_lines, True)
        delivered += len(final_lines)

        return delivered

    def get_file_info(self, file_path: str | Path) -> dict:
        """Size, timestamps and extension of a file."""
        stats = self._stat(str(file_path))
        created = getattr(stats, "st_birthtime", stats.st_ctime)
        return {
            "size": stats.st_size,
            "size_mb": round(stats.st_size / (1024 * 1024), 2),
            "created": datetime.fromtimestamp(created),
            "modified": datetime.fromtimestamp(stats.st_mtime),
            "extension": Path(file_path).suffix.lower(),
        }

    @staticmethod
    def _stat(path: str) -> os.stat_result:
        try:
            return os.stat(path)
        except FileNotFoundError:
            raise LogFileNotFoundError(path) from None
        except PermissionError:
            raise FilePermissionError(path) from None
        except OSError as e:
            raise FileReadError(path, e.strerror or str(e)) from e
