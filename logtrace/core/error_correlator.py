"""
LogTrace - Error Correlator
===========================

Annotates the full set of error entries once extraction is done:
severity, related errors and position in the log's timeline.
"""

import bisect
import re
from collections import defaultdict
from datetime import datetime, timezone
from typing import Optional, Sequence

from logtrace.api.schemas import ErrorEntry
from logtrace.constants import Limits, Severity
from logtrace.utils.logging import get_logger

logger = get_logger(__name__)

ISO_TIMESTAMP = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})[T ](\d{2}):(\d{2}):(\d{2})"
    r"(?:[.,](\d{1,9}))?\s*(Z|[+-]\d{2}:?\d{2})?$"
)
EPOCH_TIMESTAMP = re.compile(r"^\d{10}(?:\d{3})?(?:\.\d+)?$")
APACHE_FORMAT = "%d/%b/%Y:%H:%M:%S %z"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a log timestamp into an aware datetime.

    Understands ISO-8601 variants (space or T, comma or dot fraction, Z or
    offset), Apache access-log stamps and epoch seconds/milliseconds.
    Naive times are taken as UTC.
    """
    if not value:
        return None
    text = value.strip()

    match = ISO_TIMESTAMP.match(text)
    if match:
        year, month, day, hour, minute, second, fraction, zone = match.groups()
        micros = int((fraction or "0").ljust(6, "0")[:6])
        tz = timezone.utc
        if zone and zone != "Z":
            zone = zone.replace(":", "")
            tz = datetime.strptime(zone, "%z").tzinfo
        try:
            return datetime(
                int(year), int(month), int(day),
                int(hour), int(minute), int(second), micros, tzinfo=tz
            )
        except ValueError:
            return None

    if EPOCH_TIMESTAMP.match(text):
        seconds = float(text)
        if seconds > 1e12:
            seconds /= 1000
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    try:
        return datetime.strptime(text, APACHE_FORMAT)
    except ValueError:
        pass

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class ErrorCorrelator:
    """
    Correlates error entries with each other.

    Severity precedence (first match wins):
    1. message mentions fatal / critical / outofmemory -> critical
    2. nullpointer / segmentation / stackoverflow, or a deep trace -> high
    3. any stack frames -> medium
    4. otherwise -> low

    Two errors are related when their timestamps are within the window,
    they share an error type, or their traces share a class or file name.
    """

    CRITICAL_MARKERS = ("fatal", "critical", "outofmemory")
    HIGH_MARKERS = ("nullpointer", "segmentation", "stackoverflow")

    def __init__(
        self,
        related_window_ms: int = Limits.RELATED_WINDOW_MS,
        high_severity_frames: int = Limits.HIGH_SEVERITY_FRAME_COUNT,
    ):
        self.related_window_ms = related_window_ms
        self.high_severity_frames = high_severity_frames

    def classify_severity(self, entry: ErrorEntry) -> Severity:
        """Severity of one error entry."""
        message = entry.message.lower()

        if any(marker in message for marker in self.CRITICAL_MARKERS):
            return Severity.CRITICAL

        if (any(marker in message for marker in self.HIGH_MARKERS)
                or len(entry.stack_frames) > self.high_severity_frames):
            return Severity.HIGH

        if entry.stack_frames:
            return Severity.MEDIUM

        return Severity.LOW

    def find_related(self, entries: Sequence[ErrorEntry]) -> list[list[int]]:
        """
        Related error line numbers for every entry.

        Equivalent to comparing every pair, but uses a time-sorted list and
        buckets by error type and frame class/file so large logs stay fast.

        Returns:
            One ascending list of line numbers per entry, in input order
        """
        window_ms = self.related_window_ms

        timed: list[tuple[float, int]] = []
        for idx, entry in enumerate(entries):
            parsed = parse_timestamp(entry.timestamp)
            if parsed is not None:
                timed.append((parsed.timestamp() * 1000, idx))
        timed.sort()
        times = [t for t, _ in timed]

        by_type: dict[str, list[int]] = defaultdict(list)
        by_frame_key: dict[tuple[str, str], set[int]] = defaultdict(set)
        for idx, entry in enumerate(entries):
            if entry.error_type:
                by_type[entry.error_type].append(idx)
            for key in self._frame_keys(entry):
                by_frame_key[key].add(idx)

        time_of = {idx: t for t, idx in timed}
        related: list[list[int]] = []

        for idx, entry in enumerate(entries):
            matches: set[int] = set()

            if idx in time_of:
                t = time_of[idx]
                lo = bisect.bisect_left(times, t - window_ms)
                hi = bisect.bisect_right(times, t + window_ms)
                matches.update(other for _, other in timed[lo:hi])

            if entry.error_type:
                matches.update(by_type[entry.error_type])

            for key in self._frame_keys(entry):
                matches.update(by_frame_key[key])

            matches.discard(idx)
            related.append([entries[other].line_number for other in sorted(matches)])

        return related

    @staticmethod
    def timeline_position(entry: ErrorEntry, total_entries: int) -> Optional[float]:
        """Line number relative to the entry count, capped at 1.0."""
        if total_entries <= 0:
            return None
        return min(entry.line_number / total_entries, 1.0)

    def correlate(self, entries: Sequence[ErrorEntry], total_entries: int) -> None:
        """Set severity, related_error_lines and timeline_position on every entry."""
        related = self.find_related(entries)

        for entry, related_lines in zip(entries, related):
            entry.severity = self.classify_severity(entry)
            entry.related_error_lines = related_lines
            entry.timeline_position = self.timeline_position(entry, total_entries)

        logger.debug(
            f"Correlated {len(entries)} error entries",
            extra={"error_count": len(entries)}
        )

    @staticmethod
    def _frame_keys(entry: ErrorEntry) -> set[tuple[str, str]]:
        keys = set()
        for frame in entry.stack_frames:
            if frame.class_name:
                keys.add(("class", frame.class_name))
            if frame.file_name:
                keys.add(("file", frame.file_name))
        return keys
