"""
LogTrace - Format Detector
==========================

Classifies a sample of log lines into one of the known line grammars.
"""

import re
from typing import Iterable, Optional

from logtrace.constants import LogFormat, Limits


# Declared priority order: on equal scores the earlier dialect wins.
# COMBINED precedes COMMON since every combined line is also a common line.
FORMAT_PATTERNS: list[tuple[LogFormat, re.Pattern]] = [
    # {"timestamp": "...", "level": "ERROR", "message": "..."}
    (LogFormat.JSON, re.compile(r"^\s*\{.*\}\s*$")),
    # 2024-01-01 10:00:00.123  INFO 12345 --- [main] c.e.Application : Message
    (LogFormat.SPRING, re.compile(
        r"^\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2}\.\d{3}\s+[A-Z]+\s+\d+\s+---\s+\[.*?\]\s+[\w.$]+\s*:\s*"
    )),
    # 2024-01-01 10:00:00,123 [INFO] com.example.Class - Message
    (LogFormat.LOG4J, re.compile(
        r"^\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2},\d{3}\s+\[?[A-Z]+\]?\s+[\w.$]+\s*[-:]\s*"
    )),
    # 127.0.0.1 - frank [10/Oct/2000:13:55:36 -0700] "GET / HTTP/1.0" 200 2326 "ref" "agent"
    (LogFormat.COMBINED, re.compile(
        r"^\d+\.\d+\.\d+\.\d+\s+\S+\s+\S+\s+\[.*?\]\s+\".*?\"\s+\d+\s+(?:\d+|-)\s+\".*?\"\s+\".*?\""
    )),
    # 127.0.0.1 - frank [10/Oct/2000:13:55:36 -0700] "GET / HTTP/1.0" 200 2326
    (LogFormat.COMMON, re.compile(r"^\d+\.\d+\.\d+\.\d+\s+\S+\s+\S+\s+\[.*?\]\s+")),
]


class FormatDetector:
    """
    Scores every known dialect against a sample of lines.

    The sample is the first `sample_size` non-blank lines. Each line adds one
    point to every dialect whose grammar it matches; the highest score wins,
    ties go to the dialect declared first and a sample nothing matches is
    plain text.
    """

    def __init__(self, sample_size: int = Limits.DETECTION_SAMPLE_SIZE):
        self.sample_size = sample_size

    def sample(self, lines: Iterable[str]) -> list[str]:
        """Return the stripped non-blank lines the detector would inspect."""
        sampled = []
        for line in lines:
            stripped = line.strip()
            if not stripped:
                continue
            sampled.append(stripped)
            if len(sampled) >= self.sample_size:
                break
        return sampled

    def score(self, lines: Iterable[str]) -> dict[LogFormat, int]:
        """Match counts per dialect for the sampled lines."""
        scores = {fmt: 0 for fmt, _ in FORMAT_PATTERNS}
        for line in self.sample(lines):
            for fmt, pattern in FORMAT_PATTERNS:
                if pattern.match(line):
                    scores[fmt] += 1
        return scores

    def detect(self, lines: Iterable[str]) -> LogFormat:
        """Detect the dialect of a sequence of raw lines."""
        scores = self.score(lines)

        best_format: Optional[LogFormat] = None
        best_score = 0
        for fmt, _ in FORMAT_PATTERNS:
            if scores[fmt] > best_score:
                best_format = fmt
                best_score = scores[fmt]

        return best_format if best_format is not None else LogFormat.TEXT
