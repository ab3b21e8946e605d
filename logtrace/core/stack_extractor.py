"""
LogTrace - Stack Trace Extractor
================================

Collects the stack frames that follow an error line.

Frame grammars are tried in a fixed order (Java, Python, C#, JavaScript)
and the first one that matches a line produces the frame. Scanning starts
on the line after the error, looks at most `lookahead` lines ahead and
stops at the first line that looks like a new log entry.
"""

import re
from typing import Callable, NamedTuple, Optional, Sequence

from logtrace.api.schemas import LogEntry, StackFrame
from logtrace.constants import FrameStyle, Limits


def _split_qualified(name: str) -> tuple[Optional[str], str]:
    """Split `pkg.Class.method` into (`pkg.Class`, `method`)."""
    name = name.strip()
    dot = name.rfind(".")
    if dot > 0:
        return name[:dot], name[dot + 1:]
    return None, name


# at com.example.Service.run(Service.java:42)
# at java.base/java.lang.Thread.run(Thread.java:833)
JAVA_FRAME = re.compile(
    r"^\s*at\s+(?:[\w.$-]+(?:@[\w.-]+)?/)?"
    r"((?:[a-zA-Z_$][\w$]*\.)+(?:[a-zA-Z_$][\w$]*|<init>|<clinit>))"
    r"\(([^)]*)\)(?!\s+in\s)"
)
JAVA_LOCATION = re.compile(r"^([^:]+):(\d+)")

# File "/app/service.py", line 42, in handle
PYTHON_FRAME = re.compile(r'^\s*File\s+"([^"]+)",\s*line\s+(\d+),\s*in\s+(.+)')

# at MyApp.Service.Handle(String id) in C:\src\Service.cs:line 42
CSHARP_FRAME = re.compile(r"^\s*at\s+([^(]+)\([^)]*\)\s+in\s+(.+):line\s+(\d+)")

# at UserService.getUser (/app/user.js:10:5)
# at /app/index.js:10:5
JS_FRAME = re.compile(r"^\s*at\s+(.+?)\s+\((.+?):(\d+):(\d+)\)\s*$")
JS_ANONYMOUS_FRAME = re.compile(r"^\s*at\s+((?:[A-Za-z]:)?[^\s()]+?):(\d+):(\d+)\s*$")


def _java_frame(match: re.Match, line: str) -> StackFrame:
    class_name, method_name = _split_qualified(match.group(1))
    location = JAVA_LOCATION.match(match.group(2).strip())
    return StackFrame(
        class_name=class_name,
        method_name=method_name,
        file_name=location.group(1) if location else None,
        line_number=int(location.group(2)) if location else None,
        raw_line=line,
        style=FrameStyle.JAVA,
    )


def _python_frame(match: re.Match, line: str) -> StackFrame:
    return StackFrame(
        file_name=match.group(1),
        line_number=int(match.group(2)),
        method_name=match.group(3).strip(),
        raw_line=line,
        style=FrameStyle.PYTHON,
    )


def _csharp_frame(match: re.Match, line: str) -> StackFrame:
    class_name, method_name = _split_qualified(match.group(1))
    return StackFrame(
        class_name=class_name,
        method_name=method_name,
        file_name=match.group(2).strip(),
        line_number=int(match.group(3)),
        raw_line=line,
        style=FrameStyle.CSHARP,
    )


def _js_frame(match: re.Match, line: str) -> StackFrame:
    function = re.sub(r"^(?:async|new)\s+", "", match.group(1).strip())
    class_name, method_name = _split_qualified(function)
    return StackFrame(
        class_name=class_name,
        method_name=method_name,
        file_name=match.group(2),
        line_number=int(match.group(3)),
        raw_line=line,
        style=FrameStyle.JAVASCRIPT,
    )


def _js_anonymous_frame(match: re.Match, line: str) -> StackFrame:
    return StackFrame(
        file_name=match.group(1),
        line_number=int(match.group(2)),
        raw_line=line,
        style=FrameStyle.JAVASCRIPT,
    )


FRAME_GRAMMARS: list[tuple[re.Pattern, Callable[[re.Match, str], StackFrame]]] = [
    (JAVA_FRAME, _java_frame),
    (PYTHON_FRAME, _python_frame),
    (CSHARP_FRAME, _csharp_frame),
    (JS_FRAME, _js_frame),
    (JS_ANONYMOUS_FRAME, _js_anonymous_frame),
]

NEW_ENTRY_PATTERNS = [
    re.compile(r"^\d{4}-\d{2}-\d{2}[\sT]+\d{2}:\d{2}:\d{2}"),
    re.compile(r"^\d{2}:\d{2}:\d{2}"),
    re.compile(r"^\[\d{4}-\d{2}-\d{2}"),
    re.compile(r"^(INFO|DEBUG|ERROR|WARN|WARNING|FATAL|TRACE)\b", re.IGNORECASE),
    re.compile(r"^\{.*\}$"),
]

EMBEDDED_TRACE_KEYS = ("stack", "stack_trace", "stackTrace", "stacktrace", "exception", "traceback")


class StackScan(NamedTuple):
    """Frames found after an error line and the entry indexes they came from."""
    frames: list[StackFrame]
    consumed: list[int]


def parse_frame_line(line: str) -> Optional[StackFrame]:
    """Parse one line with the first frame grammar that matches it."""
    for pattern, build in FRAME_GRAMMARS:
        match = pattern.match(line)
        if match:
            return build(match, line.strip())
    return None


def is_new_log_entry(line: str) -> bool:
    """Check whether a stripped line starts a new top-level log entry."""
    return any(pattern.match(line) for pattern in NEW_ENTRY_PATTERNS)


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip())


class StackTraceExtractor:
    """
    Extracts stack frames and context lines around error entries.

    Lines that match no grammar are skipped until the first frame is found
    and end the trace afterwards. Lines indented deeper than a preceding
    Python frame line (the echoed source line and caret markers) belong to
    that frame.
    """

    def __init__(
        self,
        lookahead: int = Limits.STACK_LOOKAHEAD,
        context_radius: int = Limits.CONTEXT_RADIUS,
    ):
        self.lookahead = lookahead
        self.context_radius = context_radius

    def scan(self, entries: Sequence[LogEntry], index: int) -> StackScan:
        """
        Scan forward from the entry at `index` for its stack frames.

        Returns:
            StackScan with frames in order of appearance
        """
        frames: list[StackFrame] = []
        consumed: list[int] = []
        python_indent: Optional[int] = None

        end = min(len(entries), index + 1 + self.lookahead)
        for i in range(index + 1, end):
            raw = entries[i].raw_line
            line = raw.strip()
            if not line:
                continue

            if is_new_log_entry(line):
                break

            frame = parse_frame_line(line)
            if frame is not None:
                frames.append(frame)
                consumed.append(i)
                python_indent = _indent(raw) if frame.style == FrameStyle.PYTHON else None
                continue

            if python_indent is not None and _indent(raw) > python_indent:
                consumed.append(i)
                continue

            if frames:
                break

        return StackScan(frames, consumed)

    def extract(self, entries: Sequence[LogEntry], index: int) -> list[StackFrame]:
        """Stack frames following the entry at `index`."""
        return self.scan(entries, index).frames

    def extract_embedded(self, entry: LogEntry) -> list[StackFrame]:
        """
        Frames from a trace carried inside a JSON log line.

        Looks for a stack/exception/traceback string among the decoded
        fields and runs its lines through the same grammars.
        """
        for key in EMBEDDED_TRACE_KEYS:
            value = entry.metadata.get(key)
            if isinstance(value, dict):
                value = value.get("stack") or value.get("stack_trace") or value.get("stacktrace")
            if not isinstance(value, str) or not value:
                continue

            frames = []
            for line in value.splitlines():
                frame = parse_frame_line(line)
                if frame is not None:
                    frames.append(frame)
            if frames:
                return frames
        return []

    def context_lines(self, entries: Sequence[LogEntry], index: int) -> list[LogEntry]:
        """Entries within `context_radius` positions of `index`, clipped to bounds."""
        start = max(0, index - self.context_radius)
        end = min(len(entries), index + self.context_radius + 1)
        return list(entries[start:end])
