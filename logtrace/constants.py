"""
LogTrace - Constants
====================

Enumerations and fixed limits shared by the parsing and locating pipelines.
Limits marked as defaults can be overridden through settings.
"""

from enum import Enum


class LogLevel(str, Enum):
    """Log levels recognised in application logs."""
    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    FATAL = "FATAL"


ERROR_LEVELS = frozenset({LogLevel.ERROR, LogLevel.FATAL})


class LogFormat(str, Enum):
    """Line grammars (dialects) the format detector can recognise."""
    JSON = "json"
    TEXT = "text"
    COMMON = "common"       # Apache common access log
    COMBINED = "combined"   # Apache combined access log
    SPRING = "spring"
    LOG4J = "log4j"


class Severity(str, Enum):
    """Severity assigned to an error entry by the correlator."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ProgrammingLanguage(str, Enum):
    """Source languages the project indexer classifies."""
    JAVA = "java"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    PYTHON = "python"
    CSHARP = "csharp"
    CPP = "cpp"
    GO = "go"
    RUST = "rust"
    PHP = "php"
    RUBY = "ruby"
    KOTLIN = "kotlin"
    SCALA = "scala"
    UNKNOWN = "unknown"


class FrameStyle(str, Enum):
    """Stack frame grammar that produced a frame."""
    JAVA = "java"
    PYTHON = "python"
    CSHARP = "csharp"
    JAVASCRIPT = "javascript"


class Limits:
    """Default bounds for parsing and extraction."""
    DETECTION_SAMPLE_SIZE = 50      # non-blank lines inspected by the detector
    STACK_LOOKAHEAD = 50            # lines scanned after an error line
    CONTEXT_RADIUS = 3              # context entries on each side of an error
    RELATED_WINDOW_MS = 5000        # errors this close in time are related
    HIGH_SEVERITY_FRAME_COUNT = 10  # more frames than this is high severity
    STREAM_CHUNK_BYTES = 64 * 1024
    MAX_LOG_FILE_MB = 100
    MAX_SOURCE_FILE_MB = 5
    MAX_RESULTS = 20


class Confidence:
    """Confidence assigned by each source matching strategy."""
    EXACT_FILE = 0.9
    CLASS_DEFINITION = 0.8
    METHOD_WITH_CLASS = 0.9
    METHOD_DEFINITION = 0.7
    FUZZY_PATH = 0.3
