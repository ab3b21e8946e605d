"""
LogTrace - Core Package
"""

from logtrace.core.format_detector import FormatDetector
from logtrace.core.entry_parser import EntryParser
from logtrace.core.log_reader import LogFileReader
from logtrace.core.error_classifier import ErrorClassifier
from logtrace.core.stack_extractor import StackTraceExtractor
from logtrace.core.error_correlator import ErrorCorrelator
from logtrace.core.log_parser import LogParser
from logtrace.core.project_indexer import ProjectIndexer
from logtrace.core.source_matcher import SourceMatcher
from logtrace.core.code_locator import CodeLocator

__all__ = [
    "FormatDetector",
    "EntryParser",
    "LogFileReader",
    "ErrorClassifier",
    "StackTraceExtractor",
    "ErrorCorrelator",
    "LogParser",
    "ProjectIndexer",
    "SourceMatcher",
    "CodeLocator",
]
