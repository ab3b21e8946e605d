"""
LogTrace
========

Parses application log files, extracts errors with their stack traces and
correlates them with the source files of a project.
"""

__version__ = "0.1.0"
