"""
LogTrace - Utilities Package
============================
"""

from logtrace.utils.logging import (
    get_logger,
    setup_logging,
    set_analysis_id,
    get_analysis_id,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "set_analysis_id",
    "get_analysis_id",
]
