"""
Utilities module for prevalence reporting.

Provides logging helpers.
"""

from omop_prevalence.utils.logger import (
    setup_logger,
    get_logger,
    log_report_start,
    log_report_end,
    log_category_result,
)

__all__ = [
    "setup_logger",
    "get_logger",
    "log_report_start",
    "log_report_end",
    "log_category_result",
]
