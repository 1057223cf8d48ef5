"""
Report formatting.
"""

from omop_prevalence.reports.formatter import (
    INCLUDE_OPTIONS,
    report_to_dataframe,
    format_rates_table,
)

__all__ = [
    "INCLUDE_OPTIONS",
    "report_to_dataframe",
    "format_rates_table",
]
