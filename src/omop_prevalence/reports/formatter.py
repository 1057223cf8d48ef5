"""
Report formatting.

Turns a Report into pandas tables for display. Writing files is left
to the caller.
"""

from dataclasses import fields
from typing import Iterable

import pandas as pd

from omop_prevalence.models import CountUnit, PrescriptionRateRecord, RateRecord, Report

INCLUDE_OPTIONS = ("percentage", "rate", "counts", "all")


def _columns_for(report: Report):
    record_type = PrescriptionRateRecord if report.count_unit is CountUnit.EVENT_RECORDS else RateRecord
    return [f.name for f in fields(record_type)]


def report_to_dataframe(report: Report) -> pd.DataFrame:
    """One row per record, in report order."""
    return pd.DataFrame(report.to_dicts(), columns=_columns_for(report))


def format_rates_table(report: Report, include_columns: Iterable[str] = ("percentage", "rate")) -> pd.DataFrame:
    """
    Display table with selected column groups, ordered by category id.

    Args:
        report: Report to format
        include_columns: Any of "percentage", "rate", "counts", "all"

    Returns:
        DataFrame with id, name, the selected columns and date_range;
        percentages rendered as "12.34%" and rates as "1234.00"

    Raises:
        ValueError: On an unknown column option
    """
    include = set(include_columns)
    unknown = include - set(INCLUDE_OPTIONS)
    if unknown:
        raise ValueError(f"Unknown column option(s): {', '.join(sorted(unknown))}. "
                         f"Options: {', '.join(INCLUDE_OPTIONS)}")
    show_all = "all" in include

    df = report_to_dataframe(report)
    prescriptions = report.count_unit is CountUnit.EVENT_RECORDS

    if prescriptions:
        count_columns = ["category_prescriptions", "total_prescriptions", "total_patients"]
        pct_column, rate_column = "percentage_of_total", "rate_per_100k"
        result = df[["category_id", "display_name", "code"]].copy()
    else:
        count_columns = ["patient_count", "total_patients"]
        pct_column, rate_column = "prevalence_pct", "prevalence_per_100k"
        result = df[["category_id", "display_name", "code_start", "code_end"]].copy()

    if show_all or "counts" in include:
        for column in count_columns:
            result[column] = df[column]

    if show_all or "percentage" in include:
        result[pct_column] = df[pct_column].map(lambda v: f"{v:.2f}%")

    if show_all or "rate" in include:
        result[rate_column] = df[rate_column].map(lambda v: f"{v:.2f}")

    result["date_range"] = df["date_range"]

    return result.sort_values("category_id", kind="mergesort").reset_index(drop=True)
