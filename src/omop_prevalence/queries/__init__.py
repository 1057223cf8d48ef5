"""
SQL queries module.
"""

from omop_prevalence.queries.sql import (
    DomainTable,
    DOMAIN_TABLES,
    VocabularyQueries,
    EventQueries,
    escape_like,
    window_params,
)

__all__ = [
    "DomainTable",
    "DOMAIN_TABLES",
    "VocabularyQueries",
    "EventQueries",
    "escape_like",
    "window_params",
]
