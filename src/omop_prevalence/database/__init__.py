"""
Database module for prevalence reporting.

Provides connection management for the OMOP data store.
"""

from omop_prevalence.database.connection import DatabaseConnection

__all__ = [
    "DatabaseConnection",
]
