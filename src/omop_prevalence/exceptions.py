"""
Error taxonomy for prevalence reporting.

Validation and population errors are raised before or instead of a
report. Store errors are raised per category and handled by the
orchestrator's failure policy.
"""

from typing import Iterable, Optional


class PrevalenceError(Exception):
    """Base class for all prevalence reporting errors."""
    pass


# =============================================================================
# INPUT VALIDATION
# =============================================================================

class ValidationError(PrevalenceError):
    """Invalid caller input, detected before any store access."""
    pass


class UnknownCategory(ValidationError, KeyError):
    """Requested category id is not registered."""

    def __init__(self, category_id: str, valid_ids: Optional[Iterable[str]] = None):
        self.category_id = category_id
        self.valid_ids = list(valid_ids) if valid_ids is not None else []
        message = f"Invalid category '{category_id}'."
        if self.valid_ids:
            message += f" Must be one of: {', '.join(self.valid_ids)}"
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class InvalidSchema(ValidationError):
    """Schema name is empty or not a plain identifier."""
    pass


class InvalidDateFormat(ValidationError):
    """Date value is not a valid YYYY-MM-DD date."""
    pass


class StartAfterEnd(ValidationError):
    """Analysis window start is not strictly before its end."""
    pass


# =============================================================================
# POPULATION
# =============================================================================

class ZeroPopulation(PrevalenceError):
    """Baseline population is empty, so no rate can be computed."""

    def __init__(self, message: str = "No patients found in the database"):
        super().__init__(message)


# =============================================================================
# STORE / CONNECTIVITY
# =============================================================================

class StoreError(PrevalenceError):
    """A query against the vocabulary or event store failed."""
    pass


class InvalidConnection(StoreError):
    """Database connection is missing, not opened, or has been closed."""
    pass


class QueryTimeout(StoreError):
    """Query exceeded its statement timeout."""
    pass


class CategoryQueryError(StoreError):
    """Store failure for a single category, raised under the abort policy."""

    def __init__(self, category_id: str, cause: Exception):
        self.category_id = category_id
        self.cause = cause
        super().__init__(f"Error executing query for category '{category_id}': {cause}")


class AllCategoriesFailed(PrevalenceError):
    """Every requested category failed under the skip policy."""

    def __init__(self, failures):
        self.failures = list(failures)
        ids = ", ".join(f.category_id for f in self.failures)
        super().__init__(f"Failed to retrieve statistics for any category ({ids})")
