"""
Prevalence reporting models.
"""

from omop_prevalence.models.dataclasses import (
    ExactSet,
    Range,
    Prefix,
    Predicate,
    Category,
    ConceptSet,
    EMPTY_CONCEPT_SET,
    ResolutionStrategy,
    EventDomain,
    CountUnit,
    FailurePolicy,
    TimeWindow,
    CountResult,
    RateRecord,
    PrescriptionRateRecord,
    AnyRateRecord,
    CategoryFailure,
    Report,
    code_bounds,
)

__all__ = [
    "ExactSet",
    "Range",
    "Prefix",
    "Predicate",
    "Category",
    "ConceptSet",
    "EMPTY_CONCEPT_SET",
    "ResolutionStrategy",
    "EventDomain",
    "CountUnit",
    "FailurePolicy",
    "TimeWindow",
    "CountResult",
    "RateRecord",
    "PrescriptionRateRecord",
    "AnyRateRecord",
    "CategoryFailure",
    "Report",
    "code_bounds",
]
