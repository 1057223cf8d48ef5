"""
OMOP Prevalence Package

Computes prevalence and utilization rates for ICD-10-CM disease chapters
and ATC drug classes against an OMOP CDM database.

Layers:
- Registry: read-only catalogs of categories and their code predicates
- Repositories: vocabulary and event queries against PostgreSQL
- Services: resolver, counter, aggregator, orchestrator
- Reports: pandas tables for display

Usage:
    from omop_prevalence import DatabaseConnection, PrevalenceService

    with DatabaseConnection() as db:
        service = PrevalenceService(db, cdm_schema="cdm")

        report = service.get_prevalence_rates()
        for record in report:
            print(record.category_id, record.prevalence_pct)

        missing = report.missing_categories()
"""

__version__ = "1.0.0"

from omop_prevalence.database import DatabaseConnection

from omop_prevalence.exceptions import (
    PrevalenceError,
    ValidationError,
    UnknownCategory,
    InvalidSchema,
    InvalidDateFormat,
    StartAfterEnd,
    ZeroPopulation,
    StoreError,
    InvalidConnection,
    QueryTimeout,
    CategoryQueryError,
    AllCategoriesFailed,
)

from omop_prevalence.models import (
    ExactSet,
    Range,
    Prefix,
    Category,
    TimeWindow,
    CountResult,
    RateRecord,
    PrescriptionRateRecord,
    CategoryFailure,
    Report,
    ResolutionStrategy,
    EventDomain,
    CountUnit,
    FailurePolicy,
)

from omop_prevalence.registry import CategoryRegistry, disease_registry, atc_registry

from omop_prevalence.services import (
    VocabularyResolver,
    OccurrenceCounter,
    RateAggregator,
    BatchOrchestrator,
    PrevalenceService,
)

from omop_prevalence.validation import build_window


__all__ = [
    "__version__",
    # Connection
    "DatabaseConnection",
    # Errors
    "PrevalenceError",
    "ValidationError",
    "UnknownCategory",
    "InvalidSchema",
    "InvalidDateFormat",
    "StartAfterEnd",
    "ZeroPopulation",
    "StoreError",
    "InvalidConnection",
    "QueryTimeout",
    "CategoryQueryError",
    "AllCategoriesFailed",
    # Models
    "ExactSet",
    "Range",
    "Prefix",
    "Category",
    "TimeWindow",
    "CountResult",
    "RateRecord",
    "PrescriptionRateRecord",
    "CategoryFailure",
    "Report",
    "ResolutionStrategy",
    "EventDomain",
    "CountUnit",
    "FailurePolicy",
    # Registries
    "CategoryRegistry",
    "disease_registry",
    "atc_registry",
    # Services
    "VocabularyResolver",
    "OccurrenceCounter",
    "RateAggregator",
    "BatchOrchestrator",
    "PrevalenceService",
    "build_window",
]
