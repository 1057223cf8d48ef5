"""
Prevalence reporting services.
"""

from omop_prevalence.services.resolver import VocabularyResolver
from omop_prevalence.services.counter import OccurrenceCounter
from omop_prevalence.services.aggregator import RateAggregator, rate
from omop_prevalence.services.orchestrator import BatchOrchestrator, sort_records
from omop_prevalence.services.prevalence_service import PrevalenceService

__all__ = [
    "VocabularyResolver",
    "OccurrenceCounter",
    "RateAggregator",
    "rate",
    "BatchOrchestrator",
    "sort_records",
    "PrevalenceService",
]
