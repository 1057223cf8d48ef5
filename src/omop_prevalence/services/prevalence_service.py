"""
Prevalence Service

High-level service layer that wires repositories, resolver, counter,
aggregator and orchestrator to one database connection.
"""

import logging
from typing import Iterable, Optional, Union

from omop_prevalence.config import Config, get_config
from omop_prevalence.database.connection import DatabaseConnection
from omop_prevalence.models import (
    CountUnit,
    FailurePolicy,
    PrescriptionRateRecord,
    Report,
    TimeWindow,
)
from omop_prevalence.protocols import EventStore, VocabularyStore
from omop_prevalence.registry import CategoryRegistry, atc_registry, disease_registry
from omop_prevalence.repositories import EventRepository, VocabularyRepository
from omop_prevalence.services.aggregator import RateAggregator
from omop_prevalence.services.counter import OccurrenceCounter
from omop_prevalence.services.orchestrator import BatchOrchestrator
from omop_prevalence.services.resolver import VocabularyResolver
from omop_prevalence.validation import DateLike, build_window, validate_schema

logger = logging.getLogger(__name__)


class PrevalenceService:
    """
    High-level service for prevalence and prescription reports.

    Usage:
        with DatabaseConnection() as db:
            service = PrevalenceService(db, cdm_schema="cdm")

            # Disease chapter prevalence, default window
            report = service.get_prevalence_rates()

            # Two chapters, custom window
            report = service.get_prevalence_rates(
                categories=["respiratory", "circulatory"],
                start_date="2020-01-01", end_date="2020-12-31",
            )

            # ATC prescription statistics
            stats = service.get_all_atc_stats(failure_policy="skip")

            # Everything since 2020, no end bound
            report = service.get_prevalence_rates(start_date="2020-01-01", open_ended=True)
    """

    def __init__(
        self,
        db: Optional[DatabaseConnection] = None,
        cdm_schema: Optional[str] = None,
        vocabulary_schema: Optional[str] = None,
        config: Optional[Config] = None,
        statement_timeout_ms: Optional[int] = None,
        failure_policy: Union[FailurePolicy, str, None] = None,
        max_workers: Optional[int] = None,
        vocabulary_store: Optional[VocabularyStore] = None,
        event_store: Optional[EventStore] = None,
    ):
        """
        Initialize service.

        Args:
            db: DatabaseConnection instance (not needed when both stores are given)
            cdm_schema: Schema of the clinical tables (default from config)
            vocabulary_schema: Schema of the vocabulary tables (default: CDM schema)
            config: Configuration (default: global config)
            statement_timeout_ms: Per-query deadline (default from config; 0 disables)
            failure_policy: Default failure policy (default from config)
            max_workers: Parallel category pipelines (default from config)
            vocabulary_store: Replace the vocabulary repository
            event_store: Replace the event repository

        Raises:
            InvalidSchema: If a schema name is invalid
        """
        self.config = config or get_config()
        db_config = self.config.database

        self.cdm_schema = validate_schema(cdm_schema or db_config.cdm_schema)
        self.vocabulary_schema = validate_schema(
            vocabulary_schema or db_config.vocabulary_schema or self.cdm_schema
        )

        timeout = db_config.statement_timeout_ms if statement_timeout_ms is None else statement_timeout_ms
        timeout = timeout or None

        if (vocabulary_store is None or event_store is None) and db is None:
            raise ValueError("db is required unless both stores are provided")

        self.db = db
        self.vocabulary = vocabulary_store or VocabularyRepository(
            db, self.vocabulary_schema, timeout, db_config.max_retries, db_config.retry_backoff
        )
        self.events = event_store or EventRepository(
            db, self.cdm_schema, timeout, db_config.max_retries, db_config.retry_backoff
        )

        self.resolver = VocabularyResolver(self.vocabulary)
        self.counter = OccurrenceCounter(self.events)
        self.aggregator = RateAggregator()
        self.orchestrator = BatchOrchestrator(
            self.resolver,
            self.counter,
            self.aggregator,
            failure_policy=failure_policy or self.config.analysis.failure_policy,
            max_workers=max_workers or self.config.analysis.max_workers,
        )
        self.default_window = build_window(self.config.analysis.start_date, self.config.analysis.end_date)

    # =========================================================================
    # DISEASE PREVALENCE
    # =========================================================================

    def get_total_patients(self) -> int:
        """Distinct persons in the database."""
        return self.counter.total_population()

    def get_category_count(
        self,
        category_id: str,
        start_date: DateLike = None,
        end_date: DateLike = None,
        registry: Optional[CategoryRegistry] = None,
        open_ended: bool = False,
    ) -> int:
        """
        Distinct persons in one category.

        Args:
            category_id: Category id (default registry: disease chapters)
            start_date: Window start (YYYY-MM-DD or date)
            end_date: Window end (YYYY-MM-DD or date)
            registry: Registry the id belongs to

        Returns:
            Number of distinct persons

        Raises:
            UnknownCategory: If the id is not registered
        """
        registry = registry or disease_registry()
        category = registry.get(category_id)
        window = self._window(start_date, end_date, open_ended)
        concepts = self.resolver.resolve_in(registry, category)
        return self.counter.count(category.id, concepts, window, registry.event_domain).count

    def get_prevalence_rates(
        self,
        categories: Optional[Iterable[str]] = None,
        start_date: DateLike = None,
        end_date: DateLike = None,
        failure_policy: Union[FailurePolicy, str, None] = None,
        registry: Optional[CategoryRegistry] = None,
        open_ended: bool = False,
    ) -> Report:
        """
        Prevalence report for disease categories.

        Args:
            categories: Category ids (default: all)
            start_date: Window start
            end_date: Window end
            failure_policy: Override the default failure policy
            registry: Registry to report on (default: disease chapters)
            open_ended: Count everything from start_date on, with no end bound

        Returns:
            Report of RateRecords sorted by prevalence descending
        """
        return self.orchestrator.run(
            registry or disease_registry(),
            category_ids=categories,
            window=self._window(start_date, end_date, open_ended),
            failure_policy=failure_policy,
        )

    # =========================================================================
    # DRUG CLASS STATISTICS
    # =========================================================================

    def get_atc_stats(
        self,
        atc_code: str,
        start_date: DateLike = None,
        end_date: DateLike = None,
        open_ended: bool = False,
    ) -> PrescriptionRateRecord:
        """
        Prescription statistics for one ATC class.

        Raises:
            UnknownCategory: If the code is not an ATC main group
            CategoryQueryError: If the class's queries fail
        """
        report = self.orchestrator.run(
            atc_registry(),
            category_ids=[atc_code],
            window=self._window(start_date, end_date, open_ended),
            failure_policy=FailurePolicy.ABORT,
            count_unit=CountUnit.EVENT_RECORDS,
        )
        return report.records[0]

    def get_all_atc_stats(
        self,
        start_date: DateLike = None,
        end_date: DateLike = None,
        failure_policy: Union[FailurePolicy, str, None] = None,
        categories: Optional[Iterable[str]] = None,
        open_ended: bool = False,
    ) -> Report:
        """
        Prescription statistics for all (or selected) ATC classes.

        Pass ``open_ended=True`` (without end_date) for a window with no
        end bound.

        Returns:
            Report of PrescriptionRateRecords sorted by share of prescriptions
        """
        return self.orchestrator.run(
            atc_registry(),
            category_ids=categories,
            window=self._window(start_date, end_date, open_ended),
            failure_policy=failure_policy,
            count_unit=CountUnit.EVENT_RECORDS,
        )

    def get_atc_prevalence_rates(
        self,
        categories: Optional[Iterable[str]] = None,
        start_date: DateLike = None,
        end_date: DateLike = None,
        failure_policy: Union[FailurePolicy, str, None] = None,
        open_ended: bool = False,
    ) -> Report:
        """Distinct persons exposed to each ATC class, as prevalence records."""
        return self.orchestrator.run(
            atc_registry(),
            category_ids=categories,
            window=self._window(start_date, end_date, open_ended),
            failure_policy=failure_policy,
            count_unit=CountUnit.DISTINCT_PERSONS,
        )

    def _window(self, start_date: DateLike, end_date: DateLike, open_ended: bool = False) -> TimeWindow:
        """
        Window for a call, filling unset dates from the configured default.

        Raises:
            ValueError: If end_date is combined with open_ended
        """
        start = start_date if start_date is not None else self.default_window.start
        if open_ended:
            if end_date is not None:
                raise ValueError("end_date cannot be combined with open_ended=True")
            return build_window(start, open_ended=True)
        if start_date is None and end_date is None:
            return self.default_window
        return build_window(start, end_date if end_date is not None else self.default_window.end)
