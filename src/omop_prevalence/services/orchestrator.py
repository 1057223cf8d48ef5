"""
Batch Orchestrator

Runs resolve -> count -> aggregate for every requested category and
assembles the ranked report.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from functools import partial
from typing import Dict, Iterable, List, Optional, Union
from uuid import uuid4

from omop_prevalence.exceptions import (
    AllCategoriesFailed,
    CategoryQueryError,
    StoreError,
)
from omop_prevalence.models import (
    AnyRateRecord,
    Category,
    CategoryFailure,
    CountUnit,
    FailurePolicy,
    Report,
    TimeWindow,
)
from omop_prevalence.registry import CategoryRegistry
from omop_prevalence.services.aggregator import RateAggregator
from omop_prevalence.services.counter import OccurrenceCounter
from omop_prevalence.services.resolver import VocabularyResolver
from omop_prevalence.utils.logger import log_report_start, log_report_end, log_category_result
from omop_prevalence.validation import validate_window

logger = logging.getLogger(__name__)


class BatchOrchestrator:
    """
    Drives the per-category pipeline across a registry.

    Features:
    - Input validated before any query is issued
    - Baseline population computed once per run and shared
    - Optional parallel execution with ThreadPoolExecutor
    - Explicit failure policy: ABORT raises on the first failed category,
      SKIP records the failure and keeps going
    """

    def __init__(
        self,
        resolver: VocabularyResolver,
        counter: OccurrenceCounter,
        aggregator: Optional[RateAggregator] = None,
        failure_policy: Union[FailurePolicy, str] = FailurePolicy.ABORT,
        max_workers: int = 1,
    ):
        """
        Initialize orchestrator.

        Args:
            resolver: Vocabulary resolver
            counter: Occurrence counter
            aggregator: Rate aggregator (default instance if omitted)
            failure_policy: Default policy for runs that don't pass one
            max_workers: Parallel category pipelines (1 = sequential)
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got: {max_workers}")
        self.resolver = resolver
        self.counter = counter
        self.aggregator = aggregator or RateAggregator()
        self.failure_policy = FailurePolicy.from_value(failure_policy)
        self.max_workers = max_workers

    def run(
        self,
        registry: CategoryRegistry,
        category_ids: Optional[Iterable[str]] = None,
        window: Optional[TimeWindow] = None,
        failure_policy: Union[FailurePolicy, str, None] = None,
        count_unit: CountUnit = CountUnit.DISTINCT_PERSONS,
    ) -> Report:
        """
        Build a rate report.

        Args:
            registry: Categories and their resolution settings
            category_ids: Subset of category ids (default: all, in registry order)
            window: Analysis window (default: 2016-01-01 to 2024-12-31)
            failure_policy: Override the orchestrator's default policy
            count_unit: DISTINCT_PERSONS for prevalence records,
                        EVENT_RECORDS for prescription records

        Returns:
            Report sorted by rate descending, ties by category id

        Raises:
            UnknownCategory: If a requested id is not registered (no queries issued)
            StartAfterEnd: If the window is inverted
            ZeroPopulation: If the baseline population is empty
            CategoryQueryError: On a category failure under ABORT
            AllCategoriesFailed: If every category failed under SKIP
        """
        policy = self.failure_policy if failure_policy is None else FailurePolicy.from_value(failure_policy)
        window = validate_window(window)
        categories = self._select(registry, category_ids)
        requested = [c.id for c in categories]

        run_id = uuid4().hex[:8]
        log_report_start(run_id, registry.name, len(categories), window.label, logger=logger)

        # Baseline totals, once per run
        total_patients = self.aggregator.check_population(self.counter.total_population())
        total_events = None
        if count_unit is CountUnit.EVENT_RECORDS:
            total_events = self.counter.total_events(window, registry.event_domain)

        pipeline = partial(
            self._run_category, registry, window, count_unit, total_patients, total_events
        )
        if self.max_workers > 1 and len(categories) > 1:
            records, failures = self._run_parallel(categories, pipeline, policy)
        else:
            records, failures = self._run_sequential(categories, pipeline, policy)

        order = {cid: i for i, cid in enumerate(requested)}
        failures.sort(key=lambda f: order[f.category_id])

        log_report_end(run_id, {
            "requested": len(requested),
            "reported": len(records),
            "failed": len(failures),
            "total_patients": total_patients,
        }, logger=logger)

        if failures and not records:
            raise AllCategoriesFailed(failures)

        return Report(
            records=sort_records(records),
            requested=requested,
            failures=failures,
            total_patients=total_patients,
            window=window,
            count_unit=count_unit,
        )

    def _select(self, registry: CategoryRegistry, category_ids: Optional[Iterable[str]]) -> List[Category]:
        if category_ids is None:
            return registry.list_categories()
        if isinstance(category_ids, str):
            category_ids = [category_ids]
        # Deduplicate, keeping request order
        return registry.validate(dict.fromkeys(category_ids))

    def _run_category(
        self,
        registry: CategoryRegistry,
        window: TimeWindow,
        count_unit: CountUnit,
        total_patients: int,
        total_events: Optional[int],
        category: Category,
    ) -> AnyRateRecord:
        concepts = self.resolver.resolve_in(registry, category)
        count = self.counter.count(category.id, concepts, window, registry.event_domain, count_unit)

        if count_unit is CountUnit.EVENT_RECORDS:
            record = self.aggregator.aggregate_prescriptions(
                category, count, total_events or 0, total_patients, window
            )
        else:
            record = self.aggregator.aggregate(category, count, total_patients, window)

        log_category_result(
            category.id, "success" if concepts else "empty",
            count.count, record.ranking_value, logger=logger
        )
        return record

    def _run_sequential(self, categories, pipeline, policy):
        records: List[AnyRateRecord] = []
        failures: List[CategoryFailure] = []
        for category in categories:
            try:
                records.append(pipeline(category))
            except StoreError as e:
                self._handle_failure(category, e, policy, failures)
        return records, failures

    def _run_parallel(self, categories, pipeline, policy):
        records: List[AnyRateRecord] = []
        failures: List[CategoryFailure] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(pipeline, category): category for category in categories}
            try:
                for future in as_completed(futures):
                    category = futures[future]
                    try:
                        records.append(future.result())
                    except StoreError as e:
                        self._handle_failure(category, e, policy, failures)
            except CategoryQueryError:
                for future in futures:
                    future.cancel()
                raise
        return records, failures

    @staticmethod
    def _handle_failure(
        category: Category,
        error: StoreError,
        policy: FailurePolicy,
        failures: List[CategoryFailure],
    ) -> None:
        log_category_result(category.id, "failed", error=str(error), logger=logger)
        if policy is FailurePolicy.ABORT:
            raise CategoryQueryError(category.id, error) from error
        logger.warning(f"Skipping category '{category.id}': {error}")
        failures.append(CategoryFailure(
            category_id=category.id,
            error_type=type(error).__name__,
            message=str(error),
        ))


def sort_records(records: Iterable[AnyRateRecord]) -> List[AnyRateRecord]:
    """Rate descending, then category id ascending."""
    return sorted(records, key=lambda r: (-r.ranking_value, r.category_id))
