"""
Tests for BatchOrchestrator: report assembly, validation ordering,
failure policies and parallel execution.
"""

from datetime import date

import pytest

from omop_prevalence.exceptions import (
    AllCategoriesFailed,
    CategoryQueryError,
    QueryTimeout,
    StartAfterEnd,
    StoreError,
    UnknownCategory,
    ZeroPopulation,
)
from omop_prevalence.models import (
    CountUnit,
    FailurePolicy,
    PrescriptionRateRecord,
    RateRecord,
    TimeWindow,
)

from conftest import FakeVocabularyStore, StubEventStore, make_orchestrator


@pytest.fixture
def disease_events():
    return StubEventStore(
        counts={
            frozenset({111, 222}): 480,   # respiratory
            frozenset({333}): 1200,       # circulatory
            frozenset({444, 555}): 480,   # injury, ties with respiratory
        },
        population=12000,
    )


class TestReport:
    """Report contents and ordering."""

    def test_respiratory_scenario(self, disease_vocabulary, disease_events, small_disease_registry):
        report = make_orchestrator(disease_vocabulary, disease_events).run(
            small_disease_registry, category_ids=["respiratory"]
        )
        record = report.get("respiratory")
        assert isinstance(record, RateRecord)
        assert record.patient_count == 480
        assert record.total_patients == 12000
        assert record.prevalence_pct == 4.00
        assert record.prevalence_per_100k == 4000.00

    def test_sorted_by_rate_then_id(self, disease_vocabulary, disease_events, small_disease_registry):
        report = make_orchestrator(disease_vocabulary, disease_events).run(small_disease_registry)
        assert report.category_ids == ["circulatory", "injury", "respiratory", "special"]
        for current, following in zip(report.records, report.records[1:]):
            assert current.prevalence_pct >= following.prevalence_pct

    def test_empty_concept_set_reported_as_zero(self, disease_vocabulary, disease_events, small_disease_registry):
        report = make_orchestrator(disease_vocabulary, disease_events).run(small_disease_registry)
        special = report.get("special")
        assert special is not None
        assert special.patient_count == 0
        assert special.prevalence_pct == 0.00
        assert "special" not in report.missing_categories()

    def test_empty_concept_set_issues_no_count_query(self, disease_vocabulary, disease_events, small_disease_registry):
        make_orchestrator(disease_vocabulary, disease_events).run(small_disease_registry, category_ids=["special"])
        assert [c for c in disease_events.calls if c[0] == "count_distinct_persons"] == []

    def test_total_patients_shared(self, disease_vocabulary, disease_events, small_disease_registry):
        report = make_orchestrator(disease_vocabulary, disease_events).run(small_disease_registry)
        assert {r.total_patients for r in report} == {12000}
        assert report.total_patients == 12000
        assert disease_events.calls.count(("count_total_population",)) == 1

    def test_deterministic(self, disease_vocabulary, disease_events, small_disease_registry):
        orchestrator = make_orchestrator(disease_vocabulary, disease_events)
        first = orchestrator.run(small_disease_registry)
        second = orchestrator.run(small_disease_registry)
        assert first.records == second.records
        assert first.requested == second.requested

    def test_subset_deduplicated_in_request_order(self, disease_vocabulary, disease_events, small_disease_registry):
        report = make_orchestrator(disease_vocabulary, disease_events).run(
            small_disease_registry, category_ids=["special", "respiratory", "special"]
        )
        assert report.requested == ["special", "respiratory"]
        assert len(report) == 2

    def test_single_string_id(self, disease_vocabulary, disease_events, small_disease_registry):
        report = make_orchestrator(disease_vocabulary, disease_events).run(
            small_disease_registry, category_ids="respiratory"
        )
        assert report.category_ids == ["respiratory"]

    def test_custom_window_label(self, disease_vocabulary, disease_events, small_disease_registry):
        window = TimeWindow(date(2020, 1, 1), date(2020, 12, 31))
        report = make_orchestrator(disease_vocabulary, disease_events).run(
            small_disease_registry, category_ids=["respiratory"], window=window
        )
        assert report[0].date_range == "2020-01-01 to 2020-12-31"
        assert report.window == window


class TestPrescriptionReport:
    """Event-record counting for drug classes."""

    @pytest.fixture
    def atc_vocabulary(self):
        roots = set(range(1, 11))
        return FakeVocabularyStore(
            mappings={("ATC", "C01AA05"): {1, 2, 3, 4, 5}, ("ATC", "C10AA01"): {6, 7, 8, 9, 10}},
            descendants={root: {root * 100 + i for i in range(4)} for root in roots},
        )

    def test_atc_scenario(self, atc_vocabulary, small_drug_registry):
        concept_set = frozenset(range(1, 11)) | frozenset(r * 100 + i for r in range(1, 11) for i in range(4))
        assert len(concept_set) == 50
        events = StubEventStore(counts={concept_set: 900}, population=5000, total_events=10000)

        report = make_orchestrator(atc_vocabulary, events).run(
            small_drug_registry, category_ids=["C"], count_unit=CountUnit.EVENT_RECORDS
        )
        record = report.get("C")
        assert isinstance(record, PrescriptionRateRecord)
        assert record.category_prescriptions == 900
        assert record.total_prescriptions == 10000
        assert record.total_patients == 5000
        assert record.percentage_of_total == 9.00
        assert record.rate_per_100k == 18000.00

    def test_total_events_computed_once(self, atc_vocabulary, small_drug_registry):
        events = StubEventStore(counts={}, population=5000, total_events=10000)
        make_orchestrator(atc_vocabulary, events).run(small_drug_registry, count_unit=CountUnit.EVENT_RECORDS)
        assert events.calls.count(("count_total_events",)) == 1


class TestValidationBeforeQueries:
    """Invalid input fails fast with zero store queries."""

    def test_unknown_category(self, disease_vocabulary, disease_events, small_disease_registry):
        orchestrator = make_orchestrator(disease_vocabulary, disease_events)
        with pytest.raises(UnknownCategory):
            orchestrator.run(small_disease_registry, category_ids=["respiratory", "cardio"])
        assert disease_vocabulary.calls == []
        assert disease_events.calls == []

    def test_inverted_window(self, disease_vocabulary, disease_events, small_disease_registry):
        orchestrator = make_orchestrator(disease_vocabulary, disease_events)
        with pytest.raises(StartAfterEnd):
            orchestrator.run(small_disease_registry, window=TimeWindow(date(2024, 1, 1), date(2020, 1, 1)))
        assert disease_vocabulary.calls == []
        assert disease_events.calls == []

    def test_zero_population(self, disease_vocabulary, small_disease_registry):
        events = StubEventStore(counts={frozenset({111, 222}): 5}, population=0)
        with pytest.raises(ZeroPopulation):
            make_orchestrator(disease_vocabulary, events).run(small_disease_registry)
        assert disease_vocabulary.calls == []
        assert events.calls == [("count_total_population",)]


class TestFailurePolicies:
    """ABORT versus SKIP on per-category store errors."""

    @pytest.fixture
    def flaky_vocabulary(self):
        return FakeVocabularyStore(
            mappings={("ICD10CM", "J45"): {111, 222}, ("ICD10CM", "S72.0"): {444, 555}},
            failing_codes={"I00"},
        )

    def test_abort_raises_category_error(self, flaky_vocabulary, disease_events, small_disease_registry):
        orchestrator = make_orchestrator(flaky_vocabulary, disease_events, failure_policy=FailurePolicy.ABORT)
        with pytest.raises(CategoryQueryError) as exc_info:
            orchestrator.run(small_disease_registry)
        assert exc_info.value.category_id == "circulatory"
        assert isinstance(exc_info.value.__cause__, StoreError)

    def test_abort_stops_remaining_categories(self, flaky_vocabulary, disease_events, small_disease_registry):
        orchestrator = make_orchestrator(flaky_vocabulary, disease_events, failure_policy="abort")
        with pytest.raises(CategoryQueryError):
            orchestrator.run(small_disease_registry)
        resolved = [c[2] for c in flaky_vocabulary.calls]
        assert "S00" not in resolved

    def test_skip_records_failure(self, flaky_vocabulary, disease_events, small_disease_registry):
        orchestrator = make_orchestrator(flaky_vocabulary, disease_events, failure_policy=FailurePolicy.SKIP)
        report = orchestrator.run(small_disease_registry)
        assert report.get("circulatory") is None
        assert report.missing_categories() == ["circulatory"]
        assert [f.category_id for f in report.failures] == ["circulatory"]
        assert report.failures[0].error_type == "StoreError"
        # Zero-count category is present, failed category is missing
        assert report.get("special").patient_count == 0
        assert len(report) == 3

    def test_run_policy_overrides_default(self, flaky_vocabulary, disease_events, small_disease_registry):
        orchestrator = make_orchestrator(flaky_vocabulary, disease_events, failure_policy=FailurePolicy.ABORT)
        report = orchestrator.run(small_disease_registry, failure_policy="skip")
        assert report.missing_categories() == ["circulatory"]

    def test_skip_all_failed(self, disease_events, small_disease_registry):
        vocabulary = FakeVocabularyStore(failing_codes={"J00", "I00"})
        orchestrator = make_orchestrator(vocabulary, disease_events, failure_policy=FailurePolicy.SKIP)
        with pytest.raises(AllCategoriesFailed) as exc_info:
            orchestrator.run(small_disease_registry, category_ids=["respiratory", "circulatory"])
        assert [f.category_id for f in exc_info.value.failures] == ["respiratory", "circulatory"]

    def test_timeout_is_category_failure(self, disease_vocabulary, small_disease_registry):
        class TimingOutStore(StubEventStore):
            def count_distinct_persons(self, concept_ids, window, event_domain):
                if 333 in concept_ids:
                    raise QueryTimeout("statement timeout")
                return super().count_distinct_persons(concept_ids, window, event_domain)

        events = TimingOutStore(counts={frozenset({111, 222}): 480}, population=12000)
        report = make_orchestrator(disease_vocabulary, events, failure_policy="skip").run(small_disease_registry)
        assert report.missing_categories() == ["circulatory"]
        assert report.failures[0].error_type == "QueryTimeout"

    def test_non_store_errors_propagate(self, disease_events, small_disease_registry):
        class BrokenStore(FakeVocabularyStore):
            def resolve_direct(self, *args, **kwargs):
                raise RuntimeError("bug")

        orchestrator = make_orchestrator(BrokenStore(), disease_events, failure_policy="skip")
        with pytest.raises(RuntimeError):
            orchestrator.run(small_disease_registry)

    def test_invalid_policy(self, disease_vocabulary, disease_events):
        with pytest.raises(ValueError):
            make_orchestrator(disease_vocabulary, disease_events, failure_policy="retry")


class TestParallel:
    """Thread pool execution matches sequential execution."""

    def test_same_report(self, disease_vocabulary, disease_events, small_disease_registry):
        sequential = make_orchestrator(disease_vocabulary, disease_events).run(small_disease_registry)
        parallel = make_orchestrator(disease_vocabulary, disease_events, max_workers=4).run(small_disease_registry)
        assert parallel.records == sequential.records

    def test_baseline_once(self, disease_vocabulary, disease_events, small_disease_registry):
        make_orchestrator(disease_vocabulary, disease_events, max_workers=4).run(small_disease_registry)
        assert disease_events.calls.count(("count_total_population",)) == 1

    def test_skip_failures_in_request_order(self, disease_events, small_disease_registry):
        vocabulary = FakeVocabularyStore(
            mappings={("ICD10CM", "J45"): {111, 222}},
            failing_codes={"S00", "I00"},
        )
        report = make_orchestrator(vocabulary, disease_events, failure_policy="skip", max_workers=3).run(
            small_disease_registry
        )
        assert [f.category_id for f in report.failures] == ["circulatory", "injury"]

    def test_abort_in_parallel(self, disease_events, small_disease_registry):
        vocabulary = FakeVocabularyStore(failing_codes={"I00"})
        orchestrator = make_orchestrator(vocabulary, disease_events, max_workers=4)
        with pytest.raises(CategoryQueryError):
            orchestrator.run(small_disease_registry)

    def test_invalid_worker_count(self, disease_vocabulary, disease_events):
        with pytest.raises(ValueError):
            make_orchestrator(disease_vocabulary, disease_events, max_workers=0)
