"""
Shared fixtures: in-memory vocabulary and event stores.
"""

from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import pytest

from omop_prevalence.exceptions import StoreError
from omop_prevalence.models import (
    Category,
    EventDomain,
    ExactSet,
    Prefix,
    Range,
    ResolutionStrategy,
    TimeWindow,
)
from omop_prevalence.registry import CategoryRegistry
from omop_prevalence.services import (
    BatchOrchestrator,
    OccurrenceCounter,
    RateAggregator,
    VocabularyResolver,
)


class FakeVocabularyStore:
    """
    Vocabulary store over plain dicts.

    ``mappings`` maps (vocabulary, source code) to target concept ids;
    ``descendants`` maps a concept id to its descendants.
    """

    def __init__(
        self,
        mappings: Optional[Dict[Tuple[str, str], Set[int]]] = None,
        descendants: Optional[Dict[int, Set[int]]] = None,
        failing_codes: Iterable[str] = (),
    ):
        self.mappings = mappings or {}
        self.descendants = descendants or {}
        self.failing_codes = set(failing_codes)
        self.calls: List[tuple] = []

    def _collect(self, vocabulary, match, label):
        if label in self.failing_codes:
            raise StoreError(f"connection lost while resolving {label}")
        result: Set[int] = set()
        for (vocab, code), targets in self.mappings.items():
            if vocab == vocabulary and match(code):
                result |= set(targets)
        return result

    def resolve_direct(self, source_vocabulary, code_low, code_high, target_vocabularies=None):
        self.calls.append(("resolve_direct", source_vocabulary, code_low, code_high))
        return self._collect(source_vocabulary, lambda c: code_low <= c <= code_high, code_low)

    def resolve_prefix_mapped(self, source_vocabulary, prefix, target_vocabularies=None):
        self.calls.append(("resolve_prefix_mapped", source_vocabulary, prefix))
        return self._collect(source_vocabulary, lambda c: c.startswith(prefix), prefix)

    def resolve_exact(self, source_vocabulary, codes, target_vocabularies=None):
        codes = set(codes)
        self.calls.append(("resolve_exact", source_vocabulary, tuple(sorted(codes))))
        return self._collect(source_vocabulary, lambda c: c in codes, ",".join(sorted(codes)))

    def expand_descendants(self, concept_ids):
        ids = set(concept_ids)
        self.calls.append(("expand_descendants", tuple(sorted(ids))))
        result: Set[int] = set()
        for concept_id in ids:
            result |= self.descendants.get(concept_id, set())
        return result


class FakeEventStore:
    """
    Event store over a list of (person_id, concept_id, start, end, domain) rows.
    """

    def __init__(self, events: Sequence[tuple] = (), population: int = 0):
        self.events = list(events)
        self.population = population
        self.calls: List[tuple] = []

    def _in_window(self, start: date, end: Optional[date], window: TimeWindow) -> bool:
        if start < window.start:
            return False
        if window.end is None:
            return True
        return start <= window.end and (end is None or end <= window.end)

    def _matching(self, concept_ids, window, domain):
        ids = set(concept_ids)
        return [
            e for e in self.events
            if e[4] == domain and e[1] in ids and self._in_window(e[2], e[3], window)
        ]

    def count_distinct_persons(self, concept_ids, window, event_domain):
        self.calls.append(("count_distinct_persons", event_domain))
        return len({e[0] for e in self._matching(concept_ids, window, event_domain)})

    def count_events(self, concept_ids, window, event_domain):
        self.calls.append(("count_events", event_domain))
        return len(self._matching(concept_ids, window, event_domain))

    def count_total_events(self, window, event_domain):
        self.calls.append(("count_total_events", event_domain))
        return len([
            e for e in self.events
            if e[4] == event_domain and e[1] is not None and self._in_window(e[2], e[3], window)
        ])

    def count_total_population(self):
        self.calls.append(("count_total_population",))
        return self.population


class StubEventStore:
    """Event store returning fixed counts per concept set."""

    def __init__(self, counts: Dict[frozenset, int], population: int, total_events: int = 0):
        self.counts = counts
        self.population = population
        self.total_events = total_events
        self.calls: List[tuple] = []

    def count_distinct_persons(self, concept_ids, window, event_domain):
        self.calls.append(("count_distinct_persons", frozenset(concept_ids)))
        return self.counts.get(frozenset(concept_ids), 0)

    def count_events(self, concept_ids, window, event_domain):
        self.calls.append(("count_events", frozenset(concept_ids)))
        return self.counts.get(frozenset(concept_ids), 0)

    def count_total_events(self, window, event_domain):
        self.calls.append(("count_total_events",))
        return self.total_events

    def count_total_population(self):
        self.calls.append(("count_total_population",))
        return self.population


@pytest.fixture
def window() -> TimeWindow:
    return TimeWindow(start=date(2016, 1, 1), end=date(2024, 12, 31))


@pytest.fixture
def small_disease_registry() -> CategoryRegistry:
    return CategoryRegistry(
        name="test-disease",
        categories=[
            Category("respiratory", "Diseases of the respiratory system", Range("J00", "J99")),
            Category("circulatory", "Diseases of the circulatory system", Range("I00", "I99")),
            Category("injury", "Injury and poisoning", Range("S00", "T88")),
            Category("special", "Codes for special purposes", Range("U00", "U85")),
        ],
        source_vocabulary="ICD10CM",
        strategy=ResolutionStrategy.DIRECT,
        event_domain=EventDomain.CONDITION_OCCURRENCE,
    )


@pytest.fixture
def small_drug_registry() -> CategoryRegistry:
    return CategoryRegistry(
        name="test-atc",
        categories=[
            Category("C", "Cardiovascular system", Prefix("C")),
            Category("N", "Nervous system", Prefix("N")),
            Category("statins", "Selected statins", ExactSet({"C10AA01", "C10AA05"})),
        ],
        source_vocabulary="ATC",
        strategy=ResolutionStrategy.MAPPED_EXPANDED,
        event_domain=EventDomain.DRUG_EXPOSURE,
        target_vocabularies=("RxNorm", "RxNorm Extension"),
    )


@pytest.fixture
def disease_vocabulary() -> FakeVocabularyStore:
    return FakeVocabularyStore(mappings={
        ("ICD10CM", "J45"): {111},
        ("ICD10CM", "J18.9"): {222},
        ("ICD10CM", "J99"): {111},
        ("ICD10CM", "I10"): {333},
        ("ICD10CM", "S72.0"): {444},
        ("ICD10CM", "T40.1"): {555},
        # Outside every range
        ("ICD10CM", "Z00.0"): {999},
    })


def make_orchestrator(vocabulary, events, **kwargs) -> BatchOrchestrator:
    return BatchOrchestrator(
        VocabularyResolver(vocabulary),
        OccurrenceCounter(events),
        RateAggregator(),
        **kwargs,
    )
