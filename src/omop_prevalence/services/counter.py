"""
Occurrence Counter

Counts persons or event records tagged with a concept set in a window.
"""

import logging

from omop_prevalence.models import (
    ConceptSet,
    CountResult,
    CountUnit,
    EventDomain,
    TimeWindow,
)
from omop_prevalence.protocols import EventStore

logger = logging.getLogger(__name__)


class OccurrenceCounter:
    """Counting front-end over an event store."""

    def __init__(self, store: EventStore):
        self.store = store

    def count(
        self,
        category_id: str,
        concept_set: ConceptSet,
        window: TimeWindow,
        event_domain: EventDomain,
        unit: CountUnit = CountUnit.DISTINCT_PERSONS,
    ) -> CountResult:
        """
        Count matching entities for one category.

        An empty concept set counts zero without touching the store.

        Args:
            category_id: Category the count belongs to
            concept_set: Standard concepts to match
            window: Analysis window
            event_domain: Event table to count in
            unit: Distinct persons or event records

        Returns:
            CountResult with a non-negative count
        """
        if not concept_set:
            return CountResult(category_id=category_id, count=0)

        if unit is CountUnit.DISTINCT_PERSONS:
            count = self.store.count_distinct_persons(concept_set, window, event_domain)
        else:
            count = self.store.count_events(concept_set, window, event_domain)

        return CountResult(category_id=category_id, count=self._non_negative(count, category_id))

    def total_population(self) -> int:
        """Distinct persons in the whole population."""
        return self._non_negative(self.store.count_total_population(), "population")

    def total_events(self, window: TimeWindow, event_domain: EventDomain) -> int:
        """All in-window events of a domain."""
        return self._non_negative(self.store.count_total_events(window, event_domain), "total events")

    @staticmethod
    def _non_negative(value, label: str) -> int:
        count = int(value or 0)
        if count < 0:
            logger.warning(f"Store returned negative count {count} for {label}; using 0")
            return 0
        return count
