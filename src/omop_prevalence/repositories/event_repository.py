"""
Event Repository

Counts persons and event records in the OMOP clinical tables.
"""

import logging
from typing import Iterable

from omop_prevalence.models import EventDomain, TimeWindow
from omop_prevalence.queries import EventQueries, window_params
from omop_prevalence.repositories.base import BaseRepository, require_connection

logger = logging.getLogger(__name__)


class EventRepository(BaseRepository):
    """
    Event store backed by the person, condition_occurrence and
    drug_exposure tables.

    An empty concept list always counts zero without querying, so a
    filter can never degrade into a scan of every event.
    """

    @require_connection
    def count_total_population(self) -> int:
        """Count distinct persons in the person table."""
        return self._fetch_count(EventQueries.total_population(self.schema))

    @require_connection
    def count_distinct_persons(
        self,
        concept_ids: Iterable[int],
        window: TimeWindow,
        event_domain: EventDomain,
    ) -> int:
        """
        Count distinct persons with an in-window event tagged with any concept.

        Args:
            concept_ids: Standard concept ids
            window: Analysis window
            event_domain: Event table to count in

        Returns:
            Number of distinct persons
        """
        ids = sorted(set(concept_ids))
        if not ids:
            return 0
        params = {"concept_ids": ids, **window_params(window)}
        return self._fetch_count(EventQueries.distinct_persons(self.schema, event_domain, window), params)

    @require_connection
    def count_events(
        self,
        concept_ids: Iterable[int],
        window: TimeWindow,
        event_domain: EventDomain,
    ) -> int:
        """Count in-window event records tagged with any concept."""
        ids = sorted(set(concept_ids))
        if not ids:
            return 0
        params = {"concept_ids": ids, **window_params(window)}
        return self._fetch_count(EventQueries.events(self.schema, event_domain, window), params)

    @require_connection
    def count_total_events(self, window: TimeWindow, event_domain: EventDomain) -> int:
        """Count every in-window event record that carries a concept."""
        return self._fetch_count(
            EventQueries.total_events(self.schema, event_domain, window),
            window_params(window),
        )
