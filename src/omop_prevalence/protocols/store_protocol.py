"""
Store Protocols

Defines the vocabulary and event store interfaces the resolver and
counter depend on.
"""

from typing import Protocol, Iterable, Optional, Sequence, Set

from omop_prevalence.models import EventDomain, TimeWindow


class VocabularyStore(Protocol):
    """Protocol for resolving source codes to standardized concepts."""

    def resolve_direct(
        self,
        source_vocabulary: str,
        code_low: str,
        code_high: str,
        target_vocabularies: Optional[Sequence[str]] = None,
    ) -> Set[int]:
        """
        Map every valid source code in [code_low, code_high] to its standard concepts.

        Args:
            source_vocabulary: Vocabulary of the source codes (e.g. "ICD10CM")
            code_low: First code (lexicographic, inclusive)
            code_high: Last code (lexicographic, inclusive)
            target_vocabularies: Restrict targets to these vocabularies

        Returns:
            Set of standard concept ids
        """
        ...

    def resolve_prefix_mapped(
        self,
        source_vocabulary: str,
        prefix: str,
        target_vocabularies: Optional[Sequence[str]] = None,
    ) -> Set[int]:
        """Map every valid source code starting with prefix to its standard concepts."""
        ...

    def resolve_exact(
        self,
        source_vocabulary: str,
        codes: Iterable[str],
        target_vocabularies: Optional[Sequence[str]] = None,
    ) -> Set[int]:
        """Map an explicit set of source codes to their standard concepts."""
        ...

    def expand_descendants(self, concept_ids: Iterable[int]) -> Set[int]:
        """
        All descendants of the given concepts in the ancestor closure.

        Returns:
            Set of descendant concept ids
        """
        ...


class EventStore(Protocol):
    """Protocol for counting persons and events in the clinical tables."""

    def count_distinct_persons(
        self,
        concept_ids: Iterable[int],
        window: TimeWindow,
        event_domain: EventDomain,
    ) -> int:
        """
        Count distinct persons with an in-window event tagged with any concept.

        Returns:
            Number of distinct persons
        """
        ...

    def count_events(
        self,
        concept_ids: Iterable[int],
        window: TimeWindow,
        event_domain: EventDomain,
    ) -> int:
        """Count in-window event records tagged with any concept."""
        ...

    def count_total_events(self, window: TimeWindow, event_domain: EventDomain) -> int:
        """Count all in-window event records with a concept."""
        ...

    def count_total_population(self) -> int:
        """Count distinct persons in the person table."""
        ...
