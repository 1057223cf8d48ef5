"""
Vocabulary Resolver

Turns a category's code predicate into the set of standard concepts
that clinical events are tagged with.
"""

import logging
from typing import Optional, Sequence

from omop_prevalence.models import (
    Category,
    ConceptSet,
    ExactSet,
    Prefix,
    Range,
    ResolutionStrategy,
)
from omop_prevalence.protocols import VocabularyStore
from omop_prevalence.registry import CategoryRegistry

logger = logging.getLogger(__name__)


class VocabularyResolver:
    """
    Resolves categories against a vocabulary store.

    DIRECT follows "Maps to" edges only. MAPPED_EXPANDED additionally
    adds every descendant of the mapped concepts, because drug events
    are recorded at a finer grain (clinical drugs) than the classes map
    to (ingredients).
    """

    def __init__(self, store: VocabularyStore):
        self.store = store

    def resolve(
        self,
        category: Category,
        source_vocabulary: str,
        strategy: ResolutionStrategy = ResolutionStrategy.DIRECT,
        target_vocabularies: Optional[Sequence[str]] = None,
    ) -> ConceptSet:
        """
        Resolve one category to a concept set.

        Args:
            category: Category to resolve
            source_vocabulary: Vocabulary the predicate codes belong to
            strategy: DIRECT or MAPPED_EXPANDED
            target_vocabularies: Restrict mapped targets to these vocabularies

        Returns:
            Concept set (empty when no source code matches)
        """
        mapped = self._map(category, source_vocabulary, target_vocabularies)

        if strategy is ResolutionStrategy.MAPPED_EXPANDED and mapped:
            descendants = self.store.expand_descendants(mapped)
            concepts = frozenset(mapped) | frozenset(descendants)
            logger.debug(f"{category.id}: {len(mapped)} mapped -> {len(concepts)} with descendants")
        else:
            concepts = frozenset(mapped)

        if not concepts:
            logger.info(f"{category.id}: no standard concepts found")
        return concepts

    def resolve_in(self, registry: CategoryRegistry, category: Category) -> ConceptSet:
        """Resolve a category with its registry's settings."""
        return self.resolve(
            category,
            source_vocabulary=registry.source_vocabulary,
            strategy=registry.strategy,
            target_vocabularies=registry.target_vocabularies or None,
        )

    def _map(self, category: Category, vocabulary: str, targets: Optional[Sequence[str]]):
        predicate = category.code_predicate
        if isinstance(predicate, Range):
            return self.store.resolve_direct(vocabulary, predicate.low, predicate.high, targets)
        if isinstance(predicate, Prefix):
            return self.store.resolve_prefix_mapped(vocabulary, predicate.prefix, targets)
        if isinstance(predicate, ExactSet):
            if not predicate.codes:
                return set()
            return self.store.resolve_exact(vocabulary, sorted(predicate.codes), targets)
        raise TypeError(f"Unsupported predicate type: {type(predicate).__name__}")
