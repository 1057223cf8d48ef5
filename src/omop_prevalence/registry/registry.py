"""
Category Registry

Read-only catalog of classification categories and the settings used
to resolve them.
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from omop_prevalence.exceptions import UnknownCategory
from omop_prevalence.models import Category, EventDomain, ResolutionStrategy

logger = logging.getLogger(__name__)


class CategoryRegistry:
    """
    Ordered, immutable set of categories sharing one source vocabulary.

    Diagnosis chapters and drug classes live in separate registries; they
    differ only in their resolution settings.

    Usage:
        registry = disease_registry()
        registry.get("respiratory").code_predicate   # Range('J00', 'J99')
    """

    def __init__(
        self,
        name: str,
        categories: Iterable[Category],
        source_vocabulary: str,
        strategy: ResolutionStrategy = ResolutionStrategy.DIRECT,
        event_domain: EventDomain = EventDomain.CONDITION_OCCURRENCE,
        target_vocabularies: Optional[Sequence[str]] = None,
    ):
        """
        Initialize registry.

        Args:
            name: Registry name for logging
            categories: Categories in display order
            source_vocabulary: Vocabulary of the category codes (e.g. "ICD10CM")
            strategy: How predicates are resolved to concept sets
            event_domain: Event table the categories are counted in
            target_vocabularies: Restrict mapped targets to these vocabularies

        Raises:
            ValueError: On duplicate category ids
        """
        self.name = name
        self.source_vocabulary = source_vocabulary
        self.strategy = strategy
        self.event_domain = event_domain
        self.target_vocabularies: Tuple[str, ...] = tuple(target_vocabularies or ())

        by_id: Dict[str, Category] = {}
        for category in categories:
            if category.id in by_id:
                raise ValueError(f"Duplicate category id '{category.id}' in registry '{name}'")
            by_id[category.id] = category
        self._categories = by_id

        logger.debug(f"Registry '{name}' loaded with {len(by_id)} categories")

    def list_categories(self) -> List[Category]:
        """All categories in registration order."""
        return list(self._categories.values())

    def ids(self) -> List[str]:
        return list(self._categories)

    def get(self, category_id: str) -> Category:
        """
        Get category by id.

        Raises:
            UnknownCategory: If the id is not registered
        """
        try:
            return self._categories[category_id]
        except KeyError:
            raise UnknownCategory(category_id, self.ids()) from None

    def validate(self, category_ids: Iterable[str]) -> List[Category]:
        """
        Resolve a list of ids to categories, failing on the first unknown id.

        Raises:
            UnknownCategory: If any id is not registered
        """
        return [self.get(cid) for cid in category_ids]

    def __contains__(self, category_id) -> bool:
        return category_id in self._categories

    def __len__(self) -> int:
        return len(self._categories)

    def __iter__(self) -> Iterator[Category]:
        return iter(self._categories.values())

    def __repr__(self) -> str:
        return (f"CategoryRegistry(name='{self.name}', vocabulary='{self.source_vocabulary}', "
                f"strategy={self.strategy.value}, categories={len(self)})")
