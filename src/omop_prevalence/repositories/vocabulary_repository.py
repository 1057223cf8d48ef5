"""
Vocabulary Repository

Resolves source codes to standard concepts through the concept,
concept_relationship and concept_ancestor tables.
"""

import logging
from typing import Iterable, Optional, Sequence, Set

from omop_prevalence.queries import VocabularyQueries, escape_like
from omop_prevalence.repositories.base import BaseRepository, require_connection

logger = logging.getLogger(__name__)


class VocabularyRepository(BaseRepository):
    """
    Vocabulary store backed by the OMOP vocabulary tables.

    Only valid source concepts, valid "Maps to" relationships and valid
    target concepts take part in a mapping.
    """

    @require_connection
    def resolve_direct(
        self,
        source_vocabulary: str,
        code_low: str,
        code_high: str,
        target_vocabularies: Optional[Sequence[str]] = None,
    ) -> Set[int]:
        """
        Map source codes in [code_low, code_high] to standard concepts.

        Codes compare as strings in byte order, so ranges such as S00-T88
        span the letter boundary.

        Args:
            source_vocabulary: Vocabulary of the source codes
            code_low: First code, inclusive
            code_high: Last code, inclusive
            target_vocabularies: Restrict targets to these vocabularies

        Returns:
            Set of standard concept ids
        """
        query = VocabularyQueries.mapped_concepts(
            self.schema, VocabularyQueries.RANGE_FILTER, target_vocabularies
        )
        params = {
            "vocabulary": source_vocabulary,
            "low": code_low,
            "high": code_high,
            "target_vocabularies": list(target_vocabularies or []),
        }
        concept_ids = self._fetch_ids(query, params)
        logger.debug(f"{source_vocabulary} {code_low}-{code_high}: {len(concept_ids)} mapped concepts")
        return concept_ids

    @require_connection
    def resolve_prefix_mapped(
        self,
        source_vocabulary: str,
        prefix: str,
        target_vocabularies: Optional[Sequence[str]] = None,
    ) -> Set[int]:
        """
        Map source codes starting with prefix to standard concepts.

        Args:
            source_vocabulary: Vocabulary of the source codes
            prefix: Code prefix, matched literally
            target_vocabularies: Restrict targets to these vocabularies

        Returns:
            Set of standard concept ids
        """
        query = VocabularyQueries.mapped_concepts(
            self.schema, VocabularyQueries.PREFIX_FILTER, target_vocabularies
        )
        params = {
            "vocabulary": source_vocabulary,
            "pattern": f"{escape_like(prefix)}%",
            "target_vocabularies": list(target_vocabularies or []),
        }
        concept_ids = self._fetch_ids(query, params)
        logger.debug(f"{source_vocabulary} {prefix}*: {len(concept_ids)} mapped concepts")
        return concept_ids

    @require_connection
    def resolve_exact(
        self,
        source_vocabulary: str,
        codes: Iterable[str],
        target_vocabularies: Optional[Sequence[str]] = None,
    ) -> Set[int]:
        """Map an explicit list of source codes to standard concepts."""
        code_list = sorted(set(codes))
        if not code_list:
            return set()
        query = VocabularyQueries.mapped_concepts(
            self.schema, VocabularyQueries.EXACT_FILTER, target_vocabularies
        )
        params = {
            "vocabulary": source_vocabulary,
            "codes": code_list,
            "target_vocabularies": list(target_vocabularies or []),
        }
        return self._fetch_ids(query, params)

    @require_connection
    def expand_descendants(self, concept_ids: Iterable[int]) -> Set[int]:
        """
        Descendants of the given concepts in the concept_ancestor closure.

        Args:
            concept_ids: Ancestor concept ids

        Returns:
            Set of descendant concept ids (empty input issues no query)
        """
        ids = sorted(set(concept_ids))
        if not ids:
            return set()
        return self._fetch_ids(VocabularyQueries.descendants(self.schema), {"concept_ids": ids})
