"""
Tests for VocabularyResolver predicate dispatch and expansion.
"""

import pytest

from omop_prevalence.models import Category, ExactSet, Prefix, Range, ResolutionStrategy
from omop_prevalence.services import VocabularyResolver

from conftest import FakeVocabularyStore


class TestDirectResolution:
    """Range predicates resolved through Maps-to only."""

    def test_range_collects_mapped_targets(self, disease_vocabulary, small_disease_registry):
        resolver = VocabularyResolver(disease_vocabulary)
        concepts = resolver.resolve_in(small_disease_registry, small_disease_registry.get("respiratory"))
        assert concepts == frozenset({111, 222})

    def test_range_is_lexicographic_across_letters(self, disease_vocabulary, small_disease_registry):
        resolver = VocabularyResolver(disease_vocabulary)
        concepts = resolver.resolve_in(small_disease_registry, small_disease_registry.get("injury"))
        assert concepts == frozenset({444, 555})

    def test_direct_never_expands(self, disease_vocabulary, small_disease_registry):
        resolver = VocabularyResolver(disease_vocabulary)
        resolver.resolve_in(small_disease_registry, small_disease_registry.get("respiratory"))
        assert not [c for c in disease_vocabulary.calls if c[0] == "expand_descendants"]

    def test_no_matching_codes_gives_empty_set(self, disease_vocabulary, small_disease_registry):
        resolver = VocabularyResolver(disease_vocabulary)
        concepts = resolver.resolve_in(small_disease_registry, small_disease_registry.get("special"))
        assert concepts == frozenset()


class TestMappedExpandedResolution:
    """Prefix predicates mapped and expanded through the closure."""

    @pytest.fixture
    def atc_vocabulary(self):
        return FakeVocabularyStore(
            mappings={
                ("ATC", "C09AA02"): {1001},
                ("ATC", "C10AA01"): {1002},
                ("ATC", "C10AA05"): {1003},
                ("ATC", "N02BE01"): {2001},
            },
            descendants={
                1001: {1001, 1101, 1102},
                1002: {1002, 1201},
                1003: {1301},
            },
        )

    def test_prefix_includes_descendants(self, atc_vocabulary, small_drug_registry):
        resolver = VocabularyResolver(atc_vocabulary)
        concepts = resolver.resolve_in(small_drug_registry, small_drug_registry.get("C"))
        assert concepts == frozenset({1001, 1101, 1102, 1002, 1201, 1003, 1301})

    def test_roots_kept_when_closure_lacks_self_rows(self, atc_vocabulary, small_drug_registry):
        resolver = VocabularyResolver(atc_vocabulary)
        concepts = resolver.resolve_in(small_drug_registry, small_drug_registry.get("C"))
        assert 1003 in concepts

    def test_exact_set_dispatch(self, atc_vocabulary, small_drug_registry):
        resolver = VocabularyResolver(atc_vocabulary)
        concepts = resolver.resolve_in(small_drug_registry, small_drug_registry.get("statins"))
        assert concepts == frozenset({1002, 1201, 1003, 1301})
        assert ("resolve_exact", "ATC", ("C10AA01", "C10AA05")) in atc_vocabulary.calls

    def test_empty_mapping_skips_expansion(self, small_drug_registry):
        store = FakeVocabularyStore()
        resolver = VocabularyResolver(store)
        concepts = resolver.resolve_in(small_drug_registry, small_drug_registry.get("N"))
        assert concepts == frozenset()
        assert [c[0] for c in store.calls] == ["resolve_prefix_mapped"]


class TestDispatch:

    def test_empty_exact_set_issues_no_query(self):
        store = FakeVocabularyStore()
        resolver = VocabularyResolver(store)
        category = Category("none", "Nothing", ExactSet(()))
        assert resolver.resolve(category, "ICD10CM") == frozenset()
        assert store.calls == []

    def test_strategy_argument_overrides(self):
        store = FakeVocabularyStore(mappings={("ATC", "A01"): {5}}, descendants={5: {6}})
        resolver = VocabularyResolver(store)
        category = Category("A", "Alimentary", Prefix("A"))
        assert resolver.resolve(category, "ATC", ResolutionStrategy.DIRECT) == frozenset({5})
        assert resolver.resolve(category, "ATC", ResolutionStrategy.MAPPED_EXPANDED) == frozenset({5, 6})

    def test_unsupported_predicate(self):
        resolver = VocabularyResolver(FakeVocabularyStore())
        category = Category("x", "X", "J00-J99")
        with pytest.raises(TypeError):
            resolver.resolve(category, "ICD10CM")

    def test_range_arguments_forwarded(self):
        store = FakeVocabularyStore()
        VocabularyResolver(store).resolve(Category("r", "R", Range("S00", "T88")), "ICD10CM")
        assert store.calls == [("resolve_direct", "ICD10CM", "S00", "T88")]
