"""
Protocol definitions for dependency injection.

These protocols define the store interfaces that services depend on,
allowing for easy mocking in tests and swapping implementations.
"""

from omop_prevalence.protocols.store_protocol import VocabularyStore, EventStore

__all__ = [
    "VocabularyStore",
    "EventStore",
]
