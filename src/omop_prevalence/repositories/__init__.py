"""
OMOP store repositories.

Each repository implements one store protocol against the database.
"""

from omop_prevalence.repositories.base import BaseRepository, require_connection
from omop_prevalence.repositories.vocabulary_repository import VocabularyRepository
from omop_prevalence.repositories.event_repository import EventRepository

__all__ = [
    "BaseRepository",
    "require_connection",
    "VocabularyRepository",
    "EventRepository",
]
