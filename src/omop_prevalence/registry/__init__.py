"""
Category registries and built-in catalogs.
"""

from omop_prevalence.registry.registry import CategoryRegistry
from omop_prevalence.registry.catalogs import (
    DISEASE_CATEGORIES,
    ATC_CATEGORIES,
    ICD10CM_VOCABULARY,
    ATC_VOCABULARY,
    RXNORM_VOCABULARIES,
    disease_registry,
    atc_registry,
)

__all__ = [
    "CategoryRegistry",
    "DISEASE_CATEGORIES",
    "ATC_CATEGORIES",
    "ICD10CM_VOCABULARY",
    "ATC_VOCABULARY",
    "RXNORM_VOCABULARIES",
    "disease_registry",
    "atc_registry",
]
