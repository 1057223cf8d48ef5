"""
Built-in category catalogs.

ICD-10-CM chapters (code ranges) and ATC anatomical main groups (code
prefixes). Plain data; registries are built from it once per process.
"""

from functools import lru_cache

from omop_prevalence.models import (
    Category,
    Range,
    Prefix,
    EventDomain,
    ResolutionStrategy,
)
from omop_prevalence.registry.registry import CategoryRegistry


ICD10CM_VOCABULARY = "ICD10CM"
ATC_VOCABULARY = "ATC"
RXNORM_VOCABULARIES = ("RxNorm", "RxNorm Extension")


# id -> (name, (start code, end code))
DISEASE_CATEGORIES = {
    "infectious": ("Certain infectious and parasitic disease", ("A00", "B99")),
    "neoplasms": ("Neoplasm", ("C00", "D49")),
    "blood_immune": ("Diseases of the blood and blood-forming organs and certain disorders "
                     "involving the immune mechanism", ("D50", "D89")),
    "endocrine": ("Endocrine, nutritional and metabolic diseases", ("E00", "E89")),
    "mental": ("Mental, Behavioral and Neurodevelopmental disorders", ("F01", "F99")),
    "nervous": ("Diseases of the nervous system", ("G00", "G99")),
    "eye": ("Disease of the eye and adnexa", ("H00", "H59")),
    "ear": ("Diseases of the ear and mastoid process", ("H60", "H95")),
    "circulatory": ("Diseases of the circulatory system", ("I00", "I99")),
    "respiratory": ("Diseases of the respiratory system", ("J00", "J99")),
    "digestive": ("Diseases of the digestive system", ("K00", "K95")),
    "skin": ("Diseases of the skin and subcutaneous tissue", ("L00", "L99")),
    "musculoskeletal": ("Diseases of the musculoskeletal system and connective tissue", ("M00", "M99")),
    "genitourinary": ("Diseases of the genitourinary system", ("N00", "N99")),
    "pregnancy": ("Pregnancy, childbirth and the puerperium", ("O00", "O9A")),
    "perinatal": ("Certain conditions originating in the perinatal period", ("P00", "P96")),
    "congenital": ("Congenital malformations, deformations and chromosomal abnormalities", ("Q00", "Q99")),
    "symptoms": ("Symptoms, signs and abnormal clinical and laboratory findings, "
                 "not elsewhere classified", ("R00", "R99")),
    "injury": ("Injury, poisoning and certain other consequences of external causes", ("S00", "T88")),
    "external_causes": ("External causes of morbidity and mortality", ("V00", "Y99")),
    "health_status": ("Factors influencing health status and contact with health services", ("Z00", "Z99")),
    "special": ("Codes for special purposes", ("U00", "U85")),
}

# code -> name
ATC_CATEGORIES = {
    "A": "Alimentary tract and metabolism",
    "B": "Blood and blood forming organs",
    "C": "Cardiovascular system",
    "D": "Dermatologicals",
    "G": "Genito-urinary system and sex hormones",
    "H": "Systemic hormonal preparations",
    "J": "Antiinfectives for systemic use",
    "L": "Antineoplastic and immunomodulating agents",
    "M": "Musculoskeletal system",
    "N": "Nervous system",
    "P": "Antiparasitic products",
    "R": "Respiratory system",
    "S": "Sensory organs",
    "V": "Various",
}


@lru_cache(maxsize=None)
def disease_registry() -> CategoryRegistry:
    """ICD-10-CM chapter categories, resolved by direct mapping."""
    categories = [
        Category(id=cid, display_name=name, code_predicate=Range(low, high))
        for cid, (name, (low, high)) in DISEASE_CATEGORIES.items()
    ]
    return CategoryRegistry(
        name="disease",
        categories=categories,
        source_vocabulary=ICD10CM_VOCABULARY,
        strategy=ResolutionStrategy.DIRECT,
        event_domain=EventDomain.CONDITION_OCCURRENCE,
    )


@lru_cache(maxsize=None)
def atc_registry() -> CategoryRegistry:
    """ATC main groups, resolved by mapping plus descendant expansion."""
    categories = [
        Category(id=code, display_name=name, code_predicate=Prefix(code))
        for code, name in ATC_CATEGORIES.items()
    ]
    return CategoryRegistry(
        name="atc",
        categories=categories,
        source_vocabulary=ATC_VOCABULARY,
        strategy=ResolutionStrategy.MAPPED_EXPANDED,
        event_domain=EventDomain.DRUG_EXPOSURE,
        target_vocabularies=RXNORM_VOCABULARIES,
    )
