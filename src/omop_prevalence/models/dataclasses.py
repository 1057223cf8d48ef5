"""
Data models for prevalence reporting.

Provides type-safe dataclasses for categories, analysis windows, counts
and the rate records that make up a report.
"""

from dataclasses import dataclass, field, asdict
from datetime import date
from enum import Enum
from typing import Optional, List, Dict, Any, FrozenSet, Tuple, Union

from omop_prevalence.exceptions import StartAfterEnd


# =============================================================================
# CODE PREDICATES
# =============================================================================

@dataclass(frozen=True)
class ExactSet:
    """Explicit set of source codes."""
    codes: FrozenSet[str]

    def __post_init__(self):
        # Accept any iterable of codes
        object.__setattr__(self, "codes", frozenset(self.codes))


@dataclass(frozen=True)
class Range:
    """Inclusive lexicographic code range, e.g. S00-T88."""
    low: str
    high: str


@dataclass(frozen=True)
class Prefix:
    """All source codes starting with a prefix, e.g. ATC 'C'."""
    prefix: str


Predicate = Union[ExactSet, Range, Prefix]


@dataclass(frozen=True)
class Category:
    """Classification category with its source-code predicate."""
    id: str
    display_name: str
    code_predicate: Predicate


# Deduplicated standardized concept ids for one category
ConceptSet = FrozenSet[int]

EMPTY_CONCEPT_SET: ConceptSet = frozenset()


# =============================================================================
# ENUMS
# =============================================================================

class ResolutionStrategy(Enum):
    """How a category's predicate becomes a concept set."""
    DIRECT = "direct"                    # Maps-to only
    MAPPED_EXPANDED = "mapped_expanded"  # Maps-to plus descendant closure


class EventDomain(Enum):
    """Clinical event table counted for a category."""
    CONDITION_OCCURRENCE = "condition_occurrence"
    DRUG_EXPOSURE = "drug_exposure"


class CountUnit(Enum):
    """What is counted inside the event domain."""
    DISTINCT_PERSONS = "distinct_persons"
    EVENT_RECORDS = "event_records"


class FailurePolicy(Enum):
    """What a batch run does when one category fails."""
    ABORT = "abort"
    SKIP = "skip"

    @classmethod
    def from_value(cls, value: Union[str, "FailurePolicy"]) -> "FailurePolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise ValueError(f"Unknown failure policy '{value}'. Must be one of: {valid}")


# =============================================================================
# WINDOW / COUNTS / RECORDS
# =============================================================================

@dataclass(frozen=True)
class TimeWindow:
    """
    Analysis period. ``end=None`` leaves the window open.

    Raises:
        StartAfterEnd: If start is not strictly before end
    """
    start: date
    end: Optional[date] = None

    def __post_init__(self):
        if self.end is not None and self.start >= self.end:
            raise StartAfterEnd(
                f"Start date must be before end date (got {self.start.isoformat()} "
                f"and {self.end.isoformat()})"
            )

    @property
    def is_open(self) -> bool:
        return self.end is None

    @property
    def label(self) -> str:
        """Human-readable range, e.g. '2016-01-01 to 2024-12-31'."""
        if self.end is None:
            return f"{self.start.isoformat()} to present"
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


@dataclass(frozen=True)
class CountResult:
    """Number of matching entities for one category."""
    category_id: str
    count: int


@dataclass(frozen=True)
class RateRecord:
    """Prevalence of one category against the baseline population."""
    category_id: str
    display_name: str
    code_start: str
    code_end: str
    patient_count: int
    total_patients: int
    prevalence_pct: float
    prevalence_per_100k: float
    date_range: str

    @property
    def ranking_value(self) -> float:
        return self.prevalence_pct


@dataclass(frozen=True)
class PrescriptionRateRecord:
    """Prescription share and rate of one drug class."""
    category_id: str
    display_name: str
    code: str
    category_prescriptions: int
    total_prescriptions: int
    total_patients: int
    percentage_of_total: float
    rate_per_100k: float
    date_range: str

    @property
    def ranking_value(self) -> float:
        return self.percentage_of_total


AnyRateRecord = Union[RateRecord, PrescriptionRateRecord]


@dataclass(frozen=True)
class CategoryFailure:
    """A category omitted from a report because its queries failed."""
    category_id: str
    error_type: str
    message: str


@dataclass
class Report:
    """
    Ranked rate records for one run.

    ``records`` is sorted by rate descending, ties by category id.
    Categories in ``requested`` but not in ``records`` failed and are
    listed in ``failures``; a category with no matching events is still
    present with a zero count.
    """
    records: List[AnyRateRecord] = field(default_factory=list)
    requested: List[str] = field(default_factory=list)
    failures: List[CategoryFailure] = field(default_factory=list)
    total_patients: int = 0
    window: Optional[TimeWindow] = None
    count_unit: CountUnit = CountUnit.DISTINCT_PERSONS

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self):
        return iter(self.records)

    def __getitem__(self, index):
        return self.records[index]

    @property
    def category_ids(self) -> List[str]:
        return [r.category_id for r in self.records]

    def get(self, category_id: str) -> Optional[AnyRateRecord]:
        """Record for a category, or None if it is missing."""
        for record in self.records:
            if record.category_id == category_id:
                return record
        return None

    def missing_categories(self) -> List[str]:
        """Requested ids with no record, in request order."""
        present = set(self.category_ids)
        return [cid for cid in self.requested if cid not in present]

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [asdict(r) for r in self.records]


def code_bounds(predicate: Predicate) -> Tuple[str, str]:
    """First and last source code a predicate covers, for display."""
    if isinstance(predicate, Range):
        return predicate.low, predicate.high
    if isinstance(predicate, Prefix):
        return predicate.prefix, predicate.prefix
    if isinstance(predicate, ExactSet):
        if not predicate.codes:
            return "", ""
        ordered = sorted(predicate.codes)
        return ordered[0], ordered[-1]
    raise TypeError(f"Unsupported predicate type: {type(predicate).__name__}")
