"""
Rate Aggregator

Folds category counts and the run's baseline totals into rate records.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from omop_prevalence.exceptions import ZeroPopulation
from omop_prevalence.models import (
    Category,
    CountResult,
    PrescriptionRateRecord,
    RateRecord,
    TimeWindow,
    code_bounds,
)

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


def rate(count: int, total: int, scale: int) -> float:
    """
    count / total * scale, rounded half-up to 2 decimals.

    Computed in Decimal from the integer counts so that each rate is
    rounded exactly once.
    """
    if total == 0:
        return 0.0
    value = Decimal(count) * Decimal(scale) / Decimal(total)
    return float(value.quantize(_CENT, rounding=ROUND_HALF_UP))


class RateAggregator:
    """Builds rate records. Stateless."""

    @staticmethod
    def check_population(total_patients: int) -> int:
        """
        Raises:
            ZeroPopulation: If the baseline population is empty
        """
        if total_patients <= 0:
            raise ZeroPopulation()
        return total_patients

    def aggregate(
        self,
        category: Category,
        count: CountResult,
        total_patients: int,
        window: TimeWindow,
    ) -> RateRecord:
        """
        Prevalence record for one category.

        Args:
            category: Category being reported
            count: Distinct persons counted for the category
            total_patients: Baseline population for the run
            window: Analysis window

        Returns:
            RateRecord with independently rounded percentage and per-100k rates

        Raises:
            ZeroPopulation: If total_patients is 0
        """
        self.check_population(total_patients)
        code_start, code_end = code_bounds(category.code_predicate)
        return RateRecord(
            category_id=category.id,
            display_name=category.display_name,
            code_start=code_start,
            code_end=code_end,
            patient_count=count.count,
            total_patients=total_patients,
            prevalence_pct=rate(count.count, total_patients, 100),
            prevalence_per_100k=rate(count.count, total_patients, 100_000),
            date_range=window.label,
        )

    def aggregate_prescriptions(
        self,
        category: Category,
        count: CountResult,
        total_prescriptions: int,
        total_patients: int,
        window: TimeWindow,
    ) -> PrescriptionRateRecord:
        """
        Prescription record for one drug class.

        percentage_of_total is the class's share of all in-window
        prescriptions (0 when there are none); rate_per_100k is
        prescriptions per 100,000 persons.

        Raises:
            ZeroPopulation: If total_patients is 0
        """
        self.check_population(total_patients)
        code, _ = code_bounds(category.code_predicate)
        return PrescriptionRateRecord(
            category_id=category.id,
            display_name=category.display_name,
            code=code,
            category_prescriptions=count.count,
            total_prescriptions=total_prescriptions,
            total_patients=total_patients,
            percentage_of_total=rate(count.count, total_prescriptions, 100),
            rate_per_100k=rate(count.count, total_patients, 100_000),
            date_range=window.label,
        )
