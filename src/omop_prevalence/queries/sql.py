"""
Centralized SQL queries for the OMOP vocabulary and event tables.

Schema, table and column names are composed with psycopg2.sql
identifiers; every value is passed as a query parameter.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from psycopg2 import sql

from omop_prevalence.models import EventDomain, TimeWindow


@dataclass(frozen=True)
class DomainTable:
    """Physical layout of an event domain table."""
    table: str
    concept_column: str
    start_column: str
    end_column: str


DOMAIN_TABLES = {
    EventDomain.CONDITION_OCCURRENCE: DomainTable(
        table="condition_occurrence",
        concept_column="condition_concept_id",
        start_column="condition_start_date",
        end_column="condition_end_date",
    ),
    EventDomain.DRUG_EXPOSURE: DomainTable(
        table="drug_exposure",
        concept_column="drug_concept_id",
        start_column="drug_exposure_start_date",
        end_column="drug_exposure_end_date",
    ),
}


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so a prefix matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class VocabularyQueries:
    """SQL queries for concept, concept_relationship and concept_ancestor."""

    # Source concepts -> valid "Maps to" edges -> valid standard targets
    MAPPED_CONCEPTS = """
        SELECT DISTINCT target.concept_id AS concept_id
        FROM {schema}.concept source
        JOIN {schema}.concept_relationship cr
            ON cr.concept_id_1 = source.concept_id
            AND cr.relationship_id = 'Maps to'
            AND cr.invalid_reason IS NULL
        JOIN {schema}.concept target
            ON target.concept_id = cr.concept_id_2
            AND target.invalid_reason IS NULL
        WHERE source.vocabulary_id = %(vocabulary)s
            AND source.invalid_reason IS NULL
            AND {code_filter}
            {target_filter}
    """

    RANGE_FILTER = 'source.concept_code COLLATE "C" >= %(low)s AND source.concept_code COLLATE "C" <= %(high)s'

    PREFIX_FILTER = "source.concept_code LIKE %(pattern)s"

    EXACT_FILTER = "source.concept_code = ANY(%(codes)s)"

    TARGET_VOCABULARY_FILTER = "AND target.vocabulary_id = ANY(%(target_vocabularies)s)"

    DESCENDANTS = """
        SELECT DISTINCT ca.descendant_concept_id AS concept_id
        FROM {schema}.concept_ancestor ca
        WHERE ca.ancestor_concept_id = ANY(%(concept_ids)s)
    """

    @classmethod
    def mapped_concepts(
        cls,
        schema: str,
        code_filter: str,
        target_vocabularies: Optional[Sequence[str]] = None,
    ) -> sql.Composed:
        target_filter = cls.TARGET_VOCABULARY_FILTER if target_vocabularies else ""
        return sql.SQL(cls.MAPPED_CONCEPTS).format(
            schema=sql.Identifier(schema),
            code_filter=sql.SQL(code_filter),
            target_filter=sql.SQL(target_filter),
        )

    @classmethod
    def descendants(cls, schema: str) -> sql.Composed:
        return sql.SQL(cls.DESCENDANTS).format(schema=sql.Identifier(schema))


class EventQueries:
    """SQL queries for person and clinical event tables."""

    COUNT_TOTAL_POPULATION = """
        SELECT COUNT(DISTINCT person_id) AS n
        FROM {schema}.person
    """

    COUNT_DISTINCT_PERSONS = """
        SELECT COUNT(DISTINCT e.person_id) AS n
        FROM {schema}.{table} e
        WHERE e.{concept_column} = ANY(%(concept_ids)s)
            {window_filter}
    """

    COUNT_EVENTS = """
        SELECT COUNT(*) AS n
        FROM {schema}.{table} e
        WHERE e.{concept_column} = ANY(%(concept_ids)s)
            {window_filter}
    """

    COUNT_TOTAL_EVENTS = """
        SELECT COUNT(*) AS n
        FROM {schema}.{table} e
        WHERE e.{concept_column} IS NOT NULL
            {window_filter}
    """

    # Start inside the window; end missing or inside the window
    CLOSED_WINDOW_FILTER = """
            AND e.{start_column} >= %(start)s
            AND e.{start_column} <= %(end)s
            AND (e.{end_column} IS NULL OR e.{end_column} <= %(end)s)
    """

    OPEN_WINDOW_FILTER = """
            AND e.{start_column} >= %(start)s
    """

    @classmethod
    def total_population(cls, schema: str) -> sql.Composed:
        return sql.SQL(cls.COUNT_TOTAL_POPULATION).format(schema=sql.Identifier(schema))

    @classmethod
    def _event_query(cls, template: str, schema: str, domain: EventDomain, window: TimeWindow) -> sql.Composed:
        layout = DOMAIN_TABLES[domain]
        window_template = cls.OPEN_WINDOW_FILTER if window.end is None else cls.CLOSED_WINDOW_FILTER
        window_filter = sql.SQL(window_template).format(
            start_column=sql.Identifier(layout.start_column),
            end_column=sql.Identifier(layout.end_column),
        )
        return sql.SQL(template).format(
            schema=sql.Identifier(schema),
            table=sql.Identifier(layout.table),
            concept_column=sql.Identifier(layout.concept_column),
            window_filter=window_filter,
        )

    @classmethod
    def distinct_persons(cls, schema: str, domain: EventDomain, window: TimeWindow) -> sql.Composed:
        return cls._event_query(cls.COUNT_DISTINCT_PERSONS, schema, domain, window)

    @classmethod
    def events(cls, schema: str, domain: EventDomain, window: TimeWindow) -> sql.Composed:
        return cls._event_query(cls.COUNT_EVENTS, schema, domain, window)

    @classmethod
    def total_events(cls, schema: str, domain: EventDomain, window: TimeWindow) -> sql.Composed:
        return cls._event_query(cls.COUNT_TOTAL_EVENTS, schema, domain, window)


def window_params(window: TimeWindow) -> dict:
    """Query parameters for a window filter."""
    params = {"start": window.start}
    if window.end is not None:
        params["end"] = window.end
    return params
