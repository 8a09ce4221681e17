# ThreatView: Feed Module - Filter Engine
#
# Turns a FilterCriteria into one predicate and applies it to a record
# sequence.  Four independent predicates are AND-ed together:
#   text      - case-insensitive substring over id, type, indicator
#   severity  - exact severity level
#   type      - exact threat type
#   country   - exact source country (case-insensitive)
#
# Every predicate fails closed: a record whose severity or type is
# unclassified never matches a specific selector, and a selector that
# names no defined level or type matches no record at all.

from typing import Callable, Iterable, List, Optional, Tuple

from .models import FilterCriteria, Severity, ThreatRecord, ThreatType, is_wildcard

Predicate = Callable[[ThreatRecord], bool]


def _always(_record: ThreatRecord) -> bool:
    return True


def _never(_record: ThreatRecord) -> bool:
    return False


# ── Individual predicates ────────────────────────────────────────────

def text_predicate(search: str) -> Predicate:
    """Match records whose id, type or indicator contains ``search``."""
    needle = (search or "").strip().lower()
    if not needle:
        return _always

    def matches(record: ThreatRecord) -> bool:
        return (
            needle in record.record_id.lower()
            or needle in record.type_label.lower()
            or needle in record.indicator.lower()
        )

    return matches


def severity_predicate(selector: str) -> Predicate:
    if is_wildcard(selector):
        return _always
    wanted: Optional[Severity] = Severity.parse(selector)
    if wanted is None:
        return _never
    return lambda record: record.severity is wanted


def type_predicate(selector: str) -> Predicate:
    if is_wildcard(selector):
        return _always
    wanted: Optional[ThreatType] = ThreatType.parse(selector)
    if wanted is None:
        return _never
    return lambda record: record.threat_type is wanted


def country_predicate(selector: str) -> Predicate:
    if is_wildcard(selector):
        return _always
    wanted = selector.strip().lower()
    return lambda record: record.country.strip().lower() == wanted


# ── Composition ──────────────────────────────────────────────────────

def build_predicate(criteria: FilterCriteria) -> Predicate:
    """Compose the four predicates for ``criteria`` into one.

    Wildcard predicates are dropped so an all-wildcard criteria costs
    nothing per record.
    """
    parts: List[Predicate] = [
        p for p in (
            text_predicate(criteria.search),
            severity_predicate(criteria.severity),
            type_predicate(criteria.threat_type),
            country_predicate(criteria.country),
        )
        if p is not _always
    ]
    if not parts:
        return _always
    if any(p is _never for p in parts):
        return _never

    def matches(record: ThreatRecord) -> bool:
        return all(p(record) for p in parts)

    return matches


def filter_records(
    records: Iterable[ThreatRecord],
    criteria: FilterCriteria,
) -> Tuple[ThreatRecord, ...]:
    """Return the records matching ``criteria``, in input order.

    Pure: the input is only iterated, never modified.
    """
    predicate = build_predicate(criteria)
    return tuple(r for r in records if predicate(r))


def matches_all(record: ThreatRecord, *criteria: FilterCriteria) -> bool:
    """True if ``record`` satisfies every one of ``criteria``."""
    return all(build_predicate(c)(record) for c in criteria)
