# ThreatView: Feed Module - Aggregation Engine
#
# Derives the summary-widget statistics from the full (unfiltered)
# record set:
#   1. Severity counts       - four defined levels + unclassified
#   2. Country counts        - descending, ties by first-seen order
#   3. Threat type counts    - descending, ties by first-seen order
#   4. Weekly pattern        - Mon..Sun buckets of total vs. critical
#   5. Headline numbers      - total, critical, blocked, active sources
#
# Summary widgets describe the whole feed; the list filter never feeds
# into these numbers.

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .models import Severity, ThreatRecord, ThreatType

WEEKDAY_LABELS: Tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
UNKNOWN_COUNTRY = "Unknown"
DEFAULT_TOP_N = 5

# Severities whose indicators count towards the blocked-attacks headline
_BLOCKABLE = (Severity.HIGH, Severity.CRITICAL)


@dataclass(frozen=True)
class TimelineBucket:
    """One weekday of the weekly pattern chart."""

    label: str
    total: int = 0
    critical: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"day": self.label, "total": self.total, "critical": self.critical}


@dataclass(frozen=True)
class AggregatedStats:
    """Summary statistics for one record-set version.

    Count sequences are tuples of ``(value, count)`` pairs sorted by
    count descending; equal counts keep first-seen order.
    """

    total_threats: int = 0
    severity_counts: Tuple[Tuple[Severity, int], ...] = field(
        default_factory=lambda: tuple((s, 0) for s in Severity)
    )
    unclassified: int = 0
    country_counts: Tuple[Tuple[str, int], ...] = ()
    type_counts: Tuple[Tuple[ThreatType, int], ...] = ()
    unclassified_types: int = 0
    timeline: Tuple[TimelineBucket, ...] = field(
        default_factory=lambda: tuple(TimelineBucket(label) for label in WEEKDAY_LABELS)
    )
    undated: int = 0
    blocked_attacks: int = 0
    active_sources: int = 0
    top_n: int = DEFAULT_TOP_N

    @property
    def critical_threats(self) -> int:
        return self.severity_count(Severity.CRITICAL)

    def severity_count(self, severity: Severity) -> int:
        for sev, count in self.severity_counts:
            if sev is severity:
                return count
        return 0

    @property
    def top_countries(self) -> Tuple[Tuple[str, int], ...]:
        return self.country_counts[: self.top_n]

    @property
    def top_types(self) -> Tuple[Tuple[ThreatType, int], ...]:
        return self.type_counts[: self.top_n]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_threats": self.total_threats,
            "critical_threats": self.critical_threats,
            "blocked_attacks": self.blocked_attacks,
            "active_sources": self.active_sources,
            "severity_counts": {s.value: c for s, c in self.severity_counts},
            "unclassified": self.unclassified,
            "top_countries": [
                {"country": name, "count": c} for name, c in self.top_countries
            ],
            "threat_types": [
                {"type": t.value, "count": c} for t, c in self.type_counts
            ],
            "unclassified_types": self.unclassified_types,
            "timeline": [b.to_dict() for b in self.timeline],
            "undated": self.undated,
        }


# ── Helpers ──────────────────────────────────────────────────────────

def ranked_counts(values: Iterable[Any]) -> List[Tuple[Any, int]]:
    """Count values and sort by count descending.

    ``Counter`` keeps insertion order and ``sorted`` is stable, so ties
    stay in first-seen order.
    """
    counts = Counter(values)
    return sorted(counts.items(), key=lambda kv: kv[1], reverse=True)


def weekday_label(record: ThreatRecord) -> Optional[str]:
    if record.timestamp is None:
        return None
    return WEEKDAY_LABELS[record.timestamp.weekday()]


def _timeline(records: Iterable[ThreatRecord]) -> Tuple[Tuple[TimelineBucket, ...], int]:
    totals = {label: 0 for label in WEEKDAY_LABELS}
    criticals = {label: 0 for label in WEEKDAY_LABELS}
    undated = 0
    for record in records:
        label = weekday_label(record)
        if label is None:
            undated += 1
            continue
        totals[label] += 1
        if record.is_critical:
            criticals[label] += 1
    buckets = tuple(
        TimelineBucket(label, totals[label], criticals[label])
        for label in WEEKDAY_LABELS
    )
    return buckets, undated


# ── Public API ───────────────────────────────────────────────────────

def aggregate(
    records: Iterable[ThreatRecord],
    top_n: int = DEFAULT_TOP_N,
) -> AggregatedStats:
    """Build the summary statistics for a record set.

    Unknown severities land in ``unclassified`` and unknown types in
    ``unclassified_types``; neither is folded into a defined bucket.
    Records without a timestamp are counted in ``undated``.
    """
    records = tuple(records)

    severity_tally = {s: 0 for s in Severity}
    unclassified = 0
    for record in records:
        if record.severity is None:
            unclassified += 1
        else:
            severity_tally[record.severity] += 1

    countries = ranked_counts(
        record.country.strip() or UNKNOWN_COUNTRY for record in records
    )
    types = ranked_counts(
        record.threat_type for record in records if record.threat_type is not None
    )
    unclassified_types = sum(1 for record in records if record.threat_type is None)

    timeline, undated = _timeline(records)

    blocked = {
        record.indicator.strip()
        for record in records
        if record.severity in _BLOCKABLE and record.indicator.strip()
    }
    active_sources = sum(1 for name, _ in countries if name != UNKNOWN_COUNTRY)

    return AggregatedStats(
        total_threats=len(records),
        severity_counts=tuple(severity_tally.items()),
        unclassified=unclassified,
        country_counts=tuple(countries),
        type_counts=tuple(types),
        unclassified_types=unclassified_types,
        timeline=timeline,
        undated=undated,
        blocked_attacks=len(blocked),
        active_sources=active_sources,
        top_n=top_n,
    )
