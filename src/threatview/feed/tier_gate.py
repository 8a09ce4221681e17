# ThreatView: Feed Module - Tier Gate
#
# Maps (subscription tier, dashboard field) to either the field's value
# or an opaque Locked marker.  Each field has a minimum tier, and a tier
# sees a field iff it ranks at or above that minimum, so a field visible
# at one tier is visible at every higher tier.
#
# Locked results never carry the underlying value, so nothing
# downstream (logs, exports, JSON responses) can leak it.

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from ..core.tiers import SubscriptionTier
from .aggregation import AggregatedStats
from .errors import TierLockedError
from .models import ThreatRecord


class StatField(str, Enum):
    """Dashboard values and actions subject to tier gating."""

    # Summary statistics
    TOTAL_THREATS = "totalThreats"
    CRITICAL_THREATS = "criticalThreats"
    SEVERITY_BREAKDOWN = "severityBreakdown"
    WEEKLY_TIMELINE = "weeklyTimeline"
    BLOCKED_ATTACKS = "blockedAttacks"
    ACTIVE_SOURCES = "activeSources"
    TOP_COUNTRIES = "topCountries"
    THREAT_TYPES = "threatTypes"

    # Record fields
    INDICATOR = "indicator"

    # Actions
    EXPORT_CSV = "exportCsv"
    EXPORT_REPORT = "exportReport"
    API_ACCESS = "apiAccess"

    @property
    def is_stat(self) -> bool:
        return self in _STAT_VALUES

    @classmethod
    def parse(cls, value: str) -> "StatField":
        """Parse by value (``blockedAttacks``) or name (``BLOCKED_ATTACKS``)."""
        text = value.strip()
        for member in cls:
            if text == member.value or text.upper() == member.name:
                return member
        raise ValueError(f"Unknown stat field: {value!r}")


MINIMUM_TIER: Dict[StatField, SubscriptionTier] = {
    StatField.TOTAL_THREATS: SubscriptionTier.FREE,
    StatField.CRITICAL_THREATS: SubscriptionTier.FREE,
    StatField.SEVERITY_BREAKDOWN: SubscriptionTier.FREE,
    StatField.WEEKLY_TIMELINE: SubscriptionTier.FREE,
    StatField.BLOCKED_ATTACKS: SubscriptionTier.PRO,
    StatField.ACTIVE_SOURCES: SubscriptionTier.PRO,
    StatField.TOP_COUNTRIES: SubscriptionTier.PRO,
    StatField.THREAT_TYPES: SubscriptionTier.PRO,
    StatField.INDICATOR: SubscriptionTier.PRO,
    StatField.EXPORT_CSV: SubscriptionTier.PRO,
    StatField.EXPORT_REPORT: SubscriptionTier.BUSINESS,
    StatField.API_ACCESS: SubscriptionTier.BUSINESS,
}

_STAT_VALUES: Dict[StatField, Callable[[AggregatedStats], Any]] = {
    StatField.TOTAL_THREATS: lambda s: s.total_threats,
    StatField.CRITICAL_THREATS: lambda s: s.critical_threats,
    StatField.SEVERITY_BREAKDOWN: lambda s: dict(
        {sev.value: c for sev, c in s.severity_counts}, unclassified=s.unclassified
    ),
    StatField.WEEKLY_TIMELINE: lambda s: [b.to_dict() for b in s.timeline],
    StatField.BLOCKED_ATTACKS: lambda s: s.blocked_attacks,
    StatField.ACTIVE_SOURCES: lambda s: s.active_sources,
    StatField.TOP_COUNTRIES: lambda s: [
        {"country": name, "count": c} for name, c in s.top_countries
    ],
    StatField.THREAT_TYPES: lambda s: [
        {"type": t.value, "count": c} for t, c in s.type_counts
    ],
}


@dataclass(frozen=True)
class Visible:
    """The field is shown; ``value`` is what to render."""

    field: StatField
    value: Any

    locked = False

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field.value, "locked": False, "value": self.value}


@dataclass(frozen=True)
class Locked:
    """The field is masked at the current tier.

    Holds only the field and the tier that would unlock it.
    """

    field: StatField
    required_tier: SubscriptionTier

    locked = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field.value,
            "locked": True,
            "required_tier": self.required_tier.value,
        }


Visibility = Union[Visible, Locked]


def is_visible(tier: SubscriptionTier, field: StatField) -> bool:
    return tier.includes(MINIMUM_TIER[field])


def visibility(
    tier: SubscriptionTier,
    field: StatField,
    stats: Optional[AggregatedStats] = None,
) -> Visibility:
    """Decide whether ``field`` is shown at ``tier``.

    Statistic fields need ``stats`` to produce a Visible value; record
    fields and actions report ``True`` when visible.  The stats are not
    read at all when the field is locked.

    Raises:
        ValueError: if a visible statistic is requested without stats.
    """
    if not is_visible(tier, field):
        return Locked(field=field, required_tier=MINIMUM_TIER[field])
    if not field.is_stat:
        return Visible(field=field, value=True)
    if stats is None:
        raise ValueError(f"{field.value} needs aggregated stats to render")
    return Visible(field=field, value=_STAT_VALUES[field](stats))


def gated_stats(tier: SubscriptionTier, stats: AggregatedStats) -> Dict[str, Visibility]:
    """Visibility of every statistic field, keyed by field value."""
    return {
        f.value: visibility(tier, f, stats)
        for f in StatField
        if f.is_stat
    }


def gate_record(tier: SubscriptionTier, record: ThreatRecord) -> Dict[str, Any]:
    """Serialise a record for display, masking the indicator if locked."""
    data = record.to_dict()
    if not is_visible(tier, StatField.INDICATOR):
        data["indicator"] = None
        data["indicator_locked"] = True
    else:
        data["indicator_locked"] = False
    return data


def require(tier: SubscriptionTier, field: StatField) -> None:
    """Raise unless ``field`` is available at ``tier``.

    Raises:
        TierLockedError: with the tier needed to unlock the field.
    """
    if not is_visible(tier, field):
        raise TierLockedError(field.value, MINIMUM_TIER[field].value)
