# ThreatView: Feed Module - Threat Record Data Models
#
# Defines the structured data models for the threat feed:
#   Severity       - ordered Low < Medium < High < Critical
#   ThreatType     - closed set of attack categories
#   ThreatRecord   - one event from the feed
#   FilterCriteria - the user's current list filter
#
# Feed strings are parsed into enums once, at the feed boundary.  A value
# outside the enum is kept as ``None`` (with the raw string alongside) so
# the rest of the pipeline never compares free-form strings.

import re
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from .errors import CriteriaConflictError

# Selector value meaning "do not filter on this field"
WILDCARD = "all"

_NON_ALNUM = re.compile(r"[^a-z0-9]")


class Severity(str, Enum):
    """Threat severity, ordered from least to most severe."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return list(Severity).index(self)

    @classmethod
    def parse(cls, value: Any) -> Optional["Severity"]:
        """Map a feed string to a severity, or None if unrecognised."""
        if not isinstance(value, str):
            return None
        return _SEVERITY_LOOKUP.get(value.strip().lower())


_SEVERITY_LOOKUP: Dict[str, Severity] = {s.value.lower(): s for s in Severity}


class ThreatType(str, Enum):
    """Classification of a threat event."""

    MALWARE = "Malware"
    PHISHING = "Phishing"
    DDOS = "DDoS"
    DATA_BREACH = "DataBreach"
    RANSOMWARE = "Ransomware"
    SQL_INJECTION = "SQLInjection"
    XSS = "XSS"

    @classmethod
    def parse(cls, value: Any) -> Optional["ThreatType"]:
        """Map a feed string to a threat type, or None if unrecognised.

        Spacing, case and punctuation are ignored, so ``"SQL Injection"``,
        ``"sql_injection"`` and ``"SQLInjection"`` all parse the same.
        """
        if not isinstance(value, str):
            return None
        return _TYPE_LOOKUP.get(_NON_ALNUM.sub("", value.lower()))


_TYPE_LOOKUP: Dict[str, ThreatType] = {
    _NON_ALNUM.sub("", t.value.lower()): t for t in ThreatType
}


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 string or a Unix epoch into an aware UTC datetime.

    Epoch values above 1e12 are taken as milliseconds.  Naive datetimes
    are assumed to be UTC.  Returns None for anything unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, (int, float)):
        seconds = value / 1000.0 if value > 1e12 else float(value)
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


@dataclass(frozen=True)
class ThreatRecord:
    """A single threat event from the feed.

    ``severity`` and ``threat_type`` are None when the feed value is
    outside the defined enums; ``raw_severity`` / ``raw_type`` keep the
    original string for display.
    """

    record_id: str
    timestamp: Optional[datetime]
    threat_type: Optional[ThreatType]
    severity: Optional[Severity]
    country: str = ""
    indicator: str = ""
    description: str = ""
    raw_type: str = ""
    raw_severity: str = ""

    @property
    def type_label(self) -> str:
        """Type as shown in the list: the enum value, else the raw string."""
        return self.threat_type.value if self.threat_type else self.raw_type

    @property
    def severity_label(self) -> str:
        return self.severity.value if self.severity else self.raw_severity

    @property
    def is_classified(self) -> bool:
        return self.severity is not None and self.threat_type is not None

    @property
    def is_critical(self) -> bool:
        return self.severity is Severity.CRITICAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.record_id,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "type": self.type_label,
            "severity": self.severity_label,
            "country": self.country,
            "indicator": self.indicator,
            "description": self.description,
            "classified": self.is_classified,
        }


def is_wildcard(value: Optional[str]) -> bool:
    """True for the ``"all"`` sentinel (any case) or an empty selector."""
    if value is None:
        return True
    text = value.strip()
    return text == "" or text.lower() == WILDCARD


@dataclass(frozen=True)
class FilterCriteria:
    """The list filter selected in the dashboard.

    Selectors hold what the user picked, unparsed.  ``"all"`` or an empty
    string disables a selector; any other value that is not a defined
    severity / type matches nothing.
    """

    search: str = ""
    severity: str = WILDCARD
    threat_type: str = WILDCARD
    country: str = WILDCARD

    @classmethod
    def from_params(
        cls,
        search: Optional[str] = None,
        severity: Optional[str] = None,
        threat_type: Optional[str] = None,
        country: Optional[str] = None,
    ) -> "FilterCriteria":
        return cls(
            search=search or "",
            severity=severity or WILDCARD,
            threat_type=threat_type or WILDCARD,
            country=country or WILDCARD,
        )

    @property
    def is_wildcard(self) -> bool:
        return (
            self.search.strip() == ""
            and is_wildcard(self.severity)
            and is_wildcard(self.threat_type)
            and is_wildcard(self.country)
        )

    def conjoin(self, other: "FilterCriteria") -> "FilterCriteria":
        """Merge two criteria into one that matches what both match.

        Each field must be unset on at least one side, or equivalent on
        both.

        Raises:
            CriteriaConflictError: if the two set different values on
                the same field.
        """
        search = _merge_field(
            "search", self.search, other.search,
            unset=lambda v: v.strip() == "",
            same=lambda a, b: a.strip().lower() == b.strip().lower(),
        )
        severity = _merge_field(
            "severity", self.severity, other.severity,
            same=lambda a, b: _same_selector(a, b, Severity.parse),
        )
        threat_type = _merge_field(
            "threat_type", self.threat_type, other.threat_type,
            same=lambda a, b: _same_selector(a, b, ThreatType.parse),
        )
        country = _merge_field("country", self.country, other.country)
        return replace(
            self,
            search=search,
            severity=severity,
            threat_type=threat_type,
            country=country,
        )

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def _same_selector(a: str, b: str, parse=None) -> bool:
    """Selectors naming the same enum member are equal, however spelled."""
    if parse is not None:
        left, right = parse(a), parse(b)
        if left is not None or right is not None:
            return left is right
    return a.strip().lower() == b.strip().lower()


def _merge_field(name, left, right, unset=is_wildcard, same=_same_selector):
    if unset(left):
        return right
    if unset(right) or same(left, right):
        return left
    raise CriteriaConflictError(
        f"Cannot combine {name}={left!r} with {name}={right!r}"
    )
