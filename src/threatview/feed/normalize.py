# ThreatView: Feed Module - Feed Normalisation
#
# The upstream feed wraps its records in a shape we do not control.
# This module unwraps whatever arrives (a bare list, or an object with
# the list under one of several keys) and maps each item onto a
# ThreatRecord, accepting the common field aliases seen in threat feeds.

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import FeedFormatError
from .models import Severity, ThreatRecord, ThreatType, parse_timestamp

logger = logging.getLogger(__name__)

# Keys under which feeds nest their record list, in lookup order
WRAPPER_KEYS: Tuple[str, ...] = ("threats", "data", "records", "items", "results", "events")
MAX_WRAPPER_DEPTH = 3

# Field aliases, in priority order
_ID_KEYS = ("id", "threat_id", "threatId", "uuid")
_TIMESTAMP_KEYS = ("timestamp", "time", "date", "detected_at", "created_at")
_TYPE_KEYS = ("type", "threat_type", "threatType", "category")
_SEVERITY_KEYS = ("severity", "level", "risk")
_COUNTRY_KEYS = ("country", "source_country", "sourceCountry", "origin")
_INDICATOR_KEYS = ("indicator", "ioc", "ip", "domain", "hash", "url")
_DESCRIPTION_KEYS = ("description", "details", "summary")


@dataclass(frozen=True)
class NormalizedFeed:
    """Result of normalising one feed body."""

    records: Tuple[ThreatRecord, ...]
    missing_id: int = 0
    duplicates: int = 0
    not_objects: int = 0

    @property
    def dropped(self) -> int:
        return self.missing_id + self.duplicates + self.not_objects


def _first(item: Dict[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = item.get(key)
        if value is not None and value != "":
            return value
    return None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def extract_items(payload: Any, depth: int = 0) -> List[Any]:
    """Find the record list inside a feed body.

    Raises:
        FeedFormatError: if no list is found within ``MAX_WRAPPER_DEPTH``
            levels of wrapping.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and depth < MAX_WRAPPER_DEPTH:
        for key in WRAPPER_KEYS:
            if key in payload and isinstance(payload[key], (list, dict)):
                try:
                    return extract_items(payload[key], depth + 1)
                except FeedFormatError:
                    continue
    raise FeedFormatError(
        f"No threat record list found in feed body of type {type(payload).__name__}"
    )


def record_from_item(item: Dict[str, Any]) -> Optional[ThreatRecord]:
    """Map one feed object to a ThreatRecord, or None if it has no id."""
    record_id = _text(_first(item, _ID_KEYS))
    if not record_id:
        return None

    raw_type = _text(_first(item, _TYPE_KEYS))
    raw_severity = _text(_first(item, _SEVERITY_KEYS))

    return ThreatRecord(
        record_id=record_id,
        timestamp=parse_timestamp(_first(item, _TIMESTAMP_KEYS)),
        threat_type=ThreatType.parse(raw_type),
        severity=Severity.parse(raw_severity),
        country=_text(_first(item, _COUNTRY_KEYS)),
        indicator=_text(_first(item, _INDICATOR_KEYS)),
        description=_text(_first(item, _DESCRIPTION_KEYS)),
        raw_type=raw_type,
        raw_severity=raw_severity,
    )


def normalize_feed(payload: Any) -> NormalizedFeed:
    """Turn a decoded feed body into a flat, id-unique record tuple.

    Items without an id and repeats of an id already seen are dropped
    (the first occurrence wins).  Records with out-of-enum severity or
    type are kept, unclassified.

    Raises:
        FeedFormatError: if the body holds no record list.
    """
    items = extract_items(payload)

    records: List[ThreatRecord] = []
    seen = set()
    missing_id = duplicates = not_objects = 0

    for item in items:
        if not isinstance(item, dict):
            not_objects += 1
            continue
        record = record_from_item(item)
        if record is None:
            missing_id += 1
            continue
        if record.record_id in seen:
            duplicates += 1
            continue
        seen.add(record.record_id)
        records.append(record)

    result = NormalizedFeed(
        records=tuple(records),
        missing_id=missing_id,
        duplicates=duplicates,
        not_objects=not_objects,
    )
    if result.dropped:
        logger.warning(
            "Dropped %d feed items (%d without id, %d duplicate ids, %d not objects)",
            result.dropped, missing_id, duplicates, not_objects,
        )
    return result
