# Tests for the feed data models
# Covers: Severity / ThreatType parsing, timestamp parsing,
#          ThreatRecord labels, FilterCriteria wildcard and conjoin.

from datetime import datetime, timezone

import pytest

from threatview.feed.errors import CriteriaConflictError
from threatview.feed.models import (
    FilterCriteria,
    Severity,
    ThreatRecord,
    ThreatType,
    is_wildcard,
    parse_timestamp,
)


# ── Severity ─────────────────────────────────────────────────────────

class TestSeverity:
    def test_ordering_by_rank(self):
        ranks = [s.rank for s in (Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL)]
        assert ranks == sorted(ranks)
        assert Severity.CRITICAL.rank > Severity.LOW.rank

    def test_parse_case_insensitive(self):
        assert Severity.parse("critical") is Severity.CRITICAL
        assert Severity.parse("  HIGH ") is Severity.HIGH

    def test_parse_unknown_returns_none(self):
        assert Severity.parse("Severe") is None
        assert Severity.parse("") is None
        assert Severity.parse(3) is None


# ── ThreatType ───────────────────────────────────────────────────────

class TestThreatType:
    def test_parse_exact(self):
        assert ThreatType.parse("DDoS") is ThreatType.DDOS

    def test_parse_ignores_spacing_and_punctuation(self):
        assert ThreatType.parse("SQL Injection") is ThreatType.SQL_INJECTION
        assert ThreatType.parse("sql_injection") is ThreatType.SQL_INJECTION
        assert ThreatType.parse("data-breach") is ThreatType.DATA_BREACH

    def test_parse_unknown(self):
        assert ThreatType.parse("Cryptojacking") is None
        assert ThreatType.parse(None) is None


# ── Timestamps ───────────────────────────────────────────────────────

class TestParseTimestamp:
    def test_iso_with_z(self):
        ts = parse_timestamp("2024-01-15T10:30:00Z")
        assert ts == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_naive_assumed_utc(self):
        ts = parse_timestamp("2024-01-15T10:30:00")
        assert ts.tzinfo is not None
        assert ts.hour == 10

    def test_offset_converted_to_utc(self):
        ts = parse_timestamp("2024-01-15T10:30:00+02:00")
        assert ts.hour == 8

    def test_epoch_seconds_and_millis(self):
        secs = parse_timestamp(1705314600)
        millis = parse_timestamp(1705314600000)
        assert secs == millis

    def test_garbage_returns_none(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp("") is None
        assert parse_timestamp(None) is None
        assert parse_timestamp(True) is None


# ── ThreatRecord ─────────────────────────────────────────────────────

class TestThreatRecord:
    def test_labels_use_enum_values(self):
        r = ThreatRecord("t1", None, ThreatType.MALWARE, Severity.HIGH)
        assert r.type_label == "Malware"
        assert r.severity_label == "High"
        assert r.is_classified

    def test_labels_fall_back_to_raw(self):
        r = ThreatRecord("t2", None, None, None, raw_type="Worm", raw_severity="Severe")
        assert r.type_label == "Worm"
        assert r.severity_label == "Severe"
        assert not r.is_classified
        assert not r.is_critical

    def test_to_dict(self):
        ts = datetime(2024, 1, 15, tzinfo=timezone.utc)
        r = ThreatRecord("t3", ts, ThreatType.XSS, Severity.CRITICAL,
                         country="China", indicator="1.2.3.4")
        d = r.to_dict()
        assert d["id"] == "t3"
        assert d["timestamp"].startswith("2024-01-15")
        assert d["severity"] == "Critical"
        assert d["country"] == "China"
        assert d["classified"] is True

    def test_immutable(self):
        r = ThreatRecord("t4", None, None, None)
        with pytest.raises(Exception):
            r.country = "France"


# ── FilterCriteria ───────────────────────────────────────────────────

class TestFilterCriteria:
    def test_default_is_wildcard(self):
        assert FilterCriteria().is_wildcard

    def test_wildcard_helper(self):
        assert is_wildcard("all")
        assert is_wildcard("ALL")
        assert is_wildcard("")
        assert is_wildcard(None)
        assert not is_wildcard("Critical")

    def test_from_params_fills_wildcards(self):
        c = FilterCriteria.from_params(search=None, severity="High")
        assert c.severity == "High"
        assert c.threat_type == "all"
        assert c.country == "all"
        assert c.search == ""

    def test_whitespace_search_is_wildcard(self):
        assert FilterCriteria(search="   ").is_wildcard

    def test_hashable_for_memo_keys(self):
        assert hash(FilterCriteria(severity="High")) == hash(FilterCriteria(severity="High"))

    def test_conjoin_disjoint_fields(self):
        merged = FilterCriteria(severity="Critical").conjoin(FilterCriteria(country="China"))
        assert merged.severity == "Critical"
        assert merged.country == "China"

    def test_conjoin_same_value(self):
        merged = FilterCriteria(severity="critical").conjoin(FilterCriteria(severity="Critical"))
        assert merged.severity.lower() == "critical"

    def test_conjoin_same_type_spelled_differently(self):
        merged = FilterCriteria(threat_type="SQL Injection").conjoin(
            FilterCriteria(threat_type="SQLInjection")
        )
        assert ThreatType.parse(merged.threat_type) is ThreatType.SQL_INJECTION

    def test_conjoin_same_severity_spelled_differently(self):
        merged = FilterCriteria(severity=" HIGH").conjoin(FilterCriteria(severity="high"))
        assert Severity.parse(merged.severity) is Severity.HIGH

    def test_conjoin_known_and_unknown_type_conflict(self):
        with pytest.raises(CriteriaConflictError):
            FilterCriteria(threat_type="XSS").conjoin(FilterCriteria(threat_type="Worm"))

    def test_conjoin_conflict(self):
        with pytest.raises(CriteriaConflictError):
            FilterCriteria(country="China").conjoin(FilterCriteria(country="Russia"))

    def test_conjoin_conflict_is_value_error(self):
        with pytest.raises(ValueError):
            FilterCriteria(search="abc").conjoin(FilterCriteria(search="xyz"))
