"""Tests for candidate deduplication."""
from datetime import timedelta

from alerts.dedup import Deduplicator
from models.alerts import AlertCandidate
from models.enums import Severity
from conftest import make_rule, BASE_TIME


def _candidate(offset, device="device-cpe-001", metric="cpuUsage", rule_id="rule-high-cpu"):
    return AlertCandidate(
        rule_id=rule_id, rule_name=rule_id, device_id=device, provider_id="provider-1",
        metric=metric, value=85, threshold=80, severity=Severity.WARNING,
        timestamp=BASE_TIME + timedelta(seconds=offset),
    )


def _rules(**kwargs):
    rule = make_rule(**kwargs)
    return {rule.id: rule}


def test_repeat_inside_window_is_dropped_and_later_one_accepted():
    """Window 300s: t=0 accepted, t=10 dropped, t=301 accepted."""
    dedup = Deduplicator()
    first, second, third = _candidate(0), _candidate(10), _candidate(301)

    accepted = dedup.filter([first, second, third], _rules(window=300))
    assert [c.id for c in accepted] == [first.id, third.id]


def test_boundary_exactly_window_is_accepted():
    dedup = Deduplicator()
    accepted = dedup.filter([_candidate(0), _candidate(300)], _rules(window=300))
    assert len(accepted) == 2


def test_window_measured_from_last_accepted_not_last_seen():
    dedup = Deduplicator()
    accepted = dedup.filter(
        [_candidate(0), _candidate(200), _candidate(350)], _rules(window=300))
    assert [c.timestamp for c in accepted] == [BASE_TIME, BASE_TIME + timedelta(seconds=350)]


def test_state_persists_across_cycles():
    dedup = Deduplicator()
    rules = _rules(window=300)
    assert len(dedup.filter([_candidate(0)], rules)) == 1
    assert dedup.filter([_candidate(60)], rules) == []
    assert len(dedup.filter([_candidate(400)], rules)) == 1


def test_keys_are_independent():
    dedup = Deduplicator()
    candidates = [
        _candidate(0),
        _candidate(1, device="device-core-01"),
        _candidate(2, metric="ifOperStatus.2"),
        _candidate(3, rule_id="rule-other"),
    ]
    rules = _rules(window=300)
    rules.update(_rules(rule_id="rule-other", window=300))
    assert len(dedup.filter(candidates, rules)) == 4


def test_zero_window_accepts_everything():
    dedup = Deduplicator()
    accepted = dedup.filter([_candidate(0), _candidate(0), _candidate(1)], _rules(window=0))
    assert len(accepted) == 3


def test_map_stores_sample_timestamp():
    dedup = Deduplicator()
    dedup.filter([_candidate(42)], _rules())
    assert dedup.last_accepted[("rule-high-cpu", "device-cpe-001", "cpuUsage")] == \
        BASE_TIME + timedelta(seconds=42)


def test_export_and_load_state():
    dedup = Deduplicator()
    dedup.filter([_candidate(0)], _rules())
    records = dedup.export_state()
    assert records == [{
        "rule_id": "rule-high-cpu", "device_id": "device-cpe-001",
        "metric": "cpuUsage", "last_accepted": BASE_TIME.isoformat(),
    }]

    restored = Deduplicator()
    restored.load_state(records)
    assert restored.filter([_candidate(10)], _rules(window=300)) == []


def test_forget_releases_key_for_next_batch():
    dedup = Deduplicator()
    rules = _rules(window=300)
    first = _candidate(0)
    dedup.filter([first], rules)

    dedup.forget([first.dedup_key, ("rule-missing", "device-x", "cpuUsage")])
    assert len(dedup) == 0
    assert len(dedup.filter([_candidate(10)], rules)) == 1
