"""Tests for cross-device aggregation."""
from datetime import timedelta

from alerts.aggregator import Aggregator
from models.alerts import AlertCandidate
from models.enums import Severity, Aggregation
from conftest import make_rule, BASE_TIME


def _candidate(device, value=85, rule_id="rule-high-cpu", metric="cpuUsage", offset=0):
    return AlertCandidate(
        rule_id=rule_id, rule_name="High CPU usage", device_id=device, provider_id="provider-1",
        metric=metric, value=value, threshold=80, severity=Severity.WARNING,
        timestamp=BASE_TIME + timedelta(seconds=offset),
    )


def _rules(*rules):
    return {r.id: r for r in rules}


def test_five_devices_collapse_into_one_alert():
    candidates = [_candidate(f"device-{i}", value=80 + i) for i in range(1, 6)]
    drafts = Aggregator().aggregate(candidates, _rules(make_rule()))

    assert len(drafts) == 1
    alert = drafts[0]
    assert alert.is_aggregated is True
    assert alert.count == 5
    assert alert.member_ids == [c.id for c in candidates]
    assert alert.member_devices == [f"device-{i}" for i in range(1, 6)]
    assert "5 devices affected" in alert.title
    assert "4 other" in alert.description


def test_aggregated_alert_takes_base_fields_from_first_member():
    candidates = [_candidate("device-a", value=90), _candidate("device-b", value=95)]
    [alert] = Aggregator().aggregate(candidates, _rules(make_rule()))
    assert alert.device_id == "device-a"
    assert alert.value == 90
    assert alert.severity == Severity.WARNING
    assert alert.rule_id == "rule-high-cpu"


def test_average_mode_records_mean():
    candidates = [_candidate("a", value=90), _candidate("b", value=100)]
    [alert] = Aggregator().aggregate(candidates, _rules(make_rule(aggregation=Aggregation.AVERAGE)))
    assert alert.aggregate_value == 95


def test_event_mode_has_no_mean():
    candidates = [_candidate("a"), _candidate("b")]
    [alert] = Aggregator().aggregate(candidates, _rules(make_rule(aggregation=Aggregation.EVENT)))
    assert alert.is_aggregated
    assert alert.aggregate_value is None


def test_single_candidate_stays_standalone():
    [alert] = Aggregator().aggregate([_candidate("device-cpe-001")], _rules(make_rule()))
    assert alert.is_aggregated is False
    assert alert.count == 1
    assert alert.member_ids == []
    assert alert.title == "High CPU usage - device-cpe-001"
    assert "device-cpe-001" in alert.description


def test_none_mode_never_aggregates():
    candidates = [_candidate("a"), _candidate("b"), _candidate("c")]
    drafts = Aggregator().aggregate(candidates, _rules(make_rule(aggregation=Aggregation.NONE)))
    assert len(drafts) == 3
    assert not any(d.is_aggregated for d in drafts)


def test_groups_are_per_rule():
    mem_rule = make_rule(rule_id="rule-mem", metric="memoryUsage")
    candidates = [
        _candidate("a"), _candidate("b"),
        _candidate("a", rule_id="rule-mem", metric="memoryUsage"),
    ]
    drafts = Aggregator().aggregate(candidates, _rules(make_rule(), mem_rule))
    assert [(d.rule_id, d.is_aggregated) for d in drafts] == [
        ("rule-high-cpu", True), ("rule-mem", False),
    ]


def test_same_device_two_interfaces_counts_one_device():
    candidates = [
        _candidate("olt-1", value="down", metric="ifOperStatus.1"),
        _candidate("olt-1", value="down", metric="ifOperStatus.2"),
    ]
    rule = make_rule(metric="ifOperStatus", operator="==", threshold="down",
                     aggregation=Aggregation.EVENT)
    [alert] = Aggregator().aggregate(candidates, _rules(rule))
    assert alert.count == 2
    assert alert.member_devices == ["olt-1"]
    assert "1 device affected" in alert.title
