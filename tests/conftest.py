"""Shared test fixtures."""
import os
import sys
import pytest
import tempfile
from datetime import datetime, timedelta, timezone

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.database import Database
from models.alerts import AlertRule, ThresholdCondition, EventCondition, MetricSample
from models.enums import Severity, Aggregation

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock for lifecycle timestamps."""
    def __init__(self, start=BASE_TIME):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


class RecordingChannel:
    """Channel double that remembers every send."""
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, alert, message, recipient=None):
        if self.fail:
            from alerts.errors import DispatchError
            raise DispatchError("gateway down")
        self.sent.append((alert.id, message, recipient))


class StaticRules:
    """Minimal rule catalog for testing."""
    def __init__(self, rules):
        self.rules = tuple(rules)
        self.errors = []

    def get_current_rules(self):
        return self.rules

    def reload(self):
        return self.rules


class FlakyRepository:
    """Repository double whose save_alert fails for alerts matching fail_when."""
    def __init__(self, fail_when=lambda alert: False):
        self.fail_when = fail_when
        self.saved = {}

    def save_alert(self, alert):
        if self.fail_when(alert):
            import sqlite3
            raise sqlite3.OperationalError("database is locked")
        self.saved[alert.id] = alert.to_dict()

    def load_alerts(self):
        return []

    def save_dedup_state(self, records):
        pass

    def load_dedup_state(self):
        return []


def make_rule(rule_id="rule-high-cpu", metric="cpuUsage", operator=">", threshold=80,
              severity=Severity.WARNING, window=300, aggregation=Aggregation.AVERAGE,
              targets=("noc-team",), name=None, enabled=True):
    return AlertRule(
        id=rule_id,
        name=name or rule_id,
        description=f"{metric} check",
        condition=ThresholdCondition(metric=metric, operator=operator, threshold=threshold),
        severity=severity,
        deduplication_window_seconds=window,
        aggregation=aggregation,
        targets=tuple(targets),
        enabled=enabled,
    )


def make_event_rule(rule_id="rule-device-offline", event="polling_failed", window=300,
                    aggregation=Aggregation.EVENT, targets=("noc-team",)):
    return AlertRule(
        id=rule_id,
        name="Device offline",
        description="Device did not answer polling",
        condition=EventCondition(event=event),
        severity=Severity.CRITICAL,
        deduplication_window_seconds=window,
        aggregation=aggregation,
        targets=tuple(targets),
    )


def make_sample(device_id="device-cpe-001", metrics=None, events=None, offset=0,
                provider_id="provider-1", **kwargs):
    return MetricSample(
        device_id=device_id,
        provider_id=provider_id,
        timestamp=BASE_TIME + timedelta(seconds=offset),
        metrics=metrics if metrics is not None else {"cpuUsage": 85},
        events=events or {},
        **kwargs,
    )


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    db = Database(db_path)
    db.connect()
    yield db
    db.close()
    os.unlink(db_path)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cpu_rule():
    return make_rule()


@pytest.fixture
def recording_channel():
    return RecordingChannel()
