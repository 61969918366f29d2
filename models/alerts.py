"""Dataclasses for alert rules, telemetry samples, candidates and alerts."""
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional, Union

from models.enums import Severity, AlertStatus, Aggregation
from utils.formatters import parse_timestamp, format_iso, pluralize


@dataclass(frozen=True)
class ThresholdCondition:
    metric: str
    operator: str
    threshold: object

    kind = "threshold"


@dataclass(frozen=True)
class EventCondition:
    event: str

    kind = "event"


Condition = Union[ThresholdCondition, EventCondition]


@dataclass(frozen=True)
class AlertRule:
    id: str
    name: str = ""
    description: str = ""
    condition: Condition = None
    severity: Severity = Severity.INFO
    deduplication_window_seconds: int = 300
    aggregation: Aggregation = Aggregation.NONE
    targets: tuple = ()
    enabled: bool = True

    def condition_text(self):
        if isinstance(self.condition, EventCondition):
            return f"event {self.condition.event}"
        c = self.condition
        return f"{c.metric} {c.operator} {c.threshold}"


@dataclass
class MetricSample:
    device_id: str
    provider_id: str
    timestamp: datetime
    metrics: dict = field(default_factory=dict)
    events: dict = field(default_factory=dict)
    customer_id: Optional[str] = None
    pop_id: Optional[str] = None


def _new_id(prefix):
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


@dataclass
class AlertCandidate:
    rule_id: str
    rule_name: str
    device_id: str
    provider_id: str
    metric: str
    value: object
    threshold: object
    severity: Severity
    timestamp: datetime
    customer_id: Optional[str] = None
    pop_id: Optional[str] = None
    interface: Optional[str] = None
    id: str = field(default_factory=lambda: _new_id("cand"))

    @property
    def dedup_key(self):
        return (self.rule_id, self.device_id, self.metric)

    @property
    def sort_key(self):
        return (self.device_id, self.rule_id, self.metric, self.timestamp)


@dataclass
class Alert:
    rule_id: str = ""
    rule_name: str = ""
    device_id: str = ""
    provider_id: str = ""
    metric: str = ""
    value: object = None
    threshold: object = None
    severity: Severity = Severity.INFO
    timestamp: Optional[datetime] = None
    customer_id: Optional[str] = None
    pop_id: Optional[str] = None
    interface: Optional[str] = None
    title: str = ""
    description: str = ""
    id: str = ""
    status: AlertStatus = AlertStatus.OPEN
    created_at: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    is_aggregated: bool = False
    count: int = 1
    member_ids: list = field(default_factory=list)
    member_devices: list = field(default_factory=list)
    aggregate_value: Optional[float] = None

    @classmethod
    def from_candidate(cls, candidate: AlertCandidate, **overrides):
        base = dict(
            rule_id=candidate.rule_id,
            rule_name=candidate.rule_name,
            device_id=candidate.device_id,
            provider_id=candidate.provider_id,
            customer_id=candidate.customer_id,
            pop_id=candidate.pop_id,
            interface=candidate.interface,
            metric=candidate.metric,
            value=candidate.value,
            threshold=candidate.threshold,
            severity=candidate.severity,
            timestamp=candidate.timestamp,
        )
        base.update(overrides)
        return cls(**base)

    @property
    def affected(self):
        if self.is_aggregated:
            return pluralize(len(self.member_devices) or self.count, "device")
        if self.interface is not None:
            return f"{self.device_id}/{self.interface}"
        return self.device_id

    def to_dict(self):
        d = asdict(self)
        d["severity"] = Severity(self.severity).value
        d["status"] = AlertStatus(self.status).value
        for key in ("timestamp", "created_at", "acknowledged_at", "resolved_at"):
            d[key] = format_iso(d[key])
        return d

    @classmethod
    def from_dict(cls, d):
        d = dict(d)
        d["severity"] = Severity(d.get("severity", "info"))
        d["status"] = AlertStatus(d.get("status", "open"))
        for key in ("timestamp", "created_at", "acknowledged_at", "resolved_at"):
            if d.get(key):
                d[key] = parse_timestamp(d[key])
        d["member_ids"] = list(d.get("member_ids") or [])
        d["member_devices"] = list(d.get("member_devices") or [])
        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in d.items() if k in known})


@dataclass
class AlertFilter:
    status: Optional[str] = None
    severity: Optional[str] = None
    device_id: Optional[str] = None
    provider_id: Optional[str] = None
    rule_id: Optional[str] = None

    def matches(self, alert: Alert) -> bool:
        if self.status and alert.status != self.status:
            return False
        if self.severity and alert.severity != self.severity:
            return False
        if self.device_id and alert.device_id != self.device_id \
                and self.device_id not in alert.member_devices:
            return False
        if self.provider_id and alert.provider_id != self.provider_id:
            return False
        if self.rule_id and alert.rule_id != self.rule_id:
            return False
        return True


def utcnow():
    return datetime.now(timezone.utc)
