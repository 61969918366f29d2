"""Data models."""
from models.enums import Severity, AlertStatus, Aggregation, ChannelType
from models.alerts import (
    AlertRule, ThresholdCondition, EventCondition, MetricSample,
    AlertCandidate, Alert, AlertFilter,
)
