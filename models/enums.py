"""Enums for severities, lifecycle status, aggregation modes, and channels."""
from enum import Enum


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertStatus(str, Enum):
    OPEN = "open"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class Aggregation(str, Enum):
    NONE = "none"
    AVERAGE = "average"
    EVENT = "event"


class ChannelType(str, Enum):
    PUSH = "push"
    EMAIL = "email"
    SMS = "sms"
    WEBHOOK = "webhook"
    CONSOLE = "console"
    FILE = "file"


# Legal forward moves; anything else is an invalid transition.
ALLOWED_TRANSITIONS = {
    AlertStatus.OPEN: {AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED},
    AlertStatus.ACKNOWLEDGED: {AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED},
    AlertStatus.RESOLVED: set(),
}
