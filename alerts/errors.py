"""Exception taxonomy for the alert engine."""


class AlertEngineError(Exception):
    """Base class for all engine errors."""


class ValidationError(AlertEngineError):
    """Malformed rule or sample. The offending item is skipped."""

    def __init__(self, message, item_id=None):
        super().__init__(message)
        self.item_id = item_id


class NotFoundError(AlertEngineError):
    """No alert with the requested id."""

    def __init__(self, alert_id):
        super().__init__(f"Alert not found: {alert_id}")
        self.alert_id = alert_id


class InvalidTransitionError(AlertEngineError):
    """Requested lifecycle move is not allowed from the current status."""

    def __init__(self, alert_id, current, requested):
        super().__init__(f"Alert {alert_id} cannot move from {current} to {requested}")
        self.alert_id = alert_id
        self.current = current
        self.requested = requested


class DispatchError(AlertEngineError):
    """A notification channel failed to deliver a message."""

    def __init__(self, message, target=None, channel=None):
        super().__init__(message)
        self.target = target
        self.channel = channel


class TelemetryError(AlertEngineError):
    """Telemetry source unreachable. Aborts the whole cycle."""


class StorageError(AlertEngineError):
    """Repository write failed. The in-memory record is left unchanged."""

    def __init__(self, message, alert_id=None):
        super().__init__(message)
        self.alert_id = alert_id
