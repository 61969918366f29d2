"""Lifecycle store: canonical alert records and their state machine."""
import copy
import logging
import sqlite3
import threading
import uuid
from collections import Counter

from alerts.errors import NotFoundError, InvalidTransitionError, StorageError
from models.alerts import AlertFilter, utcnow
from models.enums import AlertStatus, ALLOWED_TRANSITIONS

logger = logging.getLogger("netalert.alerts.store")


class LifecycleStore:
    """In-memory alert collection with optional write-through repository.

    All reads return copies so callers can never mutate stored records.
    One lock guards the collection; acknowledge/resolve from the API and
    creation from the evaluation cycle take it briefly and never wait on I/O
    other than the repository write. Changes are written to the repository
    before they replace the in-memory record, so a failed write raises
    StorageError and leaves the collection as it was.
    """

    def __init__(self, repository=None, clock=utcnow):
        self.repository = repository
        self.clock = clock
        self._alerts = {}
        self._lock = threading.RLock()
        if repository is not None:
            for alert in repository.load_alerts():
                self._alerts[alert.id] = alert
            logger.info(f"Loaded {len(self._alerts)} alerts from repository")

    def create(self, draft):
        """Assign id, open status and creation time; store and return a copy."""
        with self._lock:
            alert = copy.deepcopy(draft)
            alert.id = f"alert-{uuid.uuid4().hex}"
            alert.status = AlertStatus.OPEN
            alert.created_at = self.clock()
            self._persist(alert)
            self._alerts[alert.id] = alert
            logger.debug(f"Created {alert.id} for rule {alert.rule_id} on {alert.affected}")
            return copy.deepcopy(alert)

    def acknowledge(self, alert_id, actor):
        """Re-acknowledging is allowed and re-stamps actor and time."""
        with self._lock:
            alert = self._transition(alert_id, AlertStatus.ACKNOWLEDGED)
            alert.acknowledged_at = self.clock()
            alert.acknowledged_by = actor
            self._persist(alert)
            self._alerts[alert_id] = alert
            logger.info(f"Alert {alert_id} acknowledged by {actor}")
            return copy.deepcopy(alert)

    def resolve(self, alert_id, actor):
        with self._lock:
            alert = self._transition(alert_id, AlertStatus.RESOLVED)
            alert.resolved_at = self.clock()
            alert.resolved_by = actor
            self._persist(alert)
            self._alerts[alert_id] = alert
            logger.info(f"Alert {alert_id} resolved by {actor}")
            return copy.deepcopy(alert)

    def get(self, alert_id):
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                raise NotFoundError(alert_id)
            return copy.deepcopy(alert)

    def list(self, alert_filter=None):
        alert_filter = alert_filter or AlertFilter()
        with self._lock:
            return [copy.deepcopy(a) for a in self._alerts.values() if alert_filter.matches(a)]

    def counters(self, alert_filter=None):
        """Totals per status, in the shape the dashboard API returns."""
        alerts = self.list(alert_filter)
        by_status = Counter(AlertStatus(a.status).value for a in alerts)
        result = {"total": len(alerts)}
        for status in AlertStatus:
            result[status.value] = by_status.get(status.value, 0)
        return result

    def __len__(self):
        with self._lock:
            return len(self._alerts)

    def _transition(self, alert_id, target):
        """Validate the move and return a moved copy; the stored record is untouched."""
        stored = self._alerts.get(alert_id)
        if stored is None:
            raise NotFoundError(alert_id)
        current = AlertStatus(stored.status)
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(alert_id, current.value, target.value)
        alert = copy.deepcopy(stored)
        alert.status = target
        return alert

    def _persist(self, alert):
        if self.repository is None:
            return
        try:
            self.repository.save_alert(alert)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to persist {alert.id} ({AlertStatus(alert.status).value}): {e}")
            raise StorageError(f"Could not save alert {alert.id}: {e}", alert_id=alert.id) from e
