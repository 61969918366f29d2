"""Rolling-window deduplication of alert candidates."""
import logging

from utils.formatters import parse_timestamp, format_iso

logger = logging.getLogger("netalert.alerts.dedup")


class Deduplicator:
    """Suppresses repeat candidates per (rule_id, device_id, metric).

    The last-accepted map is long-lived and keyed on sample time, so replaying
    historical batches dedupes the same way live data does. Entries never
    expire; growth is bounded only by the number of distinct keys.
    """

    def __init__(self, state=None):
        self.last_accepted = dict(state or {})

    def filter(self, candidates, rules_by_id):
        """Return candidates that fall outside their rule's window, in input order."""
        accepted = []
        for candidate in candidates:
            rule = rules_by_id.get(candidate.rule_id)
            window = rule.deduplication_window_seconds if rule else 0
            key = candidate.dedup_key

            if not self._outside_window(key, candidate.timestamp, window):
                logger.debug(f"Duplicate suppressed for {key} (window {window}s)")
                continue

            self.last_accepted[key] = candidate.timestamp
            accepted.append(candidate)
        return accepted

    def forget(self, keys):
        """Drop accepted keys so the next cycle may accept them again."""
        for key in keys:
            self.last_accepted.pop(key, None)

    def _outside_window(self, key, timestamp, window):
        if window <= 0:
            return True
        last = self.last_accepted.get(key)
        if last is None:
            return True
        return (timestamp - last).total_seconds() >= window

    def __len__(self):
        return len(self.last_accepted)

    def export_state(self):
        """Plain records keyed by dedup key, ready for JSON or SQL."""
        return [
            {"rule_id": k[0], "device_id": k[1], "metric": k[2], "last_accepted": format_iso(ts)}
            for k, ts in self.last_accepted.items()
        ]

    def load_state(self, records):
        for r in records:
            key = (r["rule_id"], r["device_id"], r["metric"])
            self.last_accepted[key] = parse_timestamp(r["last_accepted"])
        logger.info(f"Loaded {len(records)} dedup entries")
