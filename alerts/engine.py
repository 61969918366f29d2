"""Evaluation cycle controller.

One cycle: pull rules and samples, evaluate, dedupe, aggregate, create
alerts in the lifecycle store, and hand each new alert to the router.
"""
import logging
import sqlite3
import threading
import time
from concurrent.futures import ThreadPoolExecutor

from alerts.aggregator import Aggregator
from alerts.dedup import Deduplicator
from alerts.errors import StorageError, TelemetryError
from alerts.evaluator import ConditionEvaluator
from alerts.store import LifecycleStore
from models.alerts import AlertFilter

logger = logging.getLogger("netalert.alerts.engine")


class AlertEngine:
    def __init__(self, rules_source, telemetry, store=None, router=None,
                 deduplicator=None, evaluator=None, aggregator=None,
                 repository=None, evaluation_workers=1):
        self.rules_source = rules_source
        self.telemetry = telemetry
        self.repository = repository
        self.store = store if store is not None else LifecycleStore(repository=repository)
        self.router = router
        self.evaluator = evaluator or ConditionEvaluator()
        self.aggregator = aggregator or Aggregator()
        self.deduplicator = deduplicator if deduplicator is not None else Deduplicator()
        if deduplicator is None and repository is not None:
            self.deduplicator.load_state(repository.load_dedup_state())
        self.evaluation_workers = max(1, evaluation_workers)
        self.last_cycle = None
        self._cycle_lock = threading.Lock()

    @classmethod
    def from_config(cls, config, db=None):
        """Wire rule catalog, telemetry, channels and router from a config dict."""
        from alerts.channels import build_channels
        from alerts.router import NotificationRouter
        from alerts.rules_manager import RulesManager
        from telemetry.sources import build_source

        rules = RulesManager(config["rules"]["path"])
        router = NotificationRouter.from_config(config, build_channels(config))
        return cls(
            rules,
            build_source(config),
            router=router,
            repository=db,
            evaluation_workers=config["engine"].get("evaluation_workers", 1),
        )

    def run_cycle(self):
        """Run one evaluation pass and return the alerts it created.

        Cycles are serialized. Telemetry failures abort the cycle and
        propagate; everything else degrades per item. An alert the store
        fails to save is skipped and its dedup keys are released so the
        next cycle raises it again.
        """
        with self._cycle_lock:
            started = time.monotonic()
            rules = tuple(self.rules_source.get_current_rules())
            rules_by_id = {r.id: r for r in rules}

            try:
                samples = self.telemetry.pull_metric_samples()
            except TelemetryError:
                raise
            except Exception as e:
                raise TelemetryError(f"Telemetry source failed: {e}") from e

            candidates = self._evaluate(samples, rules)
            candidates.sort(key=lambda c: c.sort_key)
            accepted = self.deduplicator.filter(candidates, rules_by_id)
            drafts = self.aggregator.aggregate(accepted, rules_by_id)

            created, failed = self._create_alerts(drafts, accepted)
            dispatched = self._dispatch(created, rules_by_id)
            self._save_dedup_state()

            self.last_cycle = {
                "samples": len(samples),
                "rules": len(rules),
                "candidates": len(candidates),
                "accepted": len(accepted),
                "alerts": len(created),
                "failed": failed,
                "dispatches": dispatched,
                "duration_ms": int((time.monotonic() - started) * 1000),
            }
            logger.info(
                f"Cycle: {len(samples)} samples x {len(rules)} rules -> "
                f"{len(candidates)} candidates, {len(accepted)} after dedup, "
                f"{len(created)} alerts"
                + (f", {failed} not saved" if failed else "")
            )
            return created

    def _create_alerts(self, drafts, accepted):
        by_id = {c.id: c for c in accepted}
        created = []
        failed = 0
        for draft in drafts:
            try:
                created.append(self.store.create(draft))
            except StorageError as e:
                failed += 1
                if draft.is_aggregated:
                    keys = [by_id[m].dedup_key for m in draft.member_ids if m in by_id]
                else:
                    keys = [(draft.rule_id, draft.device_id, draft.metric)]
                self.deduplicator.forget(keys)
                logger.error(f"Skipping alert for rule {draft.rule_id} on {draft.affected}: {e}")
        return created, failed

    def _evaluate(self, samples, rules):
        if self.evaluation_workers == 1 or len(samples) < 2:
            return self.evaluator.evaluate_batch(samples, rules)
        # map() keeps sample order, so results match the sequential path
        with ThreadPoolExecutor(max_workers=self.evaluation_workers) as executor:
            per_sample = executor.map(lambda s: self.evaluator.evaluate_sample(s, rules), samples)
            return [c for batch in per_sample for c in batch]

    def _dispatch(self, alerts, rules_by_id):
        if self.router is None:
            return 0
        count = 0
        for alert in alerts:
            rule = rules_by_id.get(alert.rule_id)
            if rule is None:
                continue
            count += len(self.router.dispatch(alert, rule))
        return count

    def _save_dedup_state(self):
        if self.repository is None:
            return
        try:
            self.repository.save_dedup_state(self.deduplicator.export_state())
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"Failed to persist dedup state: {e}")

    # --- Lifecycle API ---

    def acknowledge(self, alert_id, actor):
        return self.store.acknowledge(alert_id, actor)

    def resolve(self, alert_id, actor):
        return self.store.resolve(alert_id, actor)

    def get_alert(self, alert_id):
        return self.store.get(alert_id)

    def list_alerts(self, alert_filter=None, **filters):
        if alert_filter is None:
            alert_filter = AlertFilter(**filters)
        return self.store.list(alert_filter)

    def alert_counters(self, alert_filter=None):
        return self.store.counters(alert_filter)

    def reload_rules(self):
        return self.rules_source.reload()

    def shutdown(self, wait=False):
        if self.router is not None:
            self.router.shutdown(wait=wait)
