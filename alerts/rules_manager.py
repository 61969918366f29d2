"""Alert rule catalog: YAML loading, validation and atomic reload."""
import logging
import threading
import yaml
from pathlib import Path

from alerts.errors import ValidationError
from alerts.evaluator import OPERATOR_MAP, ORDERED_OPERATORS
from models.alerts import AlertRule, ThresholdCondition, EventCondition
from models.enums import Severity, Aggregation

logger = logging.getLogger("netalert.alerts.rules")


def parse_rule(raw):
    """Build an AlertRule from a raw mapping. Raises ValidationError."""
    if not isinstance(raw, dict):
        raise ValidationError(f"Rule must be a mapping, got {type(raw).__name__}")
    rule_id = raw.get("id")
    if not rule_id:
        raise ValidationError("Rule is missing an id")

    cond = raw.get("condition") or {}
    if "event" in cond:
        if not isinstance(cond["event"], str) or not cond["event"]:
            raise ValidationError(f"Rule {rule_id}: event name must be a non-empty string", rule_id)
        condition = EventCondition(event=cond["event"])
    elif "metric" in cond:
        operator = cond.get("operator")
        if operator not in OPERATOR_MAP:
            raise ValidationError(f"Rule {rule_id}: invalid operator {operator!r}", rule_id)
        threshold = cond["threshold"] if "threshold" in cond else cond.get("value")
        if threshold is None:
            raise ValidationError(f"Rule {rule_id}: threshold/value missing", rule_id)
        if operator in ORDERED_OPERATORS:
            try:
                threshold = float(threshold)
            except (TypeError, ValueError):
                raise ValidationError(f"Rule {rule_id}: {operator} needs a numeric threshold", rule_id)
        condition = ThresholdCondition(metric=cond["metric"], operator=operator, threshold=threshold)
    else:
        raise ValidationError(f"Rule {rule_id}: condition needs 'metric' or 'event'", rule_id)

    try:
        severity = Severity(str(raw.get("severity", "info")).lower())
        aggregation = Aggregation(str(raw.get("aggregation", "none")).lower())
    except ValueError as e:
        raise ValidationError(f"Rule {rule_id}: {e}", rule_id)

    window = raw.get("deduplication_window_seconds", raw.get("deduplication_window", 300))
    if isinstance(window, bool) or not isinstance(window, int) or window < 0:
        raise ValidationError(f"Rule {rule_id}: dedup window must be a non-negative integer", rule_id)

    enabled = raw.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ValidationError(f"Rule {rule_id}: enabled must be true or false, got {enabled!r}", rule_id)

    targets = raw.get("targets", raw.get("target", []))
    if isinstance(targets, str):
        targets = [targets]
    # ordered set
    targets = tuple(dict.fromkeys(targets))

    return AlertRule(
        id=rule_id,
        name=raw.get("name", rule_id),
        description=raw.get("description", ""),
        condition=condition,
        severity=severity,
        deduplication_window_seconds=window,
        aggregation=aggregation,
        targets=targets,
        enabled=enabled,
    )


class RulesManager:
    """Rule catalog backed by a YAML file. Invalid rules are skipped with a warning."""

    def __init__(self, rules_path="config/alert_rules.yaml"):
        self.rules_path = Path(rules_path)
        self.rules = ()
        self.errors = []
        self._lock = threading.Lock()
        self.load()

    def load(self):
        if not self.rules_path.exists():
            logger.warning(f"Alert rules file not found: {self.rules_path}")
            return
        with open(self.rules_path) as f:
            data = yaml.safe_load(f) or {}
        self.load_data(data.get("rules", []))

    def load_data(self, raw_rules):
        """Parse raw rules and swap the catalog in one step."""
        rules, errors, seen = [], [], set()
        for raw in raw_rules:
            try:
                rule = parse_rule(raw)
            except ValidationError as e:
                logger.warning(f"Skipping invalid rule: {e}")
                errors.append(str(e))
                continue
            if rule.id in seen:
                logger.warning(f"Duplicate rule id {rule.id}, keeping the first")
                errors.append(f"Duplicate rule id {rule.id}")
                continue
            seen.add(rule.id)
            rules.append(rule)

        with self._lock:
            self.rules = tuple(rules)
            self.errors = errors
        logger.info(f"Loaded {len(rules)} rules ({len(errors)} rejected)")

    def reload(self):
        self.load()
        return self.rules

    def get_current_rules(self):
        """Snapshot of the catalog for one evaluation cycle."""
        with self._lock:
            return self.rules

    def get_enabled_rules(self):
        return [r for r in self.get_current_rules() if r.enabled]

    def get_rule(self, rule_id):
        for r in self.get_current_rules():
            if r.id == rule_id:
                return r
        return None

    def get_all_rules(self):
        return list(self.get_current_rules())
