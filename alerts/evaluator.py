"""Condition evaluation: (sample, rule) -> alert candidates."""
import logging

from alerts.errors import ValidationError
from models.alerts import AlertCandidate, EventCondition, ThresholdCondition

logger = logging.getLogger("netalert.alerts.evaluator")


def _as_number(value):
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _ordered(compare):
    def check(value, threshold):
        v, t = _as_number(value), _as_number(threshold)
        if v is None or t is None:
            return False
        return compare(v, t)
    return check


def _loose_equal(value, threshold):
    v, t = _as_number(value), _as_number(threshold)
    if v is not None and t is not None and not isinstance(value, str) and not isinstance(threshold, str):
        return v == t
    return value == threshold


def _value_type(value):
    # int and float are one number type; bool stays its own
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float
    return type(value)


def _strict_equal(value, threshold):
    return _value_type(value) is _value_type(threshold) and value == threshold


OPERATOR_MAP = {
    ">": _ordered(lambda v, t: v > t),
    "<": _ordered(lambda v, t: v < t),
    ">=": _ordered(lambda v, t: v >= t),
    "<=": _ordered(lambda v, t: v <= t),
    "==": _loose_equal,
    "===": _strict_equal,
    "!=": lambda v, t: not _loose_equal(v, t),
}

ORDERED_OPERATORS = {">", "<", ">=", "<="}


def check_condition(value, operator, threshold):
    func = OPERATOR_MAP.get(operator)
    if func is None:
        raise ValidationError(f"Unknown operator: {operator}")
    return func(value, threshold)


class ConditionEvaluator:
    """Pure evaluator. Holds no state between calls."""

    def evaluate(self, sample, rule):
        """Return the candidates produced by one rule against one sample."""
        if isinstance(rule.condition, ThresholdCondition):
            return self._evaluate_threshold(sample, rule)
        if isinstance(rule.condition, EventCondition):
            return self._evaluate_event(sample, rule)
        raise ValidationError(f"Rule {rule.id} has no usable condition", item_id=rule.id)

    def evaluate_batch(self, samples, rules):
        """Cross product of samples x enabled rules. Bad pairs are logged and skipped."""
        candidates = []
        for sample in samples:
            candidates.extend(self.evaluate_sample(sample, rules))
        return candidates

    def evaluate_sample(self, sample, rules):
        candidates = []
        for rule in rules:
            if not rule.enabled:
                continue
            try:
                candidates.extend(self.evaluate(sample, rule))
            except ValidationError as e:
                logger.warning(f"Skipping rule {rule.id} for device {sample.device_id}: {e}")
        return candidates

    def _evaluate_threshold(self, sample, rule):
        cond = rule.condition
        if cond.metric not in sample.metrics:
            return []
        observed = sample.metrics[cond.metric]

        if isinstance(observed, dict):
            matches = []
            for if_key, if_value in observed.items():
                self._check_scalar(if_value, sample, rule)
                if check_condition(if_value, cond.operator, cond.threshold):
                    matches.append(self._candidate(sample, rule, f"{cond.metric}.{if_key}", if_value,
                                                   interface=str(if_key)))
            return matches

        self._check_scalar(observed, sample, rule)
        if check_condition(observed, cond.operator, cond.threshold):
            return [self._candidate(sample, rule, cond.metric, observed)]
        return []

    def _evaluate_event(self, sample, rule):
        signal = sample.events.get(rule.condition.event)
        if signal is None:
            return []
        if not isinstance(signal, bool):
            raise ValidationError(
                f"Event {rule.condition.event} on {sample.device_id} is not boolean: {signal!r}",
                item_id=sample.device_id,
            )
        if not signal:
            return []
        return [self._candidate(sample, rule, rule.condition.event, True, threshold=None)]

    @staticmethod
    def _check_scalar(value, sample, rule):
        if isinstance(value, (dict, list, tuple, set)):
            raise ValidationError(
                f"Metric {rule.condition.metric} on {sample.device_id} has nested value {value!r}",
                item_id=sample.device_id,
            )

    @staticmethod
    def _candidate(sample, rule, metric, value, threshold=..., interface=None):
        if threshold is ...:
            threshold = rule.condition.threshold
        return AlertCandidate(
            rule_id=rule.id,
            rule_name=rule.name,
            device_id=sample.device_id,
            provider_id=sample.provider_id,
            customer_id=sample.customer_id,
            pop_id=sample.pop_id,
            interface=interface,
            metric=metric,
            value=value,
            threshold=threshold,
            severity=rule.severity,
            timestamp=sample.timestamp,
        )
