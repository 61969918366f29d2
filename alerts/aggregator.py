"""Collapses same-rule candidates across devices into aggregated alert drafts."""
import logging

from models.alerts import Alert
from models.enums import Aggregation
from utils.formatters import format_value, pluralize

logger = logging.getLogger("netalert.alerts.aggregator")


class Aggregator:
    """Groups candidates by rule id. Groups of two or more become one alert.

    Output drafts have no id or status yet; the lifecycle store assigns those.
    """

    def aggregate(self, candidates, rules_by_id):
        groups = {}
        for candidate in candidates:
            groups.setdefault(candidate.rule_id, []).append(candidate)

        drafts = []
        for rule_id, group in groups.items():
            rule = rules_by_id.get(rule_id)
            mode = rule.aggregation if rule else Aggregation.NONE

            if len(group) == 1 or mode == Aggregation.NONE:
                drafts.extend(self._standalone(c, rule) for c in group)
                continue

            drafts.append(self._aggregated(group, rule))
            logger.info(f"Aggregated {len(group)} candidates for rule {rule_id}")
        return drafts

    @staticmethod
    def _describe(candidate, rule):
        base = rule.description if rule and rule.description else candidate.rule_name
        return (f"{base} on device {candidate.device_id} "
                f"(metric: {candidate.metric}, value: {format_value(candidate.value)})")

    def _standalone(self, candidate, rule):
        return Alert.from_candidate(
            candidate,
            title=f"{candidate.rule_name} - {candidate.device_id}",
            description=self._describe(candidate, rule),
        )

    def _aggregated(self, group, rule):
        first = group[0]
        n = len(group)
        devices = []
        for c in group:
            if c.device_id not in devices:
                devices.append(c.device_id)

        aggregate_value = None
        if rule.aggregation == Aggregation.AVERAGE:
            numbers = [c.value for c in group
                       if isinstance(c.value, (int, float)) and not isinstance(c.value, bool)]
            if numbers:
                aggregate_value = sum(numbers) / len(numbers)

        return Alert.from_candidate(
            first,
            title=f"{first.rule_name} - {pluralize(len(devices), 'device')} affected",
            description=f"{self._describe(first, rule)} and {n - 1} other occurrences",
            is_aggregated=True,
            count=n,
            member_ids=[c.id for c in group],
            member_devices=devices,
            aggregate_value=aggregate_value,
        )
