"""Notification routing: rule targets -> channels -> fire-and-forget dispatch."""
import logging
from concurrent.futures import ThreadPoolExecutor

from alerts.errors import DispatchError
from utils.formatters import format_alert_message

logger = logging.getLogger("netalert.alerts.router")


class NotificationRouter:
    """Resolves each rule target to a (channel, recipient) and sends on a worker pool.

    The target map comes from config, e.g.::

        noc-team: {channel: push}
        provider-admin: {channel: email, recipient: admin@provider.com}

    Delivery is at-most-once: no retries, and one message per distinct
    (channel, recipient) per alert. A failing target never affects the others.
    """

    def __init__(self, channels, targets, fallback_channel=None, max_workers=4):
        self.channels = dict(channels)
        self.targets = dict(targets)
        self.fallback_channel = fallback_channel
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="dispatch")

    @classmethod
    def from_config(cls, config, channels):
        notif_cfg = config.get("notifications", {})
        return cls(
            channels,
            notif_cfg.get("targets", {}),
            fallback_channel=notif_cfg.get("fallback_channel"),
            max_workers=notif_cfg.get("dispatch_workers", 4),
        )

    def resolve(self, target):
        """Map a target id to (channel_name, channel, recipient). Raises DispatchError."""
        spec = self.targets.get(target)
        if spec is None:
            raise DispatchError(f"No channel configured for target {target}", target=target)

        name = spec.get("channel")
        channel = self.channels.get(name)
        if channel is None and self.fallback_channel:
            logger.debug(f"Channel {name} unavailable for {target}, using {self.fallback_channel}")
            name = self.fallback_channel
            channel = self.channels.get(name)
        if channel is None:
            raise DispatchError(f"Channel {spec.get('channel')} not available for target {target}",
                                target=target, channel=spec.get("channel"))
        return name, channel, spec.get("recipient")

    def dispatch(self, alert, rule):
        """Queue one send per resolved target. Returns the futures; never blocks."""
        message = format_alert_message(alert)
        futures = []
        seen = set()
        for target in rule.targets:
            try:
                name, channel, recipient = self.resolve(target)
            except DispatchError as e:
                logger.warning(str(e))
                continue
            if (name, recipient) in seen:
                continue
            seen.add((name, recipient))
            futures.append(self._executor.submit(self._send, target, name, channel, alert, message, recipient))
        return futures

    def _send(self, target, name, channel, alert, message, recipient):
        try:
            channel.send(alert, message, recipient=recipient)
        except DispatchError as e:
            logger.warning(f"Dispatch to {target} via {name} failed for {alert.id}: {e}")
            return False
        except Exception as e:
            logger.warning(f"Channel {name} error for {target} ({alert.id}): {e}")
            return False
        logger.debug(f"Notified {target} via {name}: {message}")
        return True

    def shutdown(self, wait=False):
        self._executor.shutdown(wait=wait)
