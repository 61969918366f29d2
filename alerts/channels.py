"""Alert notification channels."""
import json
import logging
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from alerts.errors import DispatchError
from models.enums import ChannelType

logger = logging.getLogger("netalert.alerts.channels")


@runtime_checkable
class AlertChannel(Protocol):
    def send(self, alert, message, recipient=None) -> None: ...


def _severity(alert):
    return alert.severity.value if hasattr(alert.severity, "value") else str(alert.severity)


class ConsoleChannel:
    """Print alerts to terminal with rich formatting."""

    severity_styles = {
        "critical": "bold white on red",
        "warning": "bold yellow",
        "info": "bold blue",
    }

    def __init__(self, console=None):
        from rich.console import Console
        self.console = console or Console()

    def send(self, alert, message, recipient=None):
        style = self.severity_styles.get(_severity(alert), "")
        prefix = f"→ {recipient}: " if recipient else ""
        self.console.print(f"[{style}]{prefix}{message}[/]")


class FileChannel:
    """Append alerts to a JSON lines log file."""

    def __init__(self, log_path="data/alerts.jsonl"):
        self.log_path = log_path

    def send(self, alert, message, recipient=None):
        entry = {
            "sent_at": datetime.now(timezone.utc).isoformat(),
            "alert_id": alert.id,
            "rule_id": alert.rule_id,
            "severity": _severity(alert),
            "device_id": alert.device_id,
            "recipient": recipient,
            "message": message,
        }
        try:
            with open(self.log_path, "a") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            raise DispatchError(f"Failed to write alert to {self.log_path}: {e}") from e


class PushChannel:
    """Web push via an HTTP push gateway."""

    def __init__(self, gateway):
        self.gateway = gateway

    def send(self, alert, message, recipient=None):
        self.gateway.post({
            "topic": recipient,
            "title": f"[{_severity(alert).upper()}] {alert.title}",
            "body": message,
            "tag": alert.rule_id,
            "alert_id": alert.id,
            "severity": _severity(alert),
        })


class SmsChannel:
    """SMS via an HTTP SMS gateway. Messages are cut to a single 160-char segment."""

    max_length = 160

    def __init__(self, gateway, default_to=""):
        self.gateway = gateway
        self.default_to = default_to

    def send(self, alert, message, recipient=None):
        to = recipient or self.default_to
        if not to:
            raise DispatchError("SMS recipient missing", channel=ChannelType.SMS.value)
        self.gateway.post({"to": to, "text": message[:self.max_length]})


class WebhookChannel:
    """POST the full alert record to a webhook URL.

    A recipient that looks like a URL overrides the configured endpoint.
    """

    def __init__(self, gateway):
        self.gateway = gateway

    def send(self, alert, message, recipient=None):
        url = recipient if recipient and recipient.startswith(("http://", "https://")) else None
        payload = alert.to_dict()
        payload["message"] = message
        self.gateway.post(payload, url=url)


class EmailChannel:
    """Email channel backed by the SMTP sender."""

    def __init__(self, sender):
        self.sender = sender

    def send(self, alert, message, recipient=None):
        ok = self.sender.send_alert(
            severity=_severity(alert),
            title=alert.title,
            message=message,
            description=alert.description,
            to_address=recipient,
        )
        if not ok:
            raise DispatchError(f"Email to {recipient or self.sender.default_to} failed",
                                channel=ChannelType.EMAIL.value)


def build_channels(config):
    """Create every channel the config enables, keyed by channel type."""
    from notifications.http_gateway import HTTPGateway
    from notifications.email_sender import EmailSender

    notif_cfg = config.get("notifications", {})
    timeout = notif_cfg.get("timeout_seconds", 10)
    chan_cfg = notif_cfg.get("channels", {})

    channels = {ChannelType.CONSOLE.value: ConsoleChannel()}

    file_cfg = chan_cfg.get("file", {})
    if file_cfg.get("path"):
        channels[ChannelType.FILE.value] = FileChannel(file_cfg["path"])

    push_cfg = chan_cfg.get("push", {})
    if push_cfg.get("url"):
        headers = {"Authorization": f"Bearer {push_cfg['api_key']}"} if push_cfg.get("api_key") else None
        channels[ChannelType.PUSH.value] = PushChannel(
            HTTPGateway(push_cfg["url"], timeout=timeout, headers=headers, name="push"))

    sms_cfg = chan_cfg.get("sms", {})
    if sms_cfg.get("url"):
        headers = {"Authorization": f"Bearer {sms_cfg['api_key']}"} if sms_cfg.get("api_key") else None
        channels[ChannelType.SMS.value] = SmsChannel(
            HTTPGateway(sms_cfg["url"], timeout=timeout, headers=headers, name="sms"),
            default_to=sms_cfg.get("default_to", ""))

    hook_cfg = chan_cfg.get("webhook", {})
    if hook_cfg.get("enabled", bool(hook_cfg.get("url"))):
        channels[ChannelType.WEBHOOK.value] = WebhookChannel(
            HTTPGateway(hook_cfg.get("url", ""), timeout=timeout, name="webhook"))

    sender = EmailSender(config, timeout=timeout)
    if sender.is_configured():
        channels[ChannelType.EMAIL.value] = EmailChannel(sender)

    logger.info(f"Channels available: {', '.join(sorted(channels))}")
    return channels
