"""
SMTP transport for the email channel.

One alert per message, HTML body with a plaintext part. Credentials come
from NETALERT_SMTP_USER / NETALERT_SMTP_PASS when set, else from the
``email`` config section.
"""
import os
import ssl
import smtplib
import logging
from contextlib import contextmanager
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate

logger = logging.getLogger("netalert.notifications.email_sender")

SEVERITY_COLORS = {"critical": "#FF1744", "warning": "#FFC107", "info": "#2196F3"}

ALERT_HTML = """
<div style="font-family: system-ui, sans-serif; max-width: 520px; margin: 0 auto; padding: 20px;">
  <div style="background: #F0F1F6; padding: 16px; border-radius: 8px; border-left: 4px solid {color};">
    <h3 style="margin-top: 0; color: {color};">{label}: {title}</h3>
    <p>{description}</p>
  </div>
  <p style="color: #636E72; font-size: 12px;">NetAlert network monitoring</p>
</div>
"""


class EmailSender:
    def __init__(self, config: dict, timeout: float = 10):
        cfg = config.get("email", {})
        self.smtp_host = cfg.get("smtp_host", "")
        self.smtp_port = cfg.get("smtp_port", 587)
        self.use_tls = cfg.get("use_tls", True)
        self.from_address = cfg.get("from_address", "")
        self.from_name = cfg.get("from_name", "NetAlert")
        self.default_to = cfg.get("to_address", "")
        self.timeout = timeout
        self.username = os.environ.get("NETALERT_SMTP_USER") or cfg.get("smtp_username", "")
        self.password = os.environ.get("NETALERT_SMTP_PASS") or cfg.get("smtp_password", "")

    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_address and self.username and self.password)

    def build_alert_message(self, to_address: str, severity: str, title: str,
                            message: str, description: str = "") -> MIMEMultipart:
        label = severity.upper()
        html = ALERT_HTML.format(
            color=SEVERITY_COLORS.get(severity.lower(), SEVERITY_COLORS["info"]),
            label=label, title=title, description=description or message,
        )
        msg = MIMEMultipart("alternative")
        msg["Subject"] = f"[{label}] {title}"
        msg["From"] = formataddr((self.from_name, self.from_address))
        msg["To"] = to_address
        msg["Date"] = formatdate(localtime=True)
        msg.attach(MIMEText(f"{message}\n{description}".strip(), "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def send_alert(self, severity: str, title: str, message: str,
                   description: str = "", to_address: str = None) -> bool:
        """Send one alert email. Returns False when skipped or when SMTP fails."""
        if not self.is_configured():
            logger.warning("Email not configured - skipping alert send")
            return False
        recipient = to_address or self.default_to
        if not recipient:
            logger.warning(f"No email recipient for '{title}'")
            return False

        msg = self.build_alert_message(recipient, severity, title, message, description)
        try:
            with self._session() as server:
                server.send_message(msg)
        except smtplib.SMTPAuthenticationError:
            logger.error("SMTP authentication failed. Check username/password.")
            return False
        except smtplib.SMTPRecipientsRefused:
            logger.error(f"Recipient refused: {recipient}")
            return False
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email to {recipient} failed: {e}")
            return False
        logger.info(f"Email sent to {recipient}: {msg['Subject']}")
        return True

    def test_connection(self) -> dict:
        """Log in without sending anything."""
        try:
            with self._session():
                pass
        except smtplib.SMTPAuthenticationError as e:
            return {"status": "error", "message": f"Authentication failed: {e}"}
        except (smtplib.SMTPException, OSError) as e:
            return {"status": "error", "message": str(e)}
        return {"status": "ok", "message": f"Connected to {self.smtp_host}:{self.smtp_port}"}

    @contextmanager
    def _session(self):
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
            server.ehlo()
            if self.use_tls:
                server.starttls(context=ssl.create_default_context())
                server.ehlo()
            server.login(self.username, self.password)
            yield server
