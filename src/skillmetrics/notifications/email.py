"""SMTP email delivery for notifications.

Configuration (``SMTP_CONFIG`` in settings):
    host: SMTP server hostname; email is disabled when empty
    port: SMTP server port (default: 587)
    username / password: optional authentication
    use_tls: issue STARTTLS after connecting (default: True)
    from_email: sender address
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from html import escape
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    def is_configured(self) -> bool:
        raise NotImplementedError

    def send(self, *, to_email: str, subject: str, body: str) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class SmtpSettings:
    host: Optional[str]
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True
    from_email: str = "noreply@skillmetrics.local"
    from_name: str = "Skill Metrics"
    base_url: str = ""
    timeout: float = 10.0

    @classmethod
    def from_config(cls, config: Optional[dict]) -> "SmtpSettings":
        config = dict(config or {})
        return cls(
            host=config.get("host") or None,
            port=int(config.get("port", 587)),
            username=config.get("username") or None,
            password=config.get("password") or None,
            use_tls=bool(config.get("use_tls", True)),
            from_email=config.get("from_email") or cls.from_email,
            from_name=config.get("from_name") or cls.from_name,
            base_url=(config.get("base_url") or "").rstrip("/"),
            timeout=float(config.get("timeout", 10.0)),
        )


class SmtpEmailSender(EmailSender):
    """Sends plain-text + HTML email through any SMTP server."""

    def __init__(self, settings: SmtpSettings):
        self._settings = settings

    @property
    def base_url(self) -> str:
        return self._settings.base_url

    def is_configured(self) -> bool:
        return bool(self._settings.host)

    def _build(self, *, to_email: str, subject: str, body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((self._settings.from_name, self._settings.from_email))
        msg["To"] = to_email
        msg.attach(MIMEText(body, "plain", "utf-8"))
        html_body = "<br>".join(escape(line) for line in body.splitlines())
        msg.attach(MIMEText(f"<html><body><p>{html_body}</p></body></html>", "html", "utf-8"))
        return msg

    def send(self, *, to_email: str, subject: str, body: str) -> None:
        if not self.is_configured():
            raise RuntimeError("SMTP not configured (missing host)")

        msg = self._build(to_email=to_email, subject=subject, body=body)
        s = self._settings
        with smtplib.SMTP(s.host, s.port, timeout=s.timeout) as server:
            if s.use_tls:
                server.starttls(context=ssl.create_default_context())
            if s.username and s.password:
                server.login(s.username, s.password)
            server.sendmail(s.from_email, [to_email], msg.as_string())
        logger.debug("Email sent to %s: %s", to_email, subject)
