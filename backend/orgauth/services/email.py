from __future__ import annotations

import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from orgauth.core.config import Settings, settings
from orgauth.core.logging import get_logger

logger = get_logger(__name__)


class EmailTransport(Protocol):
    def send(self, to: str, subject: str, text: str, html: str) -> bool:
        ...


def _redact(address: str) -> str:
    if "@" not in address:
        return "redacted"
    local, domain = address.split("@", 1)
    return f"{local[:2]}***@{domain}"


class LogOnlyEmailTransport:
    """Used when SMTP is not configured: the message is logged, not delivered."""

    def send(self, to: str, subject: str, text: str, html: str) -> bool:
        logger.info("email_dev_mode", recipient=_redact(to), subject=subject)
        return True


class SmtpEmailTransport:
    def __init__(
        self,
        *,
        host: str,
        port: int = 587,
        user: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        from_email: str | None = None,
        from_name: str = "OrgAuth",
        timeout: int = 30,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email or user
        self.from_name = from_name
        self.timeout = timeout

    def send(self, to: str, subject: str, text: str, html: str) -> bool:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))

        context = ssl.create_default_context()
        try:
            if self.use_tls:
                with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                    server.starttls(context=context)
                    if self.user and self.password:
                        server.login(self.user, self.password)
                    server.sendmail(self.from_email, to, msg.as_string())
            else:
                with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout) as server:
                    if self.user and self.password:
                        server.login(self.user, self.password)
                    server.sendmail(self.from_email, to, msg.as_string())
        except (smtplib.SMTPException, ssl.SSLError, OSError) as exc:
            logger.error(
                "email_send_failed",
                recipient=_redact(to),
                host=self.host,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return False

        logger.info("email_sent", recipient=_redact(to), subject=subject)
        return True


def build_transport(cfg: Settings = settings) -> EmailTransport:
    if cfg.SMTP_HOST and (cfg.EMAIL_FROM or cfg.SMTP_USER):
        return SmtpEmailTransport(
            host=cfg.SMTP_HOST,
            port=cfg.SMTP_PORT,
            user=cfg.SMTP_USER,
            password=cfg.SMTP_PASSWORD,
            use_tls=cfg.SMTP_USE_TLS,
            from_email=cfg.EMAIL_FROM,
            from_name=cfg.EMAIL_FROM_NAME,
        )
    return LogOnlyEmailTransport()
