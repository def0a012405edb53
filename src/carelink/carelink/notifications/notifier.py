from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send(self, *, to: str, subject: str, html: str) -> None:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Writes outgoing mail to the log instead of delivering it."""

    def send(self, *, to: str, subject: str, html: str) -> None:
        logger.info("Email to %s: %s", to, subject)


@dataclass(frozen=True)
class SmtpSettings:
    host: str
    port: int = 587
    user: str = ""
    password: str = ""
    sender: str = ""
    use_tls: bool = True


class SmtpNotifier(Notifier):
    def __init__(self, settings: SmtpSettings):
        self._settings = settings

    def send(self, *, to: str, subject: str, html: str) -> None:
        s = self._settings
        msg = EmailMessage()
        msg["From"] = f"CareLink Support <{s.sender or s.user}>"
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html, subtype="html")

        with smtplib.SMTP(s.host, int(s.port), timeout=15) as smtp:
            if s.use_tls:
                smtp.starttls()
            if s.user:
                smtp.login(s.user, s.password)
            smtp.send_message(msg)
        logger.info("Email sent to %s", to)
