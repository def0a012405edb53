from __future__ import annotations

import logging

from src.carelink.carelink.container import build_notifier
from src.carelink.carelink.notifications import notifier as notifier_module
from src.carelink.carelink.notifications.notifier import LoggingNotifier, SmtpNotifier, SmtpSettings


class FakeSMTP:
    instances: list["FakeSMTP"] = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.calls: list[tuple] = []
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.calls.append(("starttls",))

    def login(self, user, password):
        self.calls.append(("login", user, password))

    def send_message(self, msg):
        self.messages.append(msg)


def test_build_notifier_defaults_to_logging():
    assert isinstance(build_notifier("log"), LoggingNotifier)
    assert isinstance(build_notifier(None), LoggingNotifier)


def test_build_notifier_smtp_reads_config():
    n = build_notifier("SMTP", {"host": "mail.local", "port": "2525", "sender": "noreply@carelink.test"})
    assert isinstance(n, SmtpNotifier)


def test_logging_notifier_logs_recipient_and_subject(caplog):
    with caplog.at_level(logging.INFO):
        LoggingNotifier().send(to="terry@example.com", subject="New Shift Assigned", html="<p>x</p>")
    assert "terry@example.com" in caplog.text
    assert "New Shift Assigned" in caplog.text


def test_smtp_notifier_sends_html_message(monkeypatch):
    FakeSMTP.instances.clear()
    monkeypatch.setattr(notifier_module.smtplib, "SMTP", FakeSMTP)
    n = SmtpNotifier(SmtpSettings(host="mail.local", port=2525, user="bot", password="pw", sender="noreply@carelink.test"))

    n.send(to="pat@example.com", subject="Your Shift Request Has Been Approved", html="<p>Hello</p>")

    smtp = FakeSMTP.instances[0]
    assert (smtp.host, smtp.port) == ("mail.local", 2525)
    assert smtp.calls == [("starttls",), ("login", "bot", "pw")]
    msg = smtp.messages[0]
    assert msg["To"] == "pat@example.com"
    assert msg["From"] == "CareLink Support <noreply@carelink.test>"
    assert msg.get_body(preferencelist=("html",)).get_content().strip() == "<p>Hello</p>"


def test_smtp_notifier_without_tls_or_login(monkeypatch):
    FakeSMTP.instances.clear()
    monkeypatch.setattr(notifier_module.smtplib, "SMTP", FakeSMTP)
    SmtpNotifier(SmtpSettings(host="relay", use_tls=False)).send(to="a@b.c", subject="s", html="<b>h</b>")
    assert FakeSMTP.instances[0].calls == []
