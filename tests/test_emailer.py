from __future__ import annotations

import smtplib

import pytest

from price_tracker import config, emailer


class FakeSMTP:
    sent = []
    fail = False

    def __init__(self, host, port, timeout=None, **kwargs):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        pass

    def starttls(self, context=None):
        pass

    def login(self, user, password):
        if FakeSMTP.fail:
            raise smtplib.SMTPAuthenticationError(535, b"bad credentials")

    def send_message(self, msg):
        FakeSMTP.sent.append(msg)


@pytest.fixture()
def smtp(monkeypatch):
    FakeSMTP.sent = []
    FakeSMTP.fail = False
    monkeypatch.setattr(emailer.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(emailer.smtplib, "SMTP_SSL", FakeSMTP)
    monkeypatch.setattr(config, "EMAIL_ENABLED", True)
    monkeypatch.setattr(config, "EMAIL_SMTP_PORT", 587)
    monkeypatch.setattr(config, "EMAIL_USE_TLS", True)
    monkeypatch.setattr(config, "EMAIL_USERNAME", "tracker@example.com")
    monkeypatch.setattr(config, "EMAIL_PASSWORD", "secret")
    monkeypatch.setattr(config, "EMAIL_FROM", None)
    monkeypatch.setattr(config, "EMAIL_TO", ["me@example.com"])
    monkeypatch.setattr(config, "EMAIL_SUBJECT_PREFIX", "[Tracker]")
    return FakeSMTP


def test_send_email(smtp) -> None:
    assert emailer.send_email("Daily", "body text") is True

    msg = smtp.sent[0]
    assert msg["Subject"] == "[Tracker] Daily"
    assert msg["From"] == "tracker@example.com"
    assert msg["To"] == "me@example.com"
    assert msg.get_content().strip() == "body text"


def test_send_test_email_overrides_recipients(smtp) -> None:
    assert emailer.send_test_email("other@example.com") is True
    assert smtp.sent[0]["To"] == "other@example.com"


def test_smtp_failure_is_logged_not_raised(smtp, caplog) -> None:
    smtp.fail = True
    assert emailer.send_email("Daily", "body") is False
    assert "Failed to send email" in caplog.text


def test_disabled_email_sends_nothing(smtp, monkeypatch) -> None:
    monkeypatch.setattr(config, "EMAIL_ENABLED", False)
    assert emailer.send_email("Daily", "body") is False
    assert smtp.sent == []
