"""Tests for the email notification client.

pytest-django swaps the mail backend for the in-memory one, so configured
sends land in ``mail.outbox``.
"""

import logging
import smtplib

import pytest
from django.core import mail

from apps.orders import notifications
from apps.orders.notifications import SUBJECTS, EmailNotifier, NotificationKind
from apps.orders.settings_store import SettingsStore

COMPLETE_DATA = {
    "order_id": 7,
    "topic": "solar panels",
    "content_preview": "Solar panels convert sunlight...",
    "view_url": "http://testserver/order/7",
}


@pytest.fixture
def configured_email(db):
    SettingsStore().update_section(
        "email",
        {"smtp_host": "smtp.local", "smtp_port": 587, "smtp_user": "mailer", "smtp_password": "pw", "sender_email": "orders@contentcraft.com"},
    )


@pytest.mark.django_db
def test_unconfigured_transport_is_a_logged_noop(caplog):
    with caplog.at_level(logging.INFO, logger="orders"):
        EmailNotifier().notify("a@b.com", NotificationKind.GENERATION_COMPLETE, COMPLETE_DATA)
    assert mail.outbox == []
    assert any("notification skipped" in r.getMessage() for r in caplog.records)


def test_sends_html_and_text(configured_email):
    EmailNotifier().notify("a@b.com", NotificationKind.GENERATION_COMPLETE, COMPLETE_DATA)

    assert len(mail.outbox) == 1
    msg = mail.outbox[0]
    assert msg.subject == SUBJECTS[NotificationKind.GENERATION_COMPLETE] == "Your content is ready"
    assert msg.to == ["a@b.com"]
    assert msg.from_email == "orders@contentcraft.com"
    html, mimetype = msg.alternatives[0]
    assert mimetype == "text/html"
    assert 'href="http://testserver/order/7"' in html
    assert "Solar panels convert sunlight..." in msg.body
    assert "<p>" not in msg.body


@pytest.mark.parametrize(
    "kind,data,expected",
    [
        (NotificationKind.ORDER_RECEIVED, {"order_id": 1, "topic": "t", "word_count": 500, "amount": "25.00"}, "$25.00"),
        (NotificationKind.GENERATION_STARTED, {"order_id": 1, "topic": "tides"}, "tides"),
        (NotificationKind.GENERATION_FAILED, {"order_id": 1, "topic": "t", "error_message": "Please contact support."}, "Please contact support."),
        (NotificationKind.PAYMENT_FAILED, {"order_id": 1, "topic": "t", "error_message": "Try again."}, "Try again."),
    ],
)
def test_every_kind_renders(configured_email, kind, data, expected):
    EmailNotifier().notify("a@b.com", kind, data)
    assert mail.outbox[-1].subject == SUBJECTS[kind]
    assert expected in mail.outbox[-1].body


def test_invalid_payload_is_dropped(configured_email, caplog):
    with caplog.at_level(logging.ERROR, logger="orders"):
        EmailNotifier().notify("a@b.com", NotificationKind.GENERATION_COMPLETE, {"order_id": 7})
        EmailNotifier().notify("a@b.com", "NOT_A_KIND", {"order_id": 7})
    assert mail.outbox == []
    assert len([r for r in caplog.records if "payload rejected" in r.getMessage()]) == 2


def test_transport_failure_never_raises(configured_email, monkeypatch, caplog):
    def broken_send(self, fail_silently=False):
        raise smtplib.SMTPServerDisconnected("gone")

    monkeypatch.setattr(notifications.EmailMultiAlternatives, "send", broken_send)
    with caplog.at_level(logging.ERROR, logger="orders"):
        EmailNotifier().notify("a@b.com", NotificationKind.GENERATION_COMPLETE, COMPLETE_DATA)
    assert any("notification failed" in r.getMessage() for r in caplog.records)


def test_check_transport(db, configured_email):
    assert EmailNotifier().check_transport() == (True, "Email configuration is valid")


@pytest.mark.django_db
def test_check_transport_unconfigured():
    ok, message = EmailNotifier().check_transport()
    assert ok is False
    assert "not configured" in message


def test_check_transport_failure(configured_email, monkeypatch):
    class Refusing:
        def open(self):
            raise ConnectionRefusedError("connection refused")

        def close(self):
            pass

    monkeypatch.setattr(notifications, "get_connection", lambda **kw: Refusing())
    assert EmailNotifier().check_transport() == (False, "connection refused")
