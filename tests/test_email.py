from __future__ import annotations

import smtplib

import pytest

from app.core.config import get_settings
from app.services import email_service, email_templates, platform_settings


def _html(message) -> str:
    return message.get_payload()[1].get_payload(decode=True).decode()


def test_html_to_text_drops_markup() -> None:
    html = "<style>p { color: red; }</style><h2>Hello</h2><p>Line <b>one</b><br>Line two</p>"
    assert email_service.html_to_text(html) == "Hello\nLine one\nLine two"


def test_templates_escape_user_values() -> None:
    html = email_templates.application_status("<Asha>", "Dev & Ops", "interview_scheduled", remarks="<b>soon</b>")
    assert "&lt;Asha&gt;" in html
    assert "Dev &amp; Ops" in html
    assert "&lt;b&gt;soon&lt;/b&gt;" in html
    assert "<h2>Interview Scheduled</h2>" in html
    assert "INTERVIEW SCHEDULED" in html


def test_offer_template_shows_package_only_when_given() -> None:
    assert "12.5 LPA" in email_templates.offer_received("Asha", "Dev", "Acme", package=12.5)
    assert "LPA" not in email_templates.offer_received("Asha", "Dev", "Acme")


def test_bulk_upload_template_mentions_failures() -> None:
    assert "<strong>Failed:</strong> 2 students" in email_templates.bulk_upload_success("admin", 5, 2)
    assert "Failed" not in email_templates.bulk_upload_success("admin", 5, 0)


def test_send_email_builds_multipart_message(db, outbox) -> None:
    result = email_service.send_email("asha@abc.edu", "Hello", "<p>Hi <b>there</b></p>")

    assert result["success"] is True
    message = outbox[0]
    assert message["To"] == "asha@abc.edu"
    assert message["Subject"] == "Hello"
    assert message["Message-ID"] == result["message_id"]
    assert message.get_payload()[0].get_payload(decode=True).decode() == "Hi there"
    assert _html(message) == "<p>Hi <b>there</b></p>"


def test_send_email_reports_smtp_failures(db, monkeypatch: pytest.MonkeyPatch) -> None:
    def refuse(message) -> None:
        raise smtplib.SMTPRecipientsRefused({"asha@abc.edu": (550, b"No such user")})

    monkeypatch.setattr(email_service, "deliver", refuse)
    result = email_service.send_email("asha@abc.edu", "Hello", "<p>Hi</p>")
    assert result["success"] is False
    assert "No such user" in result["error"]


def test_send_email_respects_switches(db, outbox, monkeypatch: pytest.MonkeyPatch) -> None:
    platform_settings.update_section("notifications", {"email_notifications": False})
    assert email_service.send_email("asha@abc.edu", "Hello", "<p>Hi</p>")["success"] is False

    platform_settings.update_section("notifications", {"email_notifications": True})
    monkeypatch.setenv("EMAIL_ENABLED", "false")
    get_settings.cache_clear()
    assert email_service.send_email("asha@abc.edu", "Hello", "<p>Hi</p>")["success"] is False
    assert outbox == []


def test_password_reset_email_links_to_frontend(db, outbox) -> None:
    email_service.send_password_reset_email({"email": "asha@abc.edu"}, "abc123")

    assert outbox[0]["Subject"] == "Password Reset Request"
    assert 'href="http://portal.test/reset-password?token=abc123"' in _html(outbox[0])
