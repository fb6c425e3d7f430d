"""
Email Service - send templated emails over SMTP.

send_email() never raises: delivery problems are logged and reported
in the returned dict so a failed email never fails the request that
triggered it.
"""

import logging
import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Optional

from app.core.config import get_settings
from app.services import email_templates
from app.services.platform_settings import get_section

logger = logging.getLogger(__name__)


def html_to_text(html: str) -> str:
    """Plain-text fallback: drop style blocks and tags, collapse whitespace."""
    text = re.sub(r"<style.*?</style>", "", html, flags=re.S | re.I)
    text = re.sub(r"<br\s*/?>|</p>|</h\d>", "\n", text, flags=re.I)
    text = re.sub(r"<[^>]+>", "", text)
    lines = [line.strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


def recipient_name(email: str) -> str:
    return email.split("@")[0]


def deliver(message: MIMEMultipart) -> None:
    """Hand a prepared message to the configured SMTP server."""
    settings = get_settings()
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=15) as server:
        if settings.smtp_use_tls:
            server.starttls()
        if settings.smtp_user:
            server.login(settings.smtp_user, settings.smtp_password)
        server.send_message(message)


def send_email(to: str, subject: str, html: str) -> dict:
    """
    Send one HTML email with a text alternative.

    Returns:
        {"success": True, "message_id": ...} or {"success": False, "error": ...}
    """
    settings = get_settings()
    if not settings.email_enabled or not settings.smtp_host:
        logger.info("Email disabled, skipping '%s' to %s", subject, to)
        return {"success": False, "error": "Email delivery is not configured"}

    if not get_section("notifications")["email_notifications"]:
        logger.info("Email notifications turned off, skipping '%s' to %s", subject, to)
        return {"success": False, "error": "Email notifications are disabled"}

    message = MIMEMultipart("alternative")
    message["From"] = settings.email_from
    message["To"] = to
    message["Subject"] = subject
    message_id = make_msgid()
    message["Message-ID"] = message_id
    message.attach(MIMEText(html_to_text(html), "plain", "utf-8"))
    message.attach(MIMEText(html, "html", "utf-8"))

    try:
        deliver(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send '%s' to %s: %s", subject, to, e)
        return {"success": False, "error": str(e)}

    logger.info("Email '%s' sent to %s", subject, to)
    return {"success": True, "message_id": message_id}


# ============================================================
# ONE HELPER PER TEMPLATE
# ============================================================

def send_welcome_email(user: dict) -> dict:
    html = email_templates.welcome(recipient_name(user["email"]), user["role"], user.get("is_approved", False))
    return send_email(user["email"], "Welcome to Placement Management System", html)


def send_account_approved_email(user: dict) -> dict:
    login_url = f"{get_settings().frontend_url.rstrip('/')}/login"
    html = email_templates.account_approved(recipient_name(user["email"]), user["role"], login_url)
    return send_email(user["email"], "Your Account Has Been Approved!", html)


def send_account_rejected_email(user: dict, reason: Optional[str] = None) -> dict:
    html = email_templates.account_rejected(recipient_name(user["email"]), user["role"], reason)
    return send_email(user["email"], "Account Application Status", html)


def send_password_reset_email(user: dict, reset_token: str) -> dict:
    settings = get_settings()
    reset_url = f"{settings.frontend_url.rstrip('/')}/reset-password?token={reset_token}"
    html = email_templates.password_reset(
        recipient_name(user["email"]), reset_url, settings.password_reset_expire_minutes
    )
    return send_email(user["email"], "Password Reset Request", html)


def send_student_verified_email(student: dict) -> dict:
    html = email_templates.student_verified(student["name"]["first_name"])
    return send_email(student["email"], "Your Profile Has Been Verified!", html)


def send_job_posted_email(student: dict, job: dict, company: dict) -> dict:
    job_url = f"{get_settings().frontend_url.rstrip('/')}/student/jobs/{job['_id']}"
    html = email_templates.job_posted(student["name"]["first_name"], job["title"], company["name"], job_url)
    return send_email(student["email"], f"New Job: {job['title']} at {company['name']}", html)


def send_application_status_email(student: dict, job: dict, status: str, remarks: Optional[str] = None) -> dict:
    html = email_templates.application_status(student["name"]["first_name"], job["title"], status, remarks)
    return send_email(student["email"], f"Application Update: {job['title']}", html)


def send_shortlisted_email(student: dict, job: dict, company: dict) -> dict:
    html = email_templates.shortlisted(student["name"]["first_name"], job["title"], company["name"])
    return send_email(student["email"], f"You've Been Shortlisted for {job['title']}!", html)


def send_interview_scheduled_email(student: dict, job: dict, company: dict, interview: dict) -> dict:
    html = email_templates.interview_scheduled(
        student["name"]["first_name"], job["title"], company["name"],
        interview["scheduled_at"], interview.get("mode", "online"), interview.get("location"),
    )
    return send_email(student["email"], f"Interview Scheduled: {job['title']}", html)


def send_offer_received_email(student: dict, job: dict, company: dict, package: Optional[float] = None) -> dict:
    html = email_templates.offer_received(student["name"]["first_name"], job["title"], company["name"], package)
    return send_email(student["email"], f"Job Offer from {company['name']}!", html)


def send_bulk_upload_success_email(admin_email: str, success_count: int, failed_count: int) -> dict:
    html = email_templates.bulk_upload_success(recipient_name(admin_email), success_count, failed_count)
    return send_email(admin_email, "Bulk Upload Complete", html)
