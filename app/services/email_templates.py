"""
Email Templates - HTML bodies for every outbound email.

Each template returns a complete HTML document built by base_template().
Values coming from users (names, titles, remarks) are escaped.
"""

from datetime import datetime
from html import escape
from typing import Optional

from app.core.config import get_settings

BRAND = "Placement Management System"


def _frontend(path: str) -> str:
    return f"{get_settings().frontend_url.rstrip('/')}{path}"


def _role_label(role: str) -> str:
    return escape(role.replace("_", " "))


def base_template(content: str) -> str:
    year = datetime.utcnow().year
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; padding: 30px; text-align: center; border-radius: 10px 10px 0 0; }}
        .content {{ background: #f9fafb; padding: 30px; border-radius: 0 0 10px 10px; }}
        .button {{ display: inline-block; padding: 12px 30px; background: #667eea; color: white; text-decoration: none; border-radius: 5px; margin: 20px 0; }}
        .footer {{ text-align: center; margin-top: 30px; color: #6b7280; font-size: 14px; }}
    </style>
</head>
<body>
    <div class="header">
        <h1>{BRAND}</h1>
    </div>
    <div class="content">
        {content}
    </div>
    <div class="footer">
        <p>This is an automated email. Please do not reply.</p>
        <p>&copy; {year} {BRAND}. All rights reserved.</p>
    </div>
</body>
</html>
"""


SIGNATURE = "<p>Best regards,<br>Placement Management Team</p>"


def welcome(name: str, role: str, approved: bool = False) -> str:
    status_line = (
        "<p>Your account is active. You can login and start using the platform.</p>"
        if approved else
        "<p>Your account is currently pending approval. You will receive an email once your account is approved.</p>"
    )
    content = f"""
        <h2>Welcome to {BRAND}!</h2>
        <p>Hi {escape(name)},</p>
        <p>Thank you for registering as a <strong>{_role_label(role)}</strong>.</p>
        {status_line}
        <p>If you have any questions, please contact your administrator.</p>
        {SIGNATURE}
    """
    return base_template(content)


def account_approved(name: str, role: str, login_url: str) -> str:
    content = f"""
        <h2>Your Account Has Been Approved!</h2>
        <p>Hi {escape(name)},</p>
        <p>Great news! Your <strong>{_role_label(role)}</strong> account has been approved.</p>
        <p>You can now login and start using the platform.</p>
        <a href="{escape(login_url)}" class="button">Login Now</a>
        {SIGNATURE}
    """
    return base_template(content)


def account_rejected(name: str, role: str, reason: Optional[str] = None) -> str:
    reason_line = f"<p><strong>Reason:</strong> {escape(reason)}</p>" if reason else ""
    content = f"""
        <h2>Account Application Status</h2>
        <p>Hi {escape(name)},</p>
        <p>We regret to inform you that your <strong>{_role_label(role)}</strong> account application has been rejected.</p>
        {reason_line}
        <p>If you believe this is an error, please contact the administrator.</p>
        {SIGNATURE}
    """
    return base_template(content)


def password_reset(name: str, reset_url: str, expires_minutes: int = 60) -> str:
    content = f"""
        <h2>Password Reset Request</h2>
        <p>Hi {escape(name)},</p>
        <p>We received a request to reset your password.</p>
        <p>Click the button below to reset your password. This link will expire in {expires_minutes} minutes.</p>
        <a href="{escape(reset_url)}" class="button">Reset Password</a>
        <p>If you didn't request this, please ignore this email.</p>
        {SIGNATURE}
    """
    return base_template(content)


def student_verified(name: str) -> str:
    content = f"""
        <h2>Profile Verified!</h2>
        <p>Hi {escape(name)},</p>
        <p>Your student profile has been verified by your college administrator.</p>
        <p>You can now apply for jobs and participate in placement activities.</p>
        <a href="{_frontend('/student/jobs')}" class="button">Browse Jobs</a>
        {SIGNATURE}
    """
    return base_template(content)


def job_posted(student_name: str, job_title: str, company_name: str, job_url: str) -> str:
    content = f"""
        <h2>New Job Opportunity!</h2>
        <p>Hi {escape(student_name)},</p>
        <p>A new job has been posted that matches your profile:</p>
        <p><strong>{escape(job_title)}</strong> at <strong>{escape(company_name)}</strong></p>
        <a href="{escape(job_url)}" class="button">View Job Details</a>
        <p>Don't miss this opportunity!</p>
        {SIGNATURE}
    """
    return base_template(content)


STATUS_HEADINGS = {
    "under_review": "Application Under Review",
    "shortlisted": "You have been shortlisted!",
    "interview_scheduled": "Interview Scheduled",
    "interviewed": "Interview Completed",
    "offered": "Job Offer Received!",
    "hired": "Congratulations! You're Hired!",
    "rejected": "Application Update",
}


def status_label(status: str) -> str:
    return status.replace("_", " ").upper()


def application_status(student_name: str, job_title: str, status: str, remarks: Optional[str] = None) -> str:
    heading = STATUS_HEADINGS.get(status, "Application Status Update")
    remarks_line = f"<p><strong>Remarks:</strong> {escape(remarks)}</p>" if remarks else ""
    content = f"""
        <h2>{heading}</h2>
        <p>Hi {escape(student_name)},</p>
        <p>Your application for <strong>{escape(job_title)}</strong> has been updated.</p>
        <p><strong>Status:</strong> {status_label(status)}</p>
        {remarks_line}
        <a href="{_frontend('/student/applications')}" class="button">View Application</a>
        {SIGNATURE}
    """
    return base_template(content)


def shortlisted(student_name: str, job_title: str, company_name: str) -> str:
    content = f"""
        <h2>You've Been Shortlisted!</h2>
        <p>Hi {escape(student_name)},</p>
        <p>Congratulations! <strong>{escape(company_name)}</strong> has shortlisted you for the position of <strong>{escape(job_title)}</strong>.</p>
        <p>The company will contact you soon with further details.</p>
        <a href="{_frontend('/student/applications')}" class="button">View Details</a>
        <p>Best of luck!</p>
        {SIGNATURE}
    """
    return base_template(content)


def interview_scheduled(
    student_name: str,
    job_title: str,
    company_name: str,
    scheduled_at: datetime,
    mode: str,
    location: Optional[str] = None,
) -> str:
    location_line = f"<p><strong>Location:</strong> {escape(location)}</p>" if location else ""
    content = f"""
        <h2>Interview Scheduled</h2>
        <p>Hi {escape(student_name)},</p>
        <p>Your interview for <strong>{escape(job_title)}</strong> at <strong>{escape(company_name)}</strong> has been scheduled.</p>
        <p><strong>Date &amp; Time:</strong> {scheduled_at.strftime('%d %b %Y, %I:%M %p')} UTC</p>
        <p><strong>Mode:</strong> {escape(mode)}</p>
        {location_line}
        <a href="{_frontend('/student/applications')}" class="button">View Details</a>
        <p>Good luck with your interview!</p>
        {SIGNATURE}
    """
    return base_template(content)


def offer_received(student_name: str, job_title: str, company_name: str, package: Optional[float] = None) -> str:
    package_line = f"<p><strong>Package:</strong> &#8377;{package:g} LPA</p>" if package else ""
    content = f"""
        <h2>Job Offer Received!</h2>
        <p>Hi {escape(student_name)},</p>
        <p>Congratulations! You have received a job offer from <strong>{escape(company_name)}</strong>!</p>
        <p><strong>Position:</strong> {escape(job_title)}</p>
        {package_line}
        <p>Please review the offer details and respond accordingly.</p>
        <a href="{_frontend('/student/applications')}" class="button">View Offer</a>
        <p>Congratulations once again!</p>
        {SIGNATURE}
    """
    return base_template(content)


def bulk_upload_success(admin_name: str, success_count: int, failed_count: int) -> str:
    failed_line = f"<p><strong>Failed:</strong> {failed_count} students</p>" if failed_count > 0 else ""
    content = f"""
        <h2>Bulk Upload Complete</h2>
        <p>Hi {escape(admin_name)},</p>
        <p>Your bulk student upload has been processed.</p>
        <p><strong>Successfully uploaded:</strong> {success_count} students</p>
        {failed_line}
        <a href="{_frontend('/college/students')}" class="button">View Students</a>
        {SIGNATURE}
    """
    return base_template(content)
