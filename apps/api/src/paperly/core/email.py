"""
Email Service using Resend

Transactional emails for teacher invitations, submission updates and
account management. All user-provided values are HTML-escaped.
"""

import asyncio
import logging
from html import escape

import resend

from paperly.core.config import settings

logger = logging.getLogger(__name__)

resend.api_key = settings.resend_api_key

_BASE_STYLE = """
    body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
    .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
    .header { color: #1e3a8a; margin-bottom: 24px; }
    .button { display: inline-block; background-color: #1e3a8a; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }
    .info-box { background-color: #f3f4f6; padding: 16px; border-radius: 8px; margin: 16px 0; }
    .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


def _render(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head><style>{_BASE_STYLE}</style></head>
    <body>
        <div class="container">
            <h1 class="header">{title}</h1>
            {body}
            <div class="footer">
                <p>Paperly - Examination Paper Submissions</p>
            </div>
        </div>
    </body>
    </html>
    """


def _link_block(url: str, label: str) -> str:
    return f"""
            <a href="{url}" class="button">{label}</a>
            <p>Or copy and paste this link into your browser:</p>
            <p style="word-break: break-all; color: #3b82f6;">{url}</p>
    """


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Returns:
        True if email was sent successfully
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    try:
        params: resend.Emails.SendParams = {
            "from": settings.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Resend's client is synchronous
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


async def send_teacher_invitation(
    to_email: str,
    teacher_name: str,
    submission_url: str,
    expires_in_days: int,
) -> bool:
    """Send the submission link to a newly added teacher."""
    body = f"""
            <p>Hello {escape(teacher_name)},</p>
            <p>You have been invited to submit your examination question paper.</p>
            {_link_block(submission_url, "Submit Question Paper")}
            <p><strong>This link expires in {expires_in_days} days.</strong></p>
    """
    return await send_email(
        to_email=to_email,
        subject="Your Paperly submission link",
        html_content=_render("Question Paper Submission", body),
    )


async def send_submission_received(
    to_email: str,
    teacher_name: str,
    subject_name: str,
) -> bool:
    """Confirm receipt of a teacher's submission."""
    body = f"""
            <p>Hello {escape(teacher_name)},</p>
            <p>We have received your <strong>{escape(subject_name)}</strong> question paper.</p>
            <div class="info-box">
                <p>It is now pending review. You will be notified when an administrator reviews it.</p>
            </div>
    """
    return await send_email(
        to_email=to_email,
        subject="Submission received",
        html_content=_render("Submission Received", body),
    )


async def send_submission_reviewed(
    to_email: str,
    teacher_name: str,
    status_label: str,
    message: str,
    review_notes: str | None = None,
) -> bool:
    """Tell a teacher the outcome of a review."""
    notes = ""
    if review_notes:
        notes = f"""
            <div class="info-box">
                <p><strong>Reviewer notes:</strong></p>
                <p>{escape(review_notes)}</p>
            </div>
        """
    body = f"""
            <p>Hello {escape(teacher_name)},</p>
            <p>{escape(message)}</p>
            {notes}
    """
    return await send_email(
        to_email=to_email,
        subject=f"Submission {status_label}",
        html_content=_render(f"Submission {escape(status_label)}", body),
    )


async def send_payment_update(
    to_email: str,
    teacher_name: str,
    message: str,
) -> bool:
    """Tell a teacher their payment status changed."""
    body = f"""
            <p>Hello {escape(teacher_name)},</p>
            <p>{escape(message)}</p>
    """
    return await send_email(
        to_email=to_email,
        subject="Payment update",
        html_content=_render("Payment Update", body),
    )


async def send_password_reset(to_email: str, full_name: str, token: str) -> bool:
    """Send a password reset link (valid for one hour)."""
    reset_url = f"{settings.client_url}/auth/reset-password?token={token}"
    body = f"""
            <p>Hello {escape(full_name)},</p>
            <p>We received a request to reset your password.</p>
            {_link_block(reset_url, "Reset Password")}
            <p><strong>This link expires in 1 hour.</strong></p>
            <p>If you didn't request this, you can safely ignore this email.</p>
    """
    return await send_email(
        to_email=to_email,
        subject="Reset your Paperly password",
        html_content=_render("Reset Your Password", body),
    )


async def send_email_verification(to_email: str, full_name: str, token: str) -> bool:
    """Send an email verification link (valid for 24 hours)."""
    verify_url = f"{settings.client_url}/auth/verify-email?token={token}"
    body = f"""
            <p>Hello {escape(full_name)},</p>
            <p>Please confirm your email address.</p>
            {_link_block(verify_url, "Verify Email")}
            <p><strong>This link expires in 24 hours.</strong></p>
    """
    return await send_email(
        to_email=to_email,
        subject="Verify your Paperly email",
        html_content=_render("Verify Your Email", body),
    )
