import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Optional

import aiohttp

from .config import settings

logger = logging.getLogger(__name__)

BREVO_SEND_URL = "https://api.brevo.com/v3/smtp/email"


class Mailer:
    """Outbound email collaborator. ``send`` reports success as a bool and never raises."""

    enabled: bool = False

    async def send(self, to_email: str, subject: str, html_body: str, text_body: Optional[str] = None) -> bool:
        raise NotImplementedError


class DisabledMailer(Mailer):
    enabled = False

    async def send(self, to_email: str, subject: str, html_body: str, text_body: Optional[str] = None) -> bool:
        logger.warning("Email not sent (not configured): to=%s subject=%r", to_email, subject)
        return False


class BrevoMailer(Mailer):
    """Send transactional email through the Brevo HTTP API."""

    enabled = True

    def __init__(self, api_key: str, sender_email: str, sender_name: str, timeout: float = 15):
        self.api_key = api_key
        self.sender_email = sender_email
        self.sender_name = sender_name
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def send(self, to_email: str, subject: str, html_body: str, text_body: Optional[str] = None) -> bool:
        headers = {
            "api-key": self.api_key,
            "Content-Type": "application/json",
        }
        payload = {
            "sender": {"name": self.sender_name, "email": self.sender_email},
            "to": [{"email": to_email}],
            "subject": subject,
            "htmlContent": html_body,
        }
        if text_body:
            payload["textContent"] = text_body

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(BREVO_SEND_URL, json=payload, headers=headers) as response:
                    result = await response.json(content_type=None)
                    if response.status == 201:
                        message_id = result.get("messageId") if isinstance(result, dict) else None
                        logger.info("Email sent to %s, message_id=%s", to_email, message_id or "unknown")
                        return True
                    logger.error("Brevo rejected email to %s: status=%s body=%s", to_email, response.status, result)
                    return False
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error("Failed to send email to %s: %s", to_email, e)
            return False


def build_mailer() -> Mailer:
    if not settings.BREVO_API_KEY:
        logger.warning("BREVO_API_KEY not set; outgoing email is disabled")
        return DisabledMailer()
    return BrevoMailer(settings.BREVO_API_KEY, settings.EMAIL_FROM_ADDRESS, settings.EMAIL_FROM_NAME)


# ==================== Templates ====================

@dataclass
class EmailMessage:
    subject: str
    html: str
    text: str


_BASE_STYLE = """
            body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
            .container { max-width: 600px; margin: 0 auto; padding: 20px; }
            .header { background: linear-gradient(135deg, #1e3a8a 0%, #7c3aed 100%); color: white; padding: 30px; text-align: center; border-radius: 10px 10px 0 0; }
            .content { background: #f9fafb; padding: 30px; border-radius: 0 0 10px 10px; }
            .otp-box { background: white; border: 2px dashed #3b82f6; padding: 20px; text-align: center; margin: 20px 0; border-radius: 8px; }
            .otp-code { font-size: 32px; font-weight: bold; color: #1e3a8a; letter-spacing: 8px; font-family: 'Courier New', monospace; }
            .button { display: inline-block; background: #3b82f6; color: white; padding: 12px 30px; text-decoration: none; border-radius: 5px; margin: 20px 0; }
            .footer { text-align: center; color: #888; font-size: 12px; margin-top: 20px; }
"""


def _page(header: str, content: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <style>{_BASE_STYLE}</style>
    </head>
    <body>
        <div class="container">
            <div class="header">
                <h1>{header}</h1>
            </div>
            <div class="content">
                {content}
                <div class="footer">
                    <p>&copy; {datetime.utcnow().year} {settings.APP_NAME}. All rights reserved.</p>
                </div>
            </div>
        </div>
    </body>
    </html>
    """


PURPOSE_LABELS = {
    "comment": "Blog Comment Verification",
    "newsletter": "Newsletter Subscription",
    "password-reset": "Password Reset",
}


def otp_email(code: str, purpose: str) -> EmailMessage:
    label = PURPOSE_LABELS.get(purpose, purpose)
    minutes = settings.OTP_EXPIRE_MINUTES
    html = _page(
        settings.APP_NAME,
        f"""
                <p>Hello!</p>
                <p>You requested a one-time password for <strong>{label}</strong>.</p>
                <div class="otp-box">
                    <div class="otp-code">{code}</div>
                </div>
                <p><strong>This code will expire in {minutes} minutes.</strong></p>
                <p>If you didn't request this code, please ignore this email.</p>
        """,
    )
    text = f"""
{label}

Your OTP code is: {code}

This code will expire in {minutes} minutes.

If you did not request this, please ignore this email.

---
{settings.APP_NAME}
    """
    return EmailMessage(subject=f"Your OTP for {label}", html=html, text=text)


def newsletter_welcome_email(name: Optional[str]) -> EmailMessage:
    html = _page(
        f"Welcome to {settings.APP_NAME}!",
        f"""
                <h2>Hello {escape(name or 'there')}!</h2>
                <p>Thank you for subscribing to our newsletter. You'll now receive:</p>
                <ul>
                    <li>Latest blog posts and articles</li>
                    <li>Career insights and tips</li>
                    <li>Industry trends and updates</li>
                </ul>
                <p style="text-align: center;">
                    <a href="{settings.FRONTEND_URL}/blog" class="button">Explore Our Blog</a>
                </p>
                <p><a href="{settings.FRONTEND_URL}/unsubscribe">Unsubscribe</a></p>
        """,
    )
    text = f"Hello {name or 'there'},\n\nThank you for subscribing to the {settings.APP_NAME} newsletter.\n\nRead the blog: {settings.FRONTEND_URL}/blog\n"
    return EmailMessage(subject=f"Welcome to {settings.APP_NAME} Newsletter!", html=html, text=text)


def ebook_download_email(name: str, ebook_name: str, download_url: str) -> EmailMessage:
    html = _page(
        "Your Ebook is Ready!",
        f"""
                <p>Hi <strong>{escape(name)}</strong>,</p>
                <p>Thank you for downloading <strong>{escape(ebook_name)}</strong>!</p>
                <p style="text-align: center;">
                    <a href="{download_url}" class="button">Download Ebook Now</a>
                </p>
                <p><strong>Alternative download link:</strong><br><a href="{download_url}">{download_url}</a></p>
                <p>This is an automated email. Please do not reply to this message.</p>
        """,
    )
    text = f"""
Hi {name},

Thank you for downloading {ebook_name}!

Download your ebook here: {download_url}

---
{settings.APP_NAME}
    """
    return EmailMessage(subject=f"Download {ebook_name} - {settings.APP_NAME}", html=html, text=text)


async def send_message(mailer: Mailer, to_email: str, message: EmailMessage) -> bool:
    return await mailer.send(to_email, message.subject, message.html, message.text)
