import html
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.models import User

logger = logging.getLogger(__name__)

class EmailTransport:
    """Delivers one message. Raises when the message could not be handed off."""

    async def send(self, to: str, subject: str, text: str, html_body: Optional[str] = None) -> None:
        raise NotImplementedError

class SendGridEmailTransport(EmailTransport):
    def __init__(self, api_key: str, from_email: str, url: str, timeout: float = 10.0):
        self.api_key = api_key
        self.from_email = from_email
        self.url = url
        self.timeout = timeout

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True
    )
    async def send(self, to: str, subject: str, text: str, html_body: Optional[str] = None) -> None:
        content = [{"type": "text/plain", "value": text}]
        if html_body:
            content.append({"type": "text/html", "value": html_body})
        payload = {
            "personalizations": [{"to": [{"email": to}], "subject": subject}],
            "from": {"email": self.from_email},
            "content": content,
        }

        async with httpx.AsyncClient() as client:
            response = await client.post(
                self.url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout
            )

        if response.status_code >= 400:
            logger.error(f"SendGrid rejected email to {to}: {response.status_code} {response.text}")
            response.raise_for_status()
        logger.info(f"Email sent via SendGrid to {to}")

class LoggingEmailTransport(EmailTransport):
    """Development transport: writes the message to the log instead of sending it."""

    async def send(self, to: str, subject: str, text: str, html_body: Optional[str] = None) -> None:
        logger.info(f"Email (not sent, development mode) to={to} subject={subject!r}\n{text}")

def build_invitation_email(
    sender: User,
    scan_snapshot: Dict[str, Any],
    registration_url: str,
    expires_at: datetime,
    message: Optional[str] = None
) -> Tuple[str, str, str]:
    """
    Compose subject, plain-text and HTML bodies for an email invitation.

    Returns:
        Tuple[str, str, str]: subject, text body, html body
    """
    sender_name = sender.full_name or "Someone"
    sender_title = ""
    if sender.job_title:
        sender_title = f" ({sender.job_title}{f' at {sender.company}' if sender.company else ''})"

    subject = f"{sender_name} wants to connect with you"

    lines = [
        "Hi there!",
        "",
        f"{sender_name}{sender_title} met you and would like to stay connected.",
    ]
    if message:
        lines += ["", f"\"{message}\""]

    meeting_lines = []
    scanned_at = scan_snapshot.get("scanned_at")
    if scanned_at:
        meeting_lines.append(f"- When: {scanned_at}")
    location = scan_snapshot.get("location") or {}
    if location:
        where = location.get("address") or location.get("name") or f"{location.get('latitude')}, {location.get('longitude')}"
        meeting_lines.append(f"- Where: {where}")
        if location.get("city"):
            meeting_lines.append(f"- City: {location['city']}")
    if meeting_lines:
        lines += ["", "Meeting details:"] + meeting_lines

    lines += [
        "",
        f"Create your account to connect with {sender_name}:",
        registration_url,
        "",
        f"This invitation expires on {expires_at.strftime('%Y-%m-%d')}.",
    ]
    text = "\n".join(lines)

    html_body = (
        "<p>" + "<br>".join(html.escape(line) for line in lines if line != registration_url) + "</p>"
        f"<p><a href=\"{html.escape(registration_url, quote=True)}\">Accept invitation</a></p>"
    )
    return subject, text, html_body

def build_sign_in_email(sender: User, sign_in_url: str, message: Optional[str] = None) -> Tuple[str, str, str]:
    """Compose the email sent when the address typed on the scan page already has an account."""
    sender_name = sender.full_name or "Someone"
    subject = f"{sender_name} wants to connect with you"

    lines = [
        "Hi there!",
        "",
        f"Someone scanned {sender_name}'s QR code and left this email address.",
    ]
    if message:
        lines += ["", f"\"{message}\""]
    lines += [
        "",
        f"You already have an account. Sign in to connect with {sender_name}:",
        sign_in_url,
        "",
        "If this wasn't you, you can ignore this email. Nothing changes until you sign in.",
    ]
    text = "\n".join(lines)

    html_body = (
        "<p>" + "<br>".join(html.escape(line) for line in lines if line != sign_in_url) + "</p>"
        f"<p><a href=\"{html.escape(sign_in_url, quote=True)}\">Sign in to connect</a></p>"
    )
    return subject, text, html_body
