"""SMTP Code Channel — delivers verification codes by email.

Invariants:
    - is_configured is False unless host, user and password are all present
    - send_code raises DeliveryFailedError on any SMTP/socket failure, never returns partial success
    - The code appears only in the outgoing message body, never in logs

Design Decisions:
    - stdlib smtplib run in a worker thread (asyncio.to_thread) so the event loop keeps serving
    - STARTTLS on every connection except port 465 (implicit TLS via SMTP_SSL)
"""

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from engcoach.core.errors import DeliveryFailedError

logger = logging.getLogger(__name__)

_SUBJECT = "Engineering AI Coach - Researcher Access OTP"

_HTML_TEMPLATE = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1 style="font-size: 24px;">Engineering AI Coach</h1>
  <p>Researcher Verification</p>
  <h2>Your Verification Code</h2>
  <p>Use the following 6-digit code to access the researcher dashboard and analysis features:</p>
  <p style="font-size: 32px; font-weight: bold; letter-spacing: 8px;">{code}</p>
  <p><strong>Important:</strong> This code will expire in {minutes} minutes for security purposes.</p>
  <p>If you didn't request this code, please ignore this email.</p>
</div>
"""


def build_code_email(sender: str, target: str, code: str, ttl_minutes: int = 10) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = _SUBJECT
    message["From"] = sender
    message["To"] = target
    message.set_content(
        f"Your Engineering AI Coach verification code is {code}. "
        f"It expires in {ttl_minutes} minutes.",
    )
    message.add_alternative(
        _HTML_TEMPLATE.format(code=code, minutes=ttl_minutes), subtype="html",
    )
    return message


class SmtpCodeChannel:
    """Email delivery channel for verification codes."""

    def __init__(
        self,
        host: str | None,
        port: int = 587,
        user: str | None = None,
        password: str | None = None,
        sender: str | None = None,
        timeout_seconds: int = 15,
        ttl_minutes: int = 10,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.sender = sender or user
        self.timeout_seconds = timeout_seconds
        self.ttl_minutes = ttl_minutes

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.user and self.password)

    async def send_code(self, target: str, code: str) -> None:
        message = build_code_email(self.sender or "", target, code, self.ttl_minutes)
        try:
            await asyncio.to_thread(self._send, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"OTP email delivery failed: {e}")
            raise DeliveryFailedError(type(e).__name__)
        logger.info("OTP email sent")

    def _send(self, message: EmailMessage) -> None:
        if self.port == 465:
            with smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout_seconds) as smtp:
                smtp.login(self.user, self.password)
                smtp.send_message(message)
            return
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as smtp:
            smtp.starttls()
            smtp.login(self.user, self.password)
            smtp.send_message(message)
