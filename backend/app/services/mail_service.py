"""
XFound Backend — Outbound Mail Service
========================================

What:  Sends transactional emails (password reset link, reset confirmation).
Why:   Account recovery needs a channel the attacker doesn't control.
How:   smtplib over STARTTLS, run in a worker thread so the event loop never
       blocks on the SMTP handshake, wrapped in tenacity retry with
       exponential backoff + jitter.
Who:   AuthService.

Development mode:
    When SMTP_HOST is empty the message is logged instead of sent, so local
    stacks can exercise the reset flow and copy the link from the logs.

Error Handling Chain:
    Transient SMTP failure → tenacity retries (RETRY_MAX_ATTEMPTS with backoff)
    → last error re-raised → EmailDeliveryError (503 to the HTTP client)
"""

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
    retry_if_exception_type,
    before_sleep_log,
)

from app.config import settings
from app.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)

# Transient failures worth another attempt; auth/recipient errors are not
_TRANSIENT_SMTP_ERRORS = (
    smtplib.SMTPConnectError,
    smtplib.SMTPServerDisconnected,
    smtplib.SMTPHeloError,
    ConnectionError,
    TimeoutError,
)


class MailService:
    """Thin SMTP client with retry."""

    def __init__(self, timeout: float = 15.0):
        self.timeout = timeout

    def build_message(self, to: str, subject: str, html: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = settings.mail_from
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML-capable mail client.")
        message.add_alternative(html, subtype="html")
        return message

    async def send(self, to: str, subject: str, html: str) -> None:
        """
        Deliver one email.

        Raises:
            EmailDeliveryError: SMTP failed after all retries, or rejected the message.
        """
        if not settings.smtp_configured:
            logger.info("SMTP not configured; email to %s not sent. Subject: %s\n%s", to, subject, html)
            return

        message = self.build_message(to, subject, html)
        try:
            await self._send_with_retry(message)
            logger.info("Email '%s' sent to %s", subject, to)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP delivery to %s failed: %s", to, str(e))
            raise EmailDeliveryError(context={"error_type": type(e).__name__})

    @retry(
        retry=retry_if_exception_type(_TRANSIENT_SMTP_ERRORS),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _send_with_retry(self, message: EmailMessage) -> None:
        await asyncio.to_thread(self._deliver, message)

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=self.timeout) as smtp:
            smtp.starttls()
            if settings.smtp_username:
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(message)


# ── Singleton Instance ────────────────────────────────────────────────────
mail_service = MailService()
