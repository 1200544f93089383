"""Email service for OTP and password reset messages."""

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from stayease.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_FROM = "no-reply@stayease.app"


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class EmailService:
    """Sends transactional email over SMTP.

    When SMTP is not configured nothing is sent and every send reports
    failure, which lets callers fall back to development previews.
    """

    def __init__(self) -> None:
        self.settings = get_settings()

    @property
    def is_configured(self) -> bool:
        """Check if SMTP host and credentials are present."""
        return bool(self.settings.smtp_host and self.settings.smtp_user and self.settings.smtp_password)

    @property
    def from_email(self) -> str:
        return self.settings.smtp_from or self.settings.smtp_user or DEFAULT_FROM

    def _send_email(self, to_email: str, subject: str, text_body: str, html_body: str) -> bool:
        """
        Send one message.

        Returns True if the SMTP server accepted it.
        """
        if not self.is_configured:
            logger.info(f"SMTP not configured, skipping '{subject}' to {redact_email(to_email)}")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))

        host = self.settings.smtp_host
        port = self.settings.smtp_port
        context = ssl.create_default_context()
        try:
            # Port 465 speaks TLS from the first byte; anything else upgrades with STARTTLS
            if port == 465:
                with smtplib.SMTP_SSL(host, port, context=context, timeout=30) as server:
                    server.login(self.settings.smtp_user, self.settings.smtp_password)
                    server.sendmail(self.from_email, to_email, msg.as_string())
            else:
                with smtplib.SMTP(host, port, timeout=30) as server:
                    if self.settings.smtp_use_tls:
                        server.starttls(context=context)
                    server.login(self.settings.smtp_user, self.settings.smtp_password)
                    server.sendmail(self.from_email, to_email, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send '{subject}' to {redact_email(to_email)}: {e}")
            return False

        logger.info(f"Sent '{subject}' to {redact_email(to_email)}")
        return True

    def send_otp_email(self, to_email: str, otp: str, expires_minutes: int = 10) -> bool:
        """Send a signup verification code."""
        return self._send_email(
            to_email,
            subject="Your StayEase OTP Code",
            text_body=f"Your OTP is {otp}. It expires in {expires_minutes} minutes.",
            html_body=(
                f"<p>Your OTP is <strong>{otp}</strong>.</p>"
                f"<p>This code expires in {expires_minutes} minutes.</p>"
            ),
        )

    def send_password_reset_email(self, to_email: str, token: str, expires_minutes: int = 60) -> bool:
        """Send a password reset token."""
        return self._send_email(
            to_email,
            subject="Reset your StayEase password",
            text_body=(
                f"Use this token to reset your password: {token}\n"
                f"It expires in {expires_minutes} minutes. Ignore this email if you did not ask for a reset."
            ),
            html_body=(
                f"<p>Use this token to reset your password:</p><p><code>{token}</code></p>"
                f"<p>It expires in {expires_minutes} minutes. "
                "Ignore this email if you did not ask for a reset.</p>"
            ),
        )
