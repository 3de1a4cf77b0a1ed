"""Outbound delivery of password-reset links."""
from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from models.schemas.common import mask_email
from services.errors import ExternalServiceError

logger = logging.getLogger(__name__)

RESET_SUBJECT = "Reset your password"


def build_reset_body(reset_link: str, minutes: int) -> str:
    return (
        "We received a request to reset the password for your account.\n\n"
        f"Open the link below to choose a new password:\n{reset_link}\n\n"
        f"The link is valid for {minutes} minutes. If you did not ask for a reset, ignore this email.\n"
    )


class MailSender:
    """Interface: deliver `reset_link` to `email` or raise ExternalServiceError."""

    def send_reset_link(self, email: str, reset_link: str) -> None:
        raise NotImplementedError


class SmtpMailSender(MailSender):
    TIMEOUT = 10  # seconds

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        from_email: str | None = None,
        link_ttl_minutes: int = 15,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email or username
        self.link_ttl_minutes = link_ttl_minutes

    def _build_message(self, recipient: str, reset_link: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = RESET_SUBJECT
        msg["From"] = self.from_email
        msg["To"] = recipient
        msg.set_content(build_reset_body(reset_link, self.link_ttl_minutes))
        return msg

    def send_reset_link(self, email: str, reset_link: str) -> None:
        if not self.from_email:
            raise ExternalServiceError("Mail sender is not configured")
        message = self._build_message(email, reset_link)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.TIMEOUT) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning(
                "reset_mail_failed",
                extra={"recipient": mask_email(email), "error": exc.__class__.__name__},
            )
            raise ExternalServiceError() from exc
        logger.info("reset_mail_sent", extra={"recipient": mask_email(email)})


class LoggingMailSender(MailSender):
    """Used when no SMTP host is configured. Never logs the link itself."""

    def send_reset_link(self, email: str, reset_link: str) -> None:
        logger.warning("mail_delivery_disabled", extra={"recipient": mask_email(email)})
