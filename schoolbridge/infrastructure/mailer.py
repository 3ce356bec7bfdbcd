import smtplib
from email.message import EmailMessage
from typing import Protocol
from urllib.parse import quote

import structlog

from ..config import settings

logger = structlog.get_logger()


class EmailSender(Protocol):
    def send(self, to: str, subject: str, text: str, html: str | None = None) -> None: ...


class EmailDeliveryError(Exception):
    pass


class SmtpEmailSender:
    """Plain SMTP delivery with STARTTLS; a blank SMTP_HOST turns it into a no-op."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool | None = None,
        timeout: int | None = None,
        sender: str | None = None,
    ):
        self.host = settings.SMTP_HOST if host is None else host
        self.port = port or settings.SMTP_PORT
        self.username = settings.SMTP_USERNAME if username is None else username
        self.password = settings.SMTP_PASSWORD if password is None else password
        self.use_tls = settings.SMTP_USE_TLS if use_tls is None else use_tls
        self.timeout = timeout or settings.SMTP_TIMEOUT
        self.sender = sender or settings.EMAIL_FROM

    def send(self, to: str, subject: str, text: str, html: str | None = None) -> None:
        if not self.host:
            logger.warning("smtp_not_configured", to=to, subject=subject)
            return

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        msg.set_content(text)
        if html:
            msg.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("email_send_failed", to=to, error=str(e))
            raise EmailDeliveryError(str(e)) from e
        logger.info("email_sent", to=to, subject=subject)


def build_invitation_links(token: str) -> tuple[str, str]:
    """(mobile deep link, web fallback) for an activation token."""
    q = quote(token)
    mobile = f"{settings.MOBILE_ACTIVATION_URL}?token={q}"
    web = f"{settings.WEB_APP_URL.rstrip('/')}/activate?token={q}"
    return mobile, web


INVITATION_SUBJECT = "Activate Your SchoolBridge Account"


def render_invitation_email(role: str, school_name: str | None, token: str) -> tuple[str, str]:
    mobile, web = build_invitation_links(token)
    where = f" at {school_name}" if school_name else ""
    hours = settings.INVITATION_TTL_HOURS
    text = (
        f"You have been invited to join SchoolBridge as a {role}{where}.\n\n"
        f"Open the app to activate your account:\n{mobile}\n\n"
        f"Or use the web link:\n{web}\n\n"
        f"Link expires in {hours} hours.\n"
    )
    html = (
        f"<h2>Welcome to SchoolBridge</h2>"
        f"<p>You have been invited to join SchoolBridge as a <strong>{role}</strong>{where}.</p>"
        f'<p><a href="{mobile}">Activate in the app</a></p>'
        f'<p>Or open <a href="{web}">{web}</a> in your browser.</p>'
        f"<p>Link expires in {hours} hours.</p>"
    )
    return text, html


_sender = SmtpEmailSender()


def get_email_sender() -> EmailSender:
    return _sender
