import smtplib
from unittest.mock import patch

import pytest

from schoolbridge.infrastructure.mailer import (
    EmailDeliveryError,
    SmtpEmailSender,
    build_invitation_links,
    render_invitation_email,
)

TOKEN = "ab" * 32


def test_links_carry_token():
    mobile, web = build_invitation_links(TOKEN)
    assert mobile == f"schoolbridge://activate?token={TOKEN}"
    assert web == f"http://localhost:8081/activate?token={TOKEN}"


def test_invitation_email_body():
    text, html = render_invitation_email("Teacher", "Springfield Elementary", TOKEN)
    assert "as a Teacher at Springfield Elementary" in text
    assert "Link expires in 72 hours" in text
    assert TOKEN in html


def test_no_host_skips_delivery():
    with patch("smtplib.SMTP") as smtp:
        SmtpEmailSender(host="").send("a@school.edu", "Hi", "body")
    smtp.assert_not_called()


def test_send_over_starttls():
    sender = SmtpEmailSender(host="mail.test", port=2525, username="bot", password="pw")
    with patch("smtplib.SMTP") as smtp:
        sender.send("a@school.edu", "Hi", "body", "<p>body</p>")

    smtp.assert_called_once_with("mail.test", 2525, timeout=10)
    server = smtp.return_value.__enter__.return_value
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("bot", "pw")
    message = server.send_message.call_args[0][0]
    assert message["To"] == "a@school.edu"
    assert message.is_multipart()


def test_smtp_failure_raises_delivery_error():
    sender = SmtpEmailSender(host="mail.test")
    with patch("smtplib.SMTP", side_effect=smtplib.SMTPConnectError(421, "busy")):
        with pytest.raises(EmailDeliveryError):
            sender.send("a@school.edu", "Hi", "body")
