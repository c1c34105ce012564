"""SMTP-backed email dispatcher for account mail."""
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import List

from flask import current_app


class EmailDeliveryError(Exception):
    """Raised when email dispatch fails."""


def _dispatch_email(subject: str, text_body: str, sender: str, recipients: List[str]) -> None:
    if not recipients:
        raise EmailDeliveryError("No recipients resolved for email dispatch")

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = ", ".join(recipients)
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid()
    msg.set_content(text_body)

    host = current_app.config.get("MAIL_SERVER")
    port = int(current_app.config.get("MAIL_PORT", 25))
    username = current_app.config.get("MAIL_USERNAME")
    password = current_app.config.get("MAIL_PASSWORD")
    use_tls = bool(current_app.config.get("MAIL_USE_TLS"))
    use_ssl = bool(current_app.config.get("MAIL_USE_SSL"))

    if not host:
        raise EmailDeliveryError("MAIL_SERVER is not configured")

    try:
        if use_ssl:
            with smtplib.SMTP_SSL(host, port, context=ssl.create_default_context()) as server:
                if username and password:
                    server.login(username, password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(host, port) as server:
                server.ehlo()
                if use_tls:
                    server.starttls(context=ssl.create_default_context())
                if username and password:
                    server.login(username, password)
                server.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        raise EmailDeliveryError(str(exc)) from exc


def send_password_reset_email(recipient: str, user_name: str, reset_link: str, expires_at: str) -> None:
    subject = "Reset your complaint portal password"
    text_body = (
        f"Hello {user_name},\n\n"
        "We received a request to reset the password for your complaint portal account.\n"
        f"Use the link below before {expires_at} UTC to choose a new password:\n\n"
        f"{reset_link}\n\n"
        "If you did not ask for this, you can ignore this message; your password stays unchanged.\n"
    )
    sender = current_app.config.get("MAIL_DEFAULT_SENDER") or recipient
    _dispatch_email(subject, text_body, sender, [recipient])
