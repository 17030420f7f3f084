from __future__ import annotations

import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage
from typing import Optional

from . import config

logger = logging.getLogger(__name__)


def send_email(*, to_email: str, subject: str, body: str, reply_to: Optional[str] = None) -> None:
    msg = EmailMessage()
    msg["From"] = config.SMTP_FROM
    msg["To"] = to_email
    msg["Subject"] = subject
    if reply_to:
        msg["Reply-To"] = reply_to
    msg.set_content(body)

    with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=10) as server:
        if config.SMTP_USE_TLS:
            server.starttls()
        if config.SMTP_USERNAME and config.SMTP_PASSWORD:
            server.login(config.SMTP_USERNAME, config.SMTP_PASSWORD)
        server.send_message(msg)


def send_contact_message(*, name: str, email: str, message: str, phone: Optional[str] = None) -> None:
    """Forward a contact form message to the store and confirm receipt to the sender."""
    lines = [
        "New contact form message - Emy-by",
        "",
        f"Name: {name}",
        f"Email: {email}",
    ]
    if phone:
        lines.append(f"Phone: {phone}")
    lines += [
        "",
        "Message:",
        message,
        "",
        f"Received at: {datetime.now().strftime('%d/%m/%Y %H:%M:%S')}",
    ]
    send_email(
        to_email=config.STORE_EMAIL,
        subject=f"New contact message - {name}",
        body="\n".join(lines),
        reply_to=email,
    )

    confirmation = "\n".join(
        [
            f"Hello {name},",
            "",
            "We received your message and will get back to you soon.",
            "",
            "Your message:",
            f'"{message}"',
            "",
            "Emy-by",
        ]
    )
    send_email(to_email=email, subject="We received your message - Emy-by", body=confirmation)
    logger.info("Contact message from %s forwarded to %s", email, config.STORE_EMAIL)
