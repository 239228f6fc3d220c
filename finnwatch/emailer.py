"""Email delivery via SMTP.

The digest template may start with header lines (``Subject: ...``)
followed by a blank line; those headers are copied onto the message.
From and To always come from the watch file. Supports plain SMTP (the
default, a local MTA on port 25), STARTTLS (587) or SSL (465).
"""

from __future__ import annotations

import logging
import re
import smtplib
import ssl
from email.message import EmailMessage
from typing import List, Tuple

from . import config

logger = logging.getLogger(__name__)

_HEADER_RE = re.compile(r"^([A-Za-z][A-Za-z0-9-]*):[ \t]*(.*)$")
_ADDRESS_HEADERS = {"from", "to", "cc", "bcc"}


class DeliveryError(Exception):
    """Raised when the SMTP server refuses or can't be reached."""


def _split_headers(content: str) -> Tuple[List[Tuple[str, str]], str]:
    text = content.replace("\r\n", "\n")
    head, sep, body = text.partition("\n\n")
    lines = head.split("\n")
    if not sep or not all(_HEADER_RE.match(line) for line in lines):
        return [], text
    headers = []
    for line in lines:
        m = _HEADER_RE.match(line)
        headers.append((m.group(1), m.group(2).strip()))
    return headers, body


def build_message(to: str, sender: str, content: str) -> EmailMessage:
    headers, body = _split_headers(content)

    msg = EmailMessage()
    for name, value in headers:
        if name.lower() in _ADDRESS_HEADERS or name in msg:
            continue
        msg[name] = value
    if "Subject" not in msg:
        msg["Subject"] = f"{config.EMAIL_SUBJECT_PREFIX} New ads"
    msg["From"] = sender
    msg["To"] = to
    msg.set_content(body.strip("\n") + "\n")
    return msg


def _login(s: smtplib.SMTP) -> None:
    if config.EMAIL_USERNAME:
        s.login(config.EMAIL_USERNAME, config.EMAIL_PASSWORD or "")


def _send(msg: EmailMessage) -> None:
    host, port = config.EMAIL_SMTP_HOST, int(config.EMAIL_SMTP_PORT)
    if port == 465 and not config.EMAIL_USE_TLS:
        with smtplib.SMTP_SSL(host, port, context=ssl.create_default_context(), timeout=20) as s:
            _login(s)
            s.send_message(msg)
        return

    with smtplib.SMTP(host, port, timeout=20) as s:
        if config.EMAIL_USE_TLS:
            s.ehlo()
            s.starttls(context=ssl.create_default_context())
        _login(s)
        s.send_message(msg)


def send_mail(to: str, sender: str, content: str) -> None:
    """Deliver one digest. Raises DeliveryError if it didn't go out."""
    msg = build_message(to, sender, content)
    if config.DRY_RUN:
        logger.info("[DRY RUN] Would send email to %s:\n%s", to, msg)
        return

    try:
        _send(msg)
    except (smtplib.SMTPException, OSError) as e:
        raise DeliveryError(
            f"Could not send e-mail via {config.EMAIL_SMTP_HOST}:{config.EMAIL_SMTP_PORT}, "
            f"check your SMTP configuration: {e}"
        ) from e
    logger.info("Email sent to %s (subject=%s)", to, msg.get("Subject"))
