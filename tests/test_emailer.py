from __future__ import annotations

import smtplib
from email.message import EmailMessage
from typing import Optional

import pytest

from finnwatch import config, emailer
from finnwatch.emailer import DeliveryError, build_message, send_mail

CONTENT = "Subject: [finnwatch] 2 new ads\nX-Search: T1\n\nFound 2 new ads\nSofa (0,-)\n"


class FakeSMTP:
    instances: list["FakeSMTP"] = []
    fail_with: Optional[Exception] = None

    def __init__(self, host: str, port: int, timeout: float = 0) -> None:
        if FakeSMTP.fail_with is not None:
            raise FakeSMTP.fail_with
        self.host = host
        self.port = port
        self.sent: list[EmailMessage] = []
        self.started_tls = False
        self.logged_in: Optional[tuple[str, str]] = None
        FakeSMTP.instances.append(self)

    def __enter__(self) -> "FakeSMTP":
        return self

    def __exit__(self, *exc: object) -> None:
        return None

    def ehlo(self) -> None:
        pass

    def starttls(self, context=None) -> None:
        self.started_tls = True

    def login(self, user: str, password: str) -> None:
        self.logged_in = (user, password)

    def send_message(self, msg: EmailMessage) -> None:
        self.sent.append(msg)


@pytest.fixture(autouse=True)
def smtp(monkeypatch: pytest.MonkeyPatch) -> type[FakeSMTP]:
    FakeSMTP.instances = []
    FakeSMTP.fail_with = None
    monkeypatch.setattr(emailer.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(config, "EMAIL_SMTP_HOST", "localhost")
    monkeypatch.setattr(config, "EMAIL_SMTP_PORT", 25)
    monkeypatch.setattr(config, "EMAIL_USE_TLS", False)
    monkeypatch.setattr(config, "EMAIL_USERNAME", None)
    monkeypatch.setattr(config, "EMAIL_PASSWORD", None)
    monkeypatch.setattr(config, "EMAIL_SUBJECT_PREFIX", "[finnwatch]")
    monkeypatch.setattr(config, "DRY_RUN", False)
    return FakeSMTP


def test_headers_from_template_are_used() -> None:
    msg = build_message("me@example.com", "watch@example.com", CONTENT)

    assert msg["Subject"] == "[finnwatch] 2 new ads"
    assert msg["X-Search"] == "T1"
    assert msg["From"] == "watch@example.com"
    assert msg["To"] == "me@example.com"
    assert msg.get_content() == "Found 2 new ads\nSofa (0,-)\n"


def test_address_headers_in_template_are_ignored() -> None:
    content = "To: someone@else.example\nSubject: hi\n\nbody\n"

    msg = build_message("me@example.com", "watch@example.com", content)

    assert msg.get_all("To") == ["me@example.com"]


def test_plain_body_gets_default_subject() -> None:
    content = "Found 2 new ads: see below\n\nSofa (0,-)\n"

    msg = build_message("me@example.com", "watch@example.com", content)

    assert msg["Subject"] == "[finnwatch] New ads"
    assert msg.get_content().startswith("Found 2 new ads: see below\n")


def test_send_mail_uses_local_smtp(smtp: type[FakeSMTP]) -> None:
    send_mail("me@example.com", "watch@example.com", CONTENT)

    (server,) = smtp.instances
    assert (server.host, server.port) == ("localhost", 25)
    assert not server.started_tls
    assert server.logged_in is None
    assert server.sent[0]["Subject"] == "[finnwatch] 2 new ads"


def test_send_mail_starttls_and_login(smtp: type[FakeSMTP], monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "EMAIL_SMTP_HOST", "smtp.example.com")
    monkeypatch.setattr(config, "EMAIL_SMTP_PORT", 587)
    monkeypatch.setattr(config, "EMAIL_USE_TLS", True)
    monkeypatch.setattr(config, "EMAIL_USERNAME", "user")
    monkeypatch.setattr(config, "EMAIL_PASSWORD", "secret")

    send_mail("me@example.com", "watch@example.com", CONTENT)

    (server,) = smtp.instances
    assert server.started_tls
    assert server.logged_in == ("user", "secret")


def test_connection_failure_raises_delivery_error(smtp: type[FakeSMTP]) -> None:
    smtp.fail_with = ConnectionRefusedError("nobody listening")

    with pytest.raises(DeliveryError, match="localhost:25"):
        send_mail("me@example.com", "watch@example.com", CONTENT)


def test_smtp_refusal_raises_delivery_error(smtp: type[FakeSMTP]) -> None:
    smtp.fail_with = smtplib.SMTPRecipientsRefused({"me@example.com": (550, b"no such user")})

    with pytest.raises(DeliveryError):
        send_mail("me@example.com", "watch@example.com", CONTENT)


def test_dry_run_does_not_connect(smtp: type[FakeSMTP], monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "DRY_RUN", True)

    send_mail("me@example.com", "watch@example.com", CONTENT)

    assert smtp.instances == []
